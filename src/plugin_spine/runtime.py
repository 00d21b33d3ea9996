"""Plugin Runtime — the host's top-level component.

Manifesto:
Discovery, resolution, and execution each live in their own module;
``PluginRuntime`` wires them together and owns the one registry the
host uses.  The registry is constructed here and passed nowhere
implicitly, so two runtimes (or two tests) never share bindings.

ARCHITECTURE
────────────
::

    PluginRuntime(settings)
      ├── registry : HandlerRegistry   (owned)
      ├── resolver : HandlerResolver   (builtin native table)
      │
      ├── .load()                         ─ discover → resolve → register
      ├── .register_native()              ─ bind built-ins with no directory
      ├── .handler(plugin_id)             ─ registry lookup
      ├── .execute(plugin_id, params)     ─ once, or iterate to completion
      └── .start_iteration(plugin_id, p)  ─ started IterationManager

    Plugins whose resolution fails are logged and skipped; they do
    not prevent the rest from loading.

Related modules:
    manifest.py  — discover_plugins / PluginManifest
    resolver/    — HandlerResolver
    iteration.py — IterationManager / run_with_iteration

Tags:
    plugin-spine, runtime, loader, composition-root

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading

from plugin_spine.builtin import builtin_table
from plugin_spine.config import ExecutionConfig, extract_config
from plugin_spine.errors import ResolutionFailedError
from plugin_spine.handlers import Handler
from plugin_spine.iteration import IterationManager, run_with_iteration
from plugin_spine.logging import LogContext, get_logger
from plugin_spine.manifest import PluginManifest, discover_plugins
from plugin_spine.registry import HandlerRegistry
from plugin_spine.resolver import HandlerResolver
from plugin_spine.settings import PluginSpineSettings, get_settings
from plugin_spine.types import ParameterMapping, Result

logger = get_logger(__name__)


class PluginRuntime:
    """Owns the registry and drives discovery and execution.

    Example:
        >>> runtime = PluginRuntime(PluginSpineSettings(plugins_dir="plugins"))
        >>> runtime.load()
        ['ping', 'subnet_calculator']
        >>> runtime.execute("subnet_calculator", {"action": "calculate", "address": "10.0.0.0/30"})
    """

    def __init__(
        self,
        settings: PluginSpineSettings | None = None,
        *,
        registry: HandlerRegistry | None = None,
        resolver: HandlerResolver | None = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else HandlerRegistry()
        self.resolver = resolver or HandlerResolver(
            native_table=builtin_table(),
            settings=self.settings,
        )
        self._manifests: dict[str, PluginManifest] = {}
        self._load_lock = threading.Lock()

    @property
    def plugins(self) -> list[PluginManifest]:
        """Manifests of successfully loaded plugins, sorted by id."""
        return [self._manifests[k] for k in sorted(self._manifests)]

    def manifest(self, plugin_id: str) -> PluginManifest | None:
        return self._manifests.get(plugin_id)

    def load(self) -> list[str]:
        """Discover plugins under ``settings.plugins_dir`` and register their handlers.

        Returns:
            Ids of the plugins registered by this call.
        """
        with self._load_lock:
            loaded: list[str] = []
            for manifest in discover_plugins(self.settings.plugins_dir, self.settings.manifest_name):
                if self._load_one(manifest):
                    loaded.append(manifest.id)

            logger.info("runtime.loaded", count=len(loaded), plugins_dir=str(self.settings.plugins_dir))
            return loaded

    def _load_one(self, manifest: PluginManifest) -> bool:
        with LogContext(plugin_id=manifest.id):
            try:
                handler = self.resolver.resolve(
                    manifest.path,
                    manifest.id,
                    entry_point=manifest.entry_point,
                )
            except ResolutionFailedError as exc:
                logger.error("runtime.resolution_failed", **exc.to_dict())
                return False

        self.registry.register(manifest.id, handler)
        self._manifests[manifest.id] = manifest
        return True

    def register_native(self) -> list[str]:
        """Bind every built-in handler that is not already registered.

        Built-ins need no directory, so hosts without a plugins tree can
        still serve them.
        """
        bound = []
        for plugin_id in self.resolver.native_table:
            if self.registry.has(plugin_id):
                continue
            handler = self.resolver.resolve(self.settings.plugins_dir / plugin_id, plugin_id)
            self.registry.register(plugin_id, handler)
            bound.append(plugin_id)
        return bound

    def handler(self, plugin_id: str) -> Handler:
        """Registry lookup; raises ``HandlerNotFoundError`` for unknown ids."""
        return self.registry.lookup(plugin_id)

    def execute(self, plugin_id: str, params: ParameterMapping) -> Result:
        """Run a plugin once, or to completion when iteration is requested."""
        handler = self.handler(plugin_id)
        with LogContext(plugin_id=plugin_id):
            logger.info("runtime.execute", param_count=len(params))
            return run_with_iteration(handler, params)

    def start_iteration(
        self,
        plugin_id: str,
        params: ParameterMapping,
        config: ExecutionConfig | None = None,
    ) -> IterationManager:
        """Start an iterative run and hand the manager back to the caller.

        Raises:
            HandlerNotFoundError: Unknown plugin.
            UnsupportedOperationError: The plugin cannot iterate.
        """
        handler = self.handler(plugin_id)
        manager = IterationManager(handler, config or extract_config(params), name=plugin_id)
        manager.start(params)
        return manager
