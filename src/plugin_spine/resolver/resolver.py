"""Handler Resolver — plugin id + directory → Handler via ordered fallbacks.

Manifesto:
Plugins are not trusted to link cleanly into the host process, so
resolution degrades gracefully from the fastest path to the slowest
but always-available one.  Each strategy's failure, whatever its
exception type, is logged and swallowed; only when every strategy
fails does the caller see ``ResolutionFailedError``.

ARCHITECTURE
────────────
::

    HandlerResolver.resolve(plugin_dir, plugin_id)
      1. native     ─ NativeTable entry            (no filesystem access)
      2. artifact   ─ load compiled artifact module, bind plugin()["execute"]
      3. build      ─ run BuildTool on the artifact source, then retry (2) once
      4. subprocess ─ entry point exists → SubprocessHandler
           │
           ▼
      AdaptedHandler(handler, param rules for plugin_id)

    The adaptation wrapper is applied whichever strategy wins, so
    behaviour is observably the same across strategies.

BEST PRACTICES
──────────────
- Pass ``enable_build=False`` where no build tool is available;
  the chain skips straight from (2) to (4).
- Resolution is idempotent in effect; a successful build leaves the
  artifact in place so the next resolve stops at (2).

Related modules:
    native.py    — NativeTable
    artifacts.py — artifact discovery, loading, BuildTool
    process.py   — SubprocessHandler
    params.py    — ListParamRule / AdaptedHandler

Tags:
    plugin-spine, resolver, fallback-chain, dynamic-loading, subprocess

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from plugin_spine.errors import (
    ArtifactLoadError,
    HandlerNotFoundError,
    ResolutionFailedError,
    SubprocessFailedError,
)
from plugin_spine.handlers import Handler
from plugin_spine.logging import get_logger
from plugin_spine.resolver.artifacts import BuildTool, load_artifact_handler
from plugin_spine.resolver.native import NativeTable
from plugin_spine.resolver.params import DEFAULT_PARAM_RULES, AdaptedHandler, ListParamRule
from plugin_spine.resolver.process import SubprocessHandler
from plugin_spine.settings import PluginSpineSettings, get_settings

logger = get_logger(__name__)

STRATEGY_NATIVE = "native"
STRATEGY_ARTIFACT = "artifact"
STRATEGY_BUILD = "build"
STRATEGY_SUBPROCESS = "subprocess"


class HandlerResolver:
    """Turns a plugin id and its directory into a Handler.

    Example:
        >>> resolver = HandlerResolver(native_table=builtin_table())
        >>> handler = resolver.resolve(Path("plugins/subnet_calculator"), "subnet_calculator")
        >>> handler.execute({"action": "calculate", "address": "10.0.0.0/24"})["broadcast"]
        '10.0.0.255'
    """

    def __init__(
        self,
        *,
        native_table: NativeTable | None = None,
        settings: PluginSpineSettings | None = None,
        build_tool: BuildTool | None = None,
        param_rules: Mapping[str, tuple[ListParamRule, ...]] | None = None,
    ):
        self.settings = settings or get_settings()
        self.native_table = native_table if native_table is not None else NativeTable()
        self.build_tool = build_tool or BuildTool(
            self.settings.build_command,
            python_executable=self.settings.python_executable,
            timeout_seconds=self.settings.build_timeout_seconds,
            artifact_source=self.settings.artifact_source,
        )
        self.param_rules = dict(DEFAULT_PARAM_RULES if param_rules is None else param_rules)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        plugin_dir: Path | str,
        plugin_id: str,
        *,
        entry_point: str | None = None,
    ) -> Handler:
        """Resolve a handler, trying each strategy in priority order.

        Args:
            plugin_dir: The plugin's on-disk directory
            plugin_id: Stable plugin identifier
            entry_point: Source entry point relative to ``plugin_dir``
                (defaults to ``settings.entry_point``)

        Raises:
            ResolutionFailedError: If every strategy failed.
        """
        plugin_dir = Path(plugin_dir)
        entry = entry_point or self.settings.entry_point
        attempts: list[tuple[str, BaseException]] = []

        strategies: list[tuple[str, Callable[[], Handler]]] = [
            (STRATEGY_NATIVE, lambda: self._resolve_native(plugin_id)),
            (STRATEGY_ARTIFACT, lambda: self._resolve_artifact(plugin_dir, plugin_id, entry)),
        ]
        if self.settings.enable_build:
            strategies.append(
                (STRATEGY_BUILD, lambda: self._resolve_build(plugin_dir, plugin_id, entry))
            )
        strategies.append(
            (STRATEGY_SUBPROCESS, lambda: self._resolve_subprocess(plugin_dir, plugin_id, entry))
        )

        for name, strategy in strategies:
            try:
                handler = strategy()
            except Exception as exc:
                attempts.append((name, exc))
                logger.warning(
                    "resolver.strategy_failed",
                    plugin_id=plugin_id,
                    strategy=name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue

            logger.info("resolver.resolved", plugin_id=plugin_id, strategy=name)
            return self._adapt(plugin_id, handler)

        raise ResolutionFailedError(plugin_id, attempts)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _resolve_native(self, plugin_id: str) -> Handler:
        handler = self.native_table.create(plugin_id)
        if handler is None:
            raise HandlerNotFoundError(plugin_id, available=list(self.native_table))
        return handler

    def _resolve_artifact(self, plugin_dir: Path, plugin_id: str, entry_point: str) -> Handler:
        return load_artifact_handler(
            plugin_dir,
            plugin_id,
            entry_point=entry_point,
            entry_symbol=self.settings.entry_symbol,
            artifact_source=self.settings.artifact_source,
        )

    def _resolve_build(self, plugin_dir: Path, plugin_id: str, entry_point: str) -> Handler:
        if not plugin_dir.is_dir():
            raise ArtifactLoadError(f"Plugin directory not found: {plugin_dir}", plugin_id=plugin_id)
        try:
            self.build_tool.build(plugin_dir, plugin_id)
        except Exception as exc:
            # Reported, but a stale artifact from an earlier build may still load.
            logger.warning(
                "resolver.build_failed",
                plugin_id=plugin_id,
                error=str(exc),
                output=getattr(exc, "output", ""),
            )
        return self._resolve_artifact(plugin_dir, plugin_id, entry_point)

    def _resolve_subprocess(self, plugin_dir: Path, plugin_id: str, entry_point: str) -> Handler:
        path = plugin_dir / entry_point
        if not path.is_file():
            raise SubprocessFailedError(f"Entry point not found: {path}", plugin_id=plugin_id)
        return SubprocessHandler(
            plugin_id,
            path,
            python_executable=self.settings.python_executable,
            timeout_seconds=self.settings.subprocess_timeout_seconds,
        )

    def _adapt(self, plugin_id: str, handler: Handler) -> Handler:
        rules = self.param_rules.get(plugin_id)
        if not rules:
            return handler
        return AdaptedHandler(handler, rules, name=plugin_id)
