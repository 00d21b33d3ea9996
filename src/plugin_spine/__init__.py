"""
plugin-spine — a pluggable task-execution runtime.

Discovers self-describing plugins, resolves each one's handler through a
layered fallback chain, and drives repeated, cancellable execution with
accumulated history.
"""

__version__ = "0.1.0"

from plugin_spine.config import ExecutionConfig, extract_config
from plugin_spine.errors import (
    AlreadyRunningError,
    ArtifactLoadError,
    BuildFailedError,
    ErrorCategory,
    HandlerNotFoundError,
    IterationError,
    ManifestError,
    PluginSpineError,
    ResolutionFailedError,
    SubprocessFailedError,
    UnsupportedOperationError,
)
from plugin_spine.handlers import FunctionHandler, Handler, IterableHandler, iteration_param
from plugin_spine.iteration import (
    IterationManager,
    IterationResult,
    IterationState,
    run_with_iteration,
)
from plugin_spine.manifest import PluginManifest, PluginParam, discover_plugins, load_manifest
from plugin_spine.registry import HandlerRegistry
from plugin_spine.resolver import HandlerResolver, ListParamRule, NativeTable
from plugin_spine.runtime import PluginRuntime
from plugin_spine.settings import PluginSpineSettings, get_settings

__all__ = [
    "__version__",
    # handlers
    "Handler",
    "FunctionHandler",
    "IterableHandler",
    "iteration_param",
    # registry / resolution
    "HandlerRegistry",
    "HandlerResolver",
    "NativeTable",
    "ListParamRule",
    # iteration
    "ExecutionConfig",
    "extract_config",
    "IterationManager",
    "IterationResult",
    "IterationState",
    "run_with_iteration",
    # discovery / runtime
    "PluginManifest",
    "PluginParam",
    "discover_plugins",
    "load_manifest",
    "PluginRuntime",
    "PluginSpineSettings",
    "get_settings",
    # errors
    "ErrorCategory",
    "PluginSpineError",
    "HandlerNotFoundError",
    "ResolutionFailedError",
    "ArtifactLoadError",
    "BuildFailedError",
    "SubprocessFailedError",
    "AlreadyRunningError",
    "UnsupportedOperationError",
    "IterationError",
    "ManifestError",
]
