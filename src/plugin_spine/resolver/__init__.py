"""Handler resolution: native table → compiled artifact → build → subprocess."""

from plugin_spine.resolver.artifacts import BuildTool, find_artifact, load_artifact_handler
from plugin_spine.resolver.native import NativeTable
from plugin_spine.resolver.params import (
    DEFAULT_PARAM_RULES,
    AdaptedHandler,
    ListParamRule,
    adapt_params,
)
from plugin_spine.resolver.process import SubprocessHandler, parse_output
from plugin_spine.resolver.resolver import (
    STRATEGY_ARTIFACT,
    STRATEGY_BUILD,
    STRATEGY_NATIVE,
    STRATEGY_SUBPROCESS,
    HandlerResolver,
)

__all__ = [
    "HandlerResolver",
    "NativeTable",
    "BuildTool",
    "SubprocessHandler",
    "ListParamRule",
    "AdaptedHandler",
    "DEFAULT_PARAM_RULES",
    "adapt_params",
    "find_artifact",
    "load_artifact_handler",
    "parse_output",
    "STRATEGY_NATIVE",
    "STRATEGY_ARTIFACT",
    "STRATEGY_BUILD",
    "STRATEGY_SUBPROCESS",
]
