"""Execution Config — iteration policy extracted from caller parameters.

Callers request repeated execution through ordinary parameters
(the same mapping the plugin receives), so the policy is read out of
that mapping once per invocation and frozen.

Recognised keys::

    continueToIterate  bool    run under an IterationManager
    maxIterations      number  0 = unbounded
    iterationDelay     number  milliseconds between steps
    continueOnError    bool    keep going after a failed step

Missing keys and values of the wrong type fall back to defaults;
``extract_config`` never raises.  ``bool`` is rejected where a number
is expected even though it subclasses ``int``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from plugin_spine.handlers import ITERATE_PARAM

MAX_ITERATIONS_PARAM = "maxIterations"
ITERATION_DELAY_PARAM = "iterationDelay"
CONTINUE_ON_ERROR_PARAM = "continueOnError"

DEFAULT_ITERATION_DELAY_MS = 1000


@dataclass(frozen=True, slots=True)
class ExecutionConfig:
    """Immutable iteration policy for one invocation."""

    iterate: bool = False
    max_iterations: int = 0
    iteration_delay_ms: int = DEFAULT_ITERATION_DELAY_MS
    continue_on_error: bool = False

    @property
    def unbounded(self) -> bool:
        return self.max_iterations <= 0

    @property
    def iteration_delay_seconds(self) -> float:
        return self.iteration_delay_ms / 1000.0

    def to_dict(self) -> dict[str, Any]:
        return {
            ITERATE_PARAM: self.iterate,
            MAX_ITERATIONS_PARAM: self.max_iterations,
            ITERATION_DELAY_PARAM: self.iteration_delay_ms,
            CONTINUE_ON_ERROR_PARAM: self.continue_on_error,
        }


def _as_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _as_count(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    if not math.isfinite(value):
        return default
    return max(int(value), 0)


def extract_config(params: Mapping[str, Any] | None) -> ExecutionConfig:
    """Derive the iteration policy from a parameter mapping.

    Example:
        >>> extract_config({"continueToIterate": True, "maxIterations": 3.0})
        ExecutionConfig(iterate=True, max_iterations=3, iteration_delay_ms=1000, continue_on_error=False)
    """
    if not params:
        return ExecutionConfig()

    return ExecutionConfig(
        iterate=_as_bool(params.get(ITERATE_PARAM), False),
        max_iterations=_as_count(params.get(MAX_ITERATIONS_PARAM), 0),
        iteration_delay_ms=_as_count(params.get(ITERATION_DELAY_PARAM), DEFAULT_ITERATION_DELAY_MS),
        continue_on_error=_as_bool(params.get(CONTINUE_ON_ERROR_PARAM), False),
    )


__all__ = [
    "ExecutionConfig",
    "extract_config",
    "DEFAULT_ITERATION_DELAY_MS",
    "MAX_ITERATIONS_PARAM",
    "ITERATION_DELAY_PARAM",
    "CONTINUE_ON_ERROR_PARAM",
]
