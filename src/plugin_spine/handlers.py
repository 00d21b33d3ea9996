"""Handler contract — how a plugin's logic is invoked in-process.

Manifesto:
A plugin may be served by a hand-written function, a loaded module,
or a subprocess.  Callers should not care which.  ``Handler`` is a
``typing.Protocol`` — any object with the right methods satisfies
it, no base class required.

ARCHITECTURE
────────────
::

    Handler (Protocol)
      ├── .execute(params)                   ─ run once, return Result
      ├── .supports_iteration()              ─ static capability flag
      └── .execute_iteration(params, index)  ─ one step → (Result, continue)

    Implementations:
      FunctionHandler  ─ wraps a plain (params) -> Result callable
      IterableHandler  ─ execute + optional per-step function

    Errors are raised, not returned.  A handler whose
    ``supports_iteration()`` is False must never have
    ``execute_iteration`` called on it.

Related modules:
    iteration.py         — IterationManager drives execute_iteration
    resolver/resolver.py — produces Handlers from plugin directories

Tags:
    plugin-spine, handler, protocol, interface

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from plugin_spine.types import ParameterMapping, Result

ExecuteFunc = Callable[[ParameterMapping], Result]
IterationFunc = Callable[[ParameterMapping, int], tuple[Result, bool]]

ITERATE_PARAM = "continueToIterate"


@runtime_checkable
class Handler(Protocol):
    """In-process callable contract through which a plugin runs.

    Example implementation:
        >>> class Echo:
        ...     def execute(self, params):
        ...         return dict(params)
        ...
        ...     def supports_iteration(self) -> bool:
        ...         return False
        ...
        ...     def execute_iteration(self, params, index):
        ...         raise NotImplementedError
    """

    def execute(self, params: ParameterMapping) -> Result:
        """Run once and return the plugin's result.

        Raises:
            Exception: Whatever the plugin raises on failure.
        """
        ...

    def supports_iteration(self) -> bool:
        """Whether ``execute_iteration`` may be called."""
        ...

    def execute_iteration(self, params: ParameterMapping, index: int) -> tuple[Result, bool]:
        """Run one step.

        Returns:
            ``(result, continue)`` — ``continue`` asks for another step.
        """
        ...


class FunctionHandler:
    """Adapts a plain ``(params) -> result`` callable to the Handler contract.

    Function handlers never iterate.
    """

    def __init__(self, func: ExecuteFunc, name: str | None = None):
        self._func = func
        self.name = name or getattr(func, "__name__", "handler")

    def execute(self, params: ParameterMapping) -> Result:
        return self._func(params)

    def supports_iteration(self) -> bool:
        return False

    def execute_iteration(self, params: ParameterMapping, index: int) -> tuple[Result, bool]:
        raise NotImplementedError(f"{self.name} does not support iteration")

    def __repr__(self) -> str:
        return f"FunctionHandler({self.name!r})"


class IterableHandler:
    """Base handler for plugins that can be run repeatedly.

    ``iteration_func`` runs one step; without it each step falls back to
    ``execute`` and asks not to continue, so the plugin runs exactly once.

    Example:
        >>> def sample(params, index):
        ...     return {"sample": index}, index < 2
        >>> handler = IterableHandler(lambda p: {"sample": 0}, sample)
        >>> handler.execute_iteration({}, 1)
        ({'sample': 1}, True)
    """

    def __init__(
        self,
        execute_func: ExecuteFunc | None,
        iteration_func: IterationFunc | None = None,
        *,
        supports_iteration: bool = True,
        name: str | None = None,
    ):
        self._execute_func = execute_func
        self._iteration_func = iteration_func
        self._supports_iteration = supports_iteration
        self.name = name or getattr(execute_func, "__name__", "iterable")

    def execute(self, params: ParameterMapping) -> Result:
        if self._execute_func is None:
            raise NotImplementedError(f"{self.name}: execute function not implemented")
        return self._execute_func(params)

    def supports_iteration(self) -> bool:
        return self._supports_iteration

    def execute_iteration(self, params: ParameterMapping, index: int) -> tuple[Result, bool]:
        if self._iteration_func is not None:
            return self._iteration_func(params, index)
        return self.execute(params), False

    def __repr__(self) -> str:
        return f"IterableHandler({self.name!r}, supports_iteration={self._supports_iteration})"


def iteration_param() -> dict[str, Any]:
    """Standard manifest descriptor for the "Continue to iterate?" parameter."""
    return {
        "id": ITERATE_PARAM,
        "name": "Continue to iterate?",
        "description": "Enable repeated execution of this plugin with the same parameters",
        "type": "boolean",
        "required": False,
        "default": False,
        "canIterate": True,
    }


__all__ = [
    "Handler",
    "FunctionHandler",
    "IterableHandler",
    "ExecuteFunc",
    "IterationFunc",
    "ITERATE_PARAM",
    "iteration_param",
]
