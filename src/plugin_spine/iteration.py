"""Iteration Manager — repeated execution of one handler with history.

Manifesto:
A diagnostic like ``ping`` is most useful when it keeps running:
the front end starts it, polls the accumulated history, and stops
it when the user has seen enough.  ``IterationManager`` owns one
such run: it calls the handler's ``execute_iteration`` on a
background thread under an ``ExecutionConfig`` policy and records
a timestamped ``IterationResult`` per step.

ARCHITECTURE
────────────
::

    IterationManager(handler, config)
      ├── .start(params)           ─ IDLE → RUNNING, spawn loop thread
      ├── .stop()                  ─ cooperative stop request
      ├── .is_running              ─ state check
      ├── .get_results()           ─ snapshot of history so far
      └── .wait_for_completion()   ─ block until the run ends

    Loop (daemon thread):
      stop requested?  ─┐
      index ≥ max?     ─┼─→ exit → IDLE → completion fired once
      execute_iteration(params, index)
      append IterationResult(index, result, continue, error, ts)
      error and not continue_on_error  → exit
      no error and not continue        → exit
      index += 1; wait(delay) unless stop requested

    Indices in the history are exactly 0, 1, 2, … with no gaps.
    An in-flight ``execute_iteration`` is never interrupted; stop
    takes effect between steps, so at most one more step completes.

Related modules:
    config.py   — ExecutionConfig / extract_config
    handlers.py — Handler contract
    runtime.py  — PluginRuntime.start_iteration

Tags:
    plugin-spine, iteration, state-machine, threading, cancellation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from plugin_spine.config import ExecutionConfig, extract_config
from plugin_spine.errors import AlreadyRunningError, IterationError, UnsupportedOperationError
from plugin_spine.handlers import Handler
from plugin_spine.logging import get_logger
from plugin_spine.types import ParameterMapping, Result

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class IterationState(str, Enum):
    """Externally observable manager state.

    Valid transition graph::

        IDLE    → RUNNING   (start)
        RUNNING → IDLE      (loop exit: limit, stop, error, or no-continue)
    """

    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class IterationResult:
    """Outcome of one step. Appended to the history, never mutated."""

    index: int
    result: Result | None
    continue_requested: bool
    error: str | None = None
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        """Wire format consumed by front ends."""
        data: dict[str, Any] = {
            "iterationCount": self.index,
            "result": self.result,
            "continueIteration": self.continue_requested,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class IterationManager:
    """Drives repeated execution of one handler.

    Owned by a single invocation.  ``get_results`` and ``is_running``
    may be called from any thread while the loop is appending.

    Example:
        >>> manager = IterationManager(handler, ExecutionConfig(iterate=True, max_iterations=3))
        >>> manager.start({"host": "10.0.0.1"})
        >>> manager.wait_for_completion()
        True
        >>> [r.index for r in manager.get_results()]
        [0, 1, 2]
    """

    def __init__(self, handler: Handler, config: ExecutionConfig, *, name: str | None = None):
        self._handler = handler
        self._config = config
        self._name = name or getattr(handler, "name", type(handler).__name__)

        self._lock = threading.Lock()
        self._results: list[IterationResult] = []
        self._state = IterationState.IDLE
        self._stop_requested = threading.Event()
        # One per run, set together with the IDLE transition.
        self._done = threading.Event()
        self._done.set()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> ExecutionConfig:
        return self._config

    @property
    def state(self) -> IterationState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is IterationState.RUNNING

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def start(self, params: ParameterMapping) -> None:
        """Begin a run on a background thread and return immediately.

        Raises:
            AlreadyRunningError: If a run is in progress.
            UnsupportedOperationError: If the handler cannot iterate.
        """
        with self._lock:
            if self._state is IterationState.RUNNING:
                raise AlreadyRunningError("iteration is already running", plugin_id=self._name)
            if not self._handler.supports_iteration():
                raise UnsupportedOperationError(
                    "plugin does not support iteration", plugin_id=self._name
                )

            self._state = IterationState.RUNNING
            self._results = []
            self._stop_requested.clear()
            self._done = threading.Event()

            self._thread = threading.Thread(
                target=self._run,
                args=(dict(params), self._done),
                daemon=True,
                name=f"plugin-spine-iter-{self._name}",
            )
            self._thread.start()

        logger.info(
            "iteration.started",
            plugin_id=self._name,
            max_iterations=self._config.max_iterations,
            delay_ms=self._config.iteration_delay_ms,
            continue_on_error=self._config.continue_on_error,
        )

    def stop(self) -> None:
        """Request the run to stop after the current step. No-op when idle."""
        with self._lock:
            if self._state is not IterationState.RUNNING:
                return
            self._stop_requested.set()
        logger.info("iteration.stop_requested", plugin_id=self._name)

    def get_results(self) -> tuple[IterationResult, ...]:
        """Snapshot of the history accumulated so far."""
        with self._lock:
            return tuple(self._results)

    def wait_for_completion(self, timeout: float | None = None) -> bool:
        """Block until the current run completes.

        Returns immediately with True when the manager is idle, including
        when it has never been started.

        Returns:
            False if ``timeout`` elapsed first, True otherwise.
        """
        with self._lock:
            done = self._done
        return done.wait(timeout)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _run(self, params: dict[str, Any], done: threading.Event) -> None:
        index = 0
        try:
            while True:
                if self._stop_requested.is_set():
                    break
                if self._config.max_iterations > 0 and index >= self._config.max_iterations:
                    break

                entry = self._step(params, index)
                with self._lock:
                    self._results.append(entry)

                if entry.failed:
                    if not self._config.continue_on_error:
                        break
                elif not entry.continue_requested:
                    break

                index += 1

                if self._config.iteration_delay_ms > 0:
                    # Woken early by stop(); the next pass sees the flag and exits.
                    self._stop_requested.wait(self._config.iteration_delay_seconds)
        finally:
            with self._lock:
                self._state = IterationState.IDLE
                count = len(self._results)
                stopped = self._stop_requested.is_set()
                done.set()
            logger.info(
                "iteration.completed",
                plugin_id=self._name,
                iterations=count,
                stopped=stopped,
            )

    def _step(self, params: dict[str, Any], index: int) -> IterationResult:
        try:
            result, continue_requested = self._handler.execute_iteration(params, index)
        except Exception as exc:
            error = IterationError(index, exc, plugin_id=self._name)
            logger.warning(
                "iteration.step_failed",
                plugin_id=self._name,
                index=index,
                error=error.message,
            )
            return IterationResult(
                index=index,
                result=None,
                continue_requested=self._config.continue_on_error,
                error=error.message,
            )
        return IterationResult(
            index=index,
            result=result,
            continue_requested=bool(continue_requested),
        )


def run_with_iteration(handler: Handler, params: ParameterMapping) -> Result:
    """Execute a handler, iterating when the parameters ask for it.

    Without ``continueToIterate`` (or when the handler cannot iterate) this
    is a single ``execute``.  Otherwise the run is driven to completion and
    the history is returned in one envelope.
    """
    config = extract_config(params)

    if not config.iterate or not handler.supports_iteration():
        return handler.execute(params)

    manager = IterationManager(handler, config)
    manager.start(params)
    manager.wait_for_completion()
    results = manager.get_results()

    return {
        "iterationResults": [r.to_dict() for r in results],
        "iterationCount": len(results),
        "lastIteration": utcnow().isoformat(),
        "params": dict(params),
    }


__all__ = [
    "IterationState",
    "IterationResult",
    "IterationManager",
    "run_with_iteration",
]
