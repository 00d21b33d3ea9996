"""
Structured error types for plugin-spine.

Every failure the runtime can report is a :class:`PluginSpineError` carrying a
category, the plugin it concerns, free-form context, and the chained cause.
The hierarchy mirrors the runtime's propagation policy: some errors are
recovered locally and only logged, others surface to the caller.

Manifesto:
    - **Typed hierarchy:** One class per failure mode the caller can act on
    - **Local recovery:** Strategy and per-iteration failures are recorded, not raised
    - **Rich context:** Errors carry plugin id and captured output for logging
    - **Error chaining:** The original exception is preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     PluginSpineError                        │
        │          (category, plugin_id, context, cause)              │
        ├─────────────────────────────────────────────────────────────┤
        │  Surfaced to callers         │  Recovered locally           │
        │  ────────────────────        │  ──────────────────          │
        │  HandlerNotFoundError        │  ArtifactLoadError           │
        │  ResolutionFailedError       │  BuildFailedError            │
        │  SubprocessFailedError       │  IterationError              │
        │  AlreadyRunningError         │  ManifestError               │
        │  UnsupportedOperationError   │                              │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = BuildFailedError("compile failed", plugin_id="whois", exit_code=1)
    >>> error.to_dict()["category"]
    'BUILD'

Tags:
    error-handling, exception-hierarchy, plugin-spine

Doc-Types:
    api-reference
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Classification used for routing and structured logging."""

    NOT_FOUND = "NOT_FOUND"
    RESOLUTION = "RESOLUTION"
    ARTIFACT = "ARTIFACT"
    BUILD = "BUILD"
    SUBPROCESS = "SUBPROCESS"
    ITERATION = "ITERATION"
    MANIFEST = "MANIFEST"
    INTERNAL = "INTERNAL"


class PluginSpineError(Exception):
    """
    Base exception for all plugin-spine errors.

    Subclasses set ``default_category``; instances may override it.

    Examples:
        >>> error = PluginSpineError("boom", plugin_id="ping")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(attempt=2).context
        {'attempt': 2}
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        plugin_id: str | None = None,
        category: ErrorCategory | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.plugin_id = plugin_id
        self.category = category or self.default_category
        self.context = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PluginSpineError:
        """Add context to this error (fluent API)."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.plugin_id is not None:
            result["plugin_id"] = self.plugin_id
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# REGISTRY / RESOLUTION
# =============================================================================


class HandlerNotFoundError(PluginSpineError, LookupError):
    """No handler is bound to the requested plugin id."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, plugin_id: str, available: list[str] | None = None, **kwargs: Any):
        available = available or []
        message = f"No handler registered for {plugin_id!r}. Available: {available or 'none'}"
        super().__init__(message, plugin_id=plugin_id, **kwargs)
        self.available = available


class ResolutionFailedError(PluginSpineError):
    """
    Every resolution strategy failed for a plugin.

    ``attempts`` holds ``(strategy_name, error)`` pairs in the order the
    strategies were tried.
    """

    default_category = ErrorCategory.RESOLUTION

    def __init__(
        self,
        plugin_id: str,
        attempts: list[tuple[str, BaseException]] | None = None,
        **kwargs: Any,
    ):
        self.attempts = list(attempts or [])
        tried = ", ".join(f"{name}: {err}" for name, err in self.attempts) or "no strategies"
        super().__init__(
            f"Could not resolve a handler for {plugin_id!r} ({tried})",
            plugin_id=plugin_id,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = [
            {"strategy": name, "error": str(err)} for name, err in self.attempts
        ]
        return result


class ArtifactLoadError(PluginSpineError):
    """A compiled artifact is missing, unloadable, or has the wrong shape."""

    default_category = ErrorCategory.ARTIFACT


class _ProcessError(PluginSpineError):
    """Shared fields for failures of an external process."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        output: str = "",
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.exit_code = exit_code
        self.output = output

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.exit_code is not None:
            result["exit_code"] = self.exit_code
        if self.output:
            result["output"] = self.output
        return result


class BuildFailedError(_ProcessError):
    """The build tool exited non-zero or could not be started."""

    default_category = ErrorCategory.BUILD


class SubprocessFailedError(_ProcessError):
    """A plugin entry point exited non-zero or could not be started."""

    default_category = ErrorCategory.SUBPROCESS


# =============================================================================
# ITERATION
# =============================================================================


class AlreadyRunningError(PluginSpineError):
    """``start()`` was called on a manager that is already running."""

    default_category = ErrorCategory.ITERATION


class UnsupportedOperationError(PluginSpineError):
    """The bound handler does not support iteration."""

    default_category = ErrorCategory.ITERATION


class IterationError(PluginSpineError):
    """Failure of a single iteration. Recorded in the result history, never raised."""

    default_category = ErrorCategory.ITERATION

    def __init__(self, index: int, cause: BaseException, **kwargs: Any):
        super().__init__(str(cause) or cause.__class__.__name__, cause=cause, **kwargs)
        self.index = index


# =============================================================================
# MANIFESTS
# =============================================================================


class ManifestError(PluginSpineError):
    """A plugin manifest could not be read or failed validation."""

    default_category = ErrorCategory.MANIFEST


__all__ = [
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
