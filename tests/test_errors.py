"""Tests for the plugin-spine error hierarchy."""

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


class TestBaseError:
    def test_defaults(self):
        error = PluginSpineError("boom")
        assert str(error) == "boom"
        assert error.category is ErrorCategory.INTERNAL
        assert error.plugin_id is None
        assert error.context == {}

    def test_with_context_is_fluent(self):
        error = PluginSpineError("boom").with_context(attempt=2, host="h")
        assert error.context == {"attempt": 2, "host": "h"}

    def test_cause_chained(self):
        cause = OSError("disk")
        error = PluginSpineError("boom", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "disk"

    def test_to_dict(self):
        error = ArtifactLoadError("no symbol", plugin_id="ping", context={"path": "/x"})
        assert error.to_dict() == {
            "error_type": "ArtifactLoadError",
            "message": "no symbol",
            "category": "ARTIFACT",
            "plugin_id": "ping",
            "context": {"path": "/x"},
        }


def test_categories():
    assert HandlerNotFoundError("x").category is ErrorCategory.NOT_FOUND
    assert ResolutionFailedError("x").category is ErrorCategory.RESOLUTION
    assert BuildFailedError("x").category is ErrorCategory.BUILD
    assert SubprocessFailedError("x").category is ErrorCategory.SUBPROCESS
    assert AlreadyRunningError("x").category is ErrorCategory.ITERATION
    assert UnsupportedOperationError("x").category is ErrorCategory.ITERATION
    assert ManifestError("x").category is ErrorCategory.MANIFEST


def test_not_found_message_lists_available():
    error = HandlerNotFoundError("ping", available=["dns_lookup", "traceroute"])
    assert "ping" in error.message
    assert "dns_lookup" in error.message


def test_resolution_failed_records_attempts():
    attempts = [
        ("native", HandlerNotFoundError("p")),
        ("subprocess", SubprocessFailedError("Entry point not found")),
    ]
    error = ResolutionFailedError("p", attempts)

    assert [name for name, _ in error.attempts] == ["native", "subprocess"]
    assert "Entry point not found" in error.message
    assert error.to_dict()["attempts"][1] == {
        "strategy": "subprocess",
        "error": "Entry point not found",
    }


def test_process_error_carries_output():
    error = SubprocessFailedError("exit 2", exit_code=2, output="trace")
    data = error.to_dict()
    assert data["exit_code"] == 2
    assert data["output"] == "trace"


def test_iteration_error_message():
    assert IterationError(3, RuntimeError("timeout")).message == "timeout"
    assert IterationError(3, RuntimeError()).message == "RuntimeError"
    assert IterationError(3, RuntimeError("x")).index == 3
