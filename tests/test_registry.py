"""Tests for HandlerRegistry bindings and lookup errors."""

import pytest

from plugin_spine.errors import ErrorCategory, HandlerNotFoundError
from plugin_spine.handlers import FunctionHandler, IterableHandler
from plugin_spine.registry import HandlerRegistry


def _echo(params):
    return dict(params)


class TestRegister:
    def test_register_then_lookup(self, registry):
        handler = FunctionHandler(_echo, name="echo")
        registry.register("echo", handler)

        assert registry.lookup("echo") is handler
        assert registry.lookup("echo").execute({"a": 1}) == {"a": 1}

    def test_last_registration_wins(self, registry):
        first = FunctionHandler(_echo, name="first")
        second = FunctionHandler(_echo, name="second")

        registry.register("echo", first)
        registry.register("echo", second)

        assert registry.lookup("echo") is second
        assert len(registry) == 1

    def test_has_and_contains(self, registry):
        registry.register("echo", FunctionHandler(_echo))

        assert registry.has("echo")
        assert "echo" in registry
        assert not registry.has("ping")
        assert 42 not in registry

    def test_list_plugins_sorted(self, registry):
        for name in ("zeta", "alpha", "mid"):
            registry.register(name, FunctionHandler(_echo))

        assert registry.list_plugins() == ["alpha", "mid", "zeta"]


class TestLookup:
    def test_unknown_id_raises_not_found(self, registry):
        registry.register("echo", FunctionHandler(_echo))

        with pytest.raises(HandlerNotFoundError) as exc_info:
            registry.lookup("ping")

        error = exc_info.value
        assert error.plugin_id == "ping"
        assert error.category is ErrorCategory.NOT_FOUND
        assert error.available == ["echo"]

    def test_not_found_is_lookup_error(self, registry):
        with pytest.raises(LookupError):
            registry.lookup("anything")

    def test_empty_string_id(self, registry):
        with pytest.raises(HandlerNotFoundError):
            registry.lookup("")


class TestRemoval:
    def test_unregister(self, registry):
        registry.register("echo", FunctionHandler(_echo))

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert not registry.has("echo")

    def test_clear(self, registry):
        registry.register("a", FunctionHandler(_echo))
        registry.register("b", IterableHandler(_echo))

        registry.clear()

        assert len(registry) == 0
        assert registry.list_plugins() == []


def test_registries_are_independent():
    one, two = HandlerRegistry(), HandlerRegistry()
    one.register("echo", FunctionHandler(_echo))

    assert one.has("echo")
    assert not two.has("echo")
