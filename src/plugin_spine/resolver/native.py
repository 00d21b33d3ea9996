"""Native handler table — well-known plugin ids served in-process.

The table is a static registration map (id → handler factory) filled
at import time by the ``register`` decorator, then read-only.  It is
the resolver's fastest path and never touches the filesystem.

Usage::

    table = NativeTable()

    @table.register("echo")
    def echo(params):
        return dict(params)

    handler = table.create("echo")
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from types import MappingProxyType

from plugin_spine.handlers import ExecuteFunc, FunctionHandler, Handler

HandlerFactory = Callable[[], Handler]


class NativeTable:
    """Registration table mapping plugin ids to handler factories."""

    def __init__(self) -> None:
        self._factories: dict[str, HandlerFactory] = {}

    def register(self, plugin_id: str) -> Callable[[Callable], Callable]:
        """Decorator registering a function or a zero-argument handler factory.

        A plain ``(params) -> result`` function is wrapped in a
        :class:`FunctionHandler`.  A class or factory is called once per
        ``create()`` so each resolution gets its own handler instance.
        """

        def decorator(target: Callable) -> Callable:
            if isinstance(target, type):
                self._factories[plugin_id] = target
            else:
                self._factories[plugin_id] = _function_factory(target, plugin_id)
            return target

        return decorator

    def add(self, plugin_id: str, factory: HandlerFactory) -> None:
        """Register a handler factory directly."""
        self._factories[plugin_id] = factory

    def create(self, plugin_id: str) -> Handler | None:
        """Build the native handler for ``plugin_id``, or None if not native."""
        factory = self._factories.get(plugin_id)
        return factory() if factory is not None else None

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._factories))

    def __len__(self) -> int:
        return len(self._factories)

    def as_mapping(self) -> MappingProxyType[str, HandlerFactory]:
        return MappingProxyType(self._factories)


def _function_factory(func: ExecuteFunc, plugin_id: str) -> HandlerFactory:
    def factory() -> Handler:
        return FunctionHandler(func, name=plugin_id)

    return factory
