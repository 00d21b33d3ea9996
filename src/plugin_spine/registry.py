"""Handler Registry — thread-safe plugin id → handler lookup.

Manifesto:
Front ends resolve ``"ping"`` to a Handler while a loader may be
(re)registering plugins on another thread.  The registry decouples
registration (at load time) from lookup (at execution time).  It is
an explicitly constructed instance owned by the runtime, never a
module-level singleton, so tests get isolated registries for free.

ARCHITECTURE
────────────
::

    HandlerRegistry
      ├── .register(plugin_id, handler)  ─ bind (last writer wins)
      ├── .lookup(plugin_id)             ─ Handler or HandlerNotFoundError
      ├── .has(plugin_id)                ─ existence check
      ├── .unregister(plugin_id)         ─ drop a binding
      └── .list_plugins()                ─ sorted ids

    Locking: many concurrent lookups, exclusive registration.
    A handler object is fully built before ``register`` publishes it,
    so a lookup never observes a partially-written binding.

Related modules:
    runtime.py  — PluginRuntime owns the registry
    handlers.py — the Handler contract stored here

Tags:
    plugin-spine, registry, handler-registry, lookup, thread-safety

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from plugin_spine.errors import HandlerNotFoundError
from plugin_spine.handlers import Handler
from plugin_spine.logging import get_logger

logger = get_logger(__name__)


class ReadWriteLock:
    """Many readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue
    behind it so registration cannot starve under constant lookups.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class HandlerRegistry:
    """Injectable, thread-safe handler registry.

    Example:
        >>> registry = HandlerRegistry()
        >>> registry.register("echo", FunctionHandler(lambda p: dict(p)))
        >>> registry.lookup("echo").execute({"a": 1})
        {'a': 1}
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._lock = ReadWriteLock()

    def register(self, plugin_id: str, handler: Handler) -> None:
        """Bind ``handler`` to ``plugin_id``, replacing any existing binding."""
        with self._lock.write():
            replaced = plugin_id in self._handlers
            self._handlers[plugin_id] = handler
        logger.debug("registry.registered", plugin_id=plugin_id, replaced=replaced)

    def lookup(self, plugin_id: str) -> Handler:
        """Return the handler bound to ``plugin_id``.

        Raises:
            HandlerNotFoundError: If nothing is bound to ``plugin_id``.
        """
        with self._lock.read():
            handler = self._handlers.get(plugin_id)
            if handler is None:
                raise HandlerNotFoundError(plugin_id, available=sorted(self._handlers))
            return handler

    def has(self, plugin_id: str) -> bool:
        """Check if a handler is bound."""
        with self._lock.read():
            return plugin_id in self._handlers

    def unregister(self, plugin_id: str) -> bool:
        """Drop a binding. Returns True if one was removed."""
        with self._lock.write():
            return self._handlers.pop(plugin_id, None) is not None

    def list_plugins(self) -> list[str]:
        """Sorted ids of all bound plugins."""
        with self._lock.read():
            return sorted(self._handlers)

    def clear(self) -> None:
        """Drop every binding (for testing)."""
        with self._lock.write():
            self._handlers.clear()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._handlers)

    def __contains__(self, plugin_id: object) -> bool:
        return isinstance(plugin_id, str) and self.has(plugin_id)
