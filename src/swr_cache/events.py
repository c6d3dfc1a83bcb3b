"""
Event notifier for cache observability.

Every decision the SWR engine takes (hit, miss, expiry, revalidation) is
published through an EventEmitter owned by that engine instance.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], Any]


class EmitterEvents:
    """
    Event names emitted by the engine. External code depends on these exact strings.

    Payloads are dicts with snake_case keys:
        invoke, cacheMiss, revalidate: key, producer
        cacheHit: key, cached_value
        cacheExpired: key, age, cached_time, cached_value, max_time_to_live
        revalidateFailed: key, producer, error

    key is the cache key argument as the caller passed it.
    """

    invoke = "invoke"
    cache_hit = "cacheHit"
    cache_expired = "cacheExpired"
    cache_miss = "cacheMiss"
    revalidate = "revalidate"
    revalidate_failed = "revalidateFailed"

    @classmethod
    def all(cls) -> tuple[str, ...]:
        return (
            cls.invoke,
            cls.cache_hit,
            cls.cache_expired,
            cls.cache_miss,
            cls.revalidate,
            cls.revalidate_failed,
        )


class EventEmitter:
    """
    Synchronous publish/subscribe registry.

    Listeners for one event run in registration order. A listener that raises
    is logged and skipped; the emitter never sees the error. Listeners that
    return an awaitable are scheduled on the running loop but not awaited.

    Example:
        emitter = EventEmitter()
        emitter.on("cacheHit", lambda payload: print(payload["key"]))
        emitter.emit("cacheHit", {"key": "user:1", "cached_value": "..."})
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.RLock()
        self._pending: set[asyncio.Future] = set()

    def on(self, event: str, listener: Listener) -> EventEmitter:
        """Register listener for event."""
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        return self

    def once(self, event: str, listener: Listener) -> EventEmitter:
        """Register listener that is removed after its first call."""

        fired = False

        def wrapper(payload: dict[str, Any]) -> Any:
            nonlocal fired
            # A re-entrant emit may already have consumed it
            if fired:
                return None
            fired = True
            self.off(event, wrapper)
            return listener(payload)

        wrapper.listener = listener  # type: ignore
        return self.on(event, wrapper)

    def off(self, event: str, listener: Listener) -> EventEmitter:
        """Remove the most recently registered occurrence of listener."""
        with self._lock:
            registered = self._listeners.get(event)
            if not registered:
                return self
            for index in range(len(registered) - 1, -1, -1):
                candidate = registered[index]
                if candidate is listener or getattr(candidate, "listener", None) is listener:
                    del registered[index]
                    break
            if not registered:
                del self._listeners[event]
        return self

    def remove_all_listeners(self, event: str | None = None) -> EventEmitter:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)
        return self

    def listeners(self, event: str) -> list[Listener]:
        with self._lock:
            return [
                getattr(listener, "listener", listener)
                for listener in self._listeners.get(event, ())
            ]

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, ()))

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Call every listener for event with payload. Never raises."""
        # Snapshot so on/off inside a listener does not affect this emission
        with self._lock:
            listeners = list(self._listeners.get(event, ()))

        for listener in listeners:
            try:
                result = listener(payload)
            except Exception as e:
                logger.error(f"Listener for '{event}' failed: {e}", exc_info=True)
                continue

            if inspect.isawaitable(result):
                self._detach(event, result)

    def _detach(self, event: str, awaitable: Any) -> None:
        """Run an async listener's result on the current loop without awaiting it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning(f"Dropped async listener for '{event}': no running event loop")
            return

        future = asyncio.ensure_future(awaitable, loop=loop)

        self._pending.add(future)

        def done(fut: asyncio.Future) -> None:
            self._pending.discard(fut)
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                logger.error(
                    f"Async listener for '{event}' failed: {error}", exc_info=error
                )

        future.add_done_callback(done)
