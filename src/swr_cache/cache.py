"""
Stale-while-revalidate engine.

Serves cached values immediately, refreshes stale ones in a detached asyncio
task and computes synchronously only on a miss or after expiry. Every
decision is published on the engine's EventEmitter.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar, Union

from .config import Config, parse_config
from .events import EmitterEvents, EventEmitter, Listener
from .keys import CacheKey, to_cache_key, time_key_for
from .scheduler import RevalidationScheduler
from .storage import CacheEntry, now_ms, supports_atomic_write

logger = logging.getLogger(__name__)

T = TypeVar("T")

Producer = Callable[[], Union[T, Awaitable[T]]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class StaleWhileRevalidate:
    """
    SWR cache over any get_item/set_item storage.

    Example:
        swr = create_stale_while_revalidate_cache(
            storage=InMemStorage(),
            min_time_to_stale=5_000,
            max_time_to_live=60_000,
        )
        swr.on("cacheMiss", lambda payload: print("miss", payload["key"]))

        user = await swr("user:1", lambda: fetch_user(1))
    """

    def __init__(self, config: Config):
        self.config = config
        self.events = EventEmitter()
        self._background_tasks: set[asyncio.Task] = set()
        self._scheduler = RevalidationScheduler()

    async def __call__(self, cache_key: Any, producer: Producer[T]) -> T:
        return await self.get(cache_key, producer)

    # ------------------------------------------------------------------
    # Event notifier surface
    # ------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> StaleWhileRevalidate:
        self.events.on(event, listener)
        return self

    def once(self, event: str, listener: Listener) -> StaleWhileRevalidate:
        self.events.once(event, listener)
        return self

    def off(self, event: str, listener: Listener) -> StaleWhileRevalidate:
        self.events.off(event, listener)
        return self

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.events.emit(event, payload)

    def remove_all_listeners(self, event: str | None = None) -> StaleWhileRevalidate:
        self.events.remove_all_listeners(event)
        return self

    def listeners(self, event: str) -> list[Listener]:
        return self.events.listeners(event)

    def listener_count(self, event: str) -> int:
        return self.events.listener_count(event)

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    @property
    def pending_revalidations(self) -> int:
        """Number of background revalidations still running."""
        return len(self._background_tasks)

    async def get(self, cache_key: Any, producer: Producer[T]) -> T:
        """
        Return the cached value for cache_key, computing it with producer on a miss.

        Args:
            cache_key: string, zero-argument callable returning the key, or a
                LiteralKey/ComputedKey. Callables are evaluated once per call.
            producer: zero-argument callable, sync or async.

        Raises:
            Whatever producer raises when no usable cached value exists.
        """
        self.events.emit(EmitterEvents.invoke, {"key": cache_key, "producer": producer})

        key = to_cache_key(cache_key).resolve()
        time_key = time_key_for(key)
        storage = self.config.storage

        raw_value, cached_time = await asyncio.gather(
            _maybe_await(storage.get_item(key)),
            _maybe_await(storage.get_item(time_key)),
        )

        entry = CacheEntry.from_raw(self.config.deserialize(raw_value), cached_time)
        cached_value = entry.value

        if entry.is_expired(self.config.max_time_to_live):
            logger.debug(f"Cache EXPIRED: {key}, age={entry.age:.0f}ms")
            self.events.emit(
                EmitterEvents.cache_expired,
                {
                    "key": cache_key,
                    "age": entry.age,
                    "cached_time": cached_time,
                    "cached_value": cached_value,
                    "max_time_to_live": self.config.max_time_to_live,
                },
            )
            cached_value = None
        elif not entry.has_valid_time():
            # Value without a readable timestamp cannot be aged
            cached_value = None

        if cached_value:
            self.events.emit(
                EmitterEvents.cache_hit, {"key": cache_key, "cached_value": cached_value}
            )

            if entry.is_stale(self.config.min_time_to_stale):
                logger.debug(f"Cache HIT (stale): {key}, revalidating in background")
                self._spawn_revalidation(cache_key, key, producer)
            else:
                logger.debug(f"Cache HIT (fresh): {key}")

            return cached_value

        logger.debug(f"Cache MISS: {key}")
        self.events.emit(EmitterEvents.cache_miss, {"key": cache_key, "producer": producer})

        return await self._revalidate(cache_key, key, producer)

    async def revalidate(self, cache_key: Any, producer: Producer[T]) -> T:
        """Recompute and store the value for cache_key regardless of its age."""
        key = to_cache_key(cache_key).resolve()
        return await self._revalidate(cache_key, key, producer)

    async def _revalidate(self, cache_key: Any, key: str, producer: Producer[T]) -> T:
        try:
            self.events.emit(EmitterEvents.revalidate, {"key": cache_key, "producer": producer})
            result = await _maybe_await(producer())
        except Exception as e:
            self.events.emit(
                EmitterEvents.revalidate_failed,
                {"key": cache_key, "producer": producer, "error": e},
            )
            raise

        await self._persist(key, result)
        return result

    async def _persist(self, key: str, value: Any) -> None:
        storage = self.config.storage
        time_key = time_key_for(key)
        raw_value = self.config.serialize(value)
        timestamp = str(now_ms())

        if supports_atomic_write(storage):
            await _maybe_await(storage.set_items({key: raw_value, time_key: timestamp}))
        else:
            await _maybe_await(storage.set_item(key, raw_value))
            await _maybe_await(storage.set_item(time_key, timestamp))

    def _spawn_revalidation(self, cache_key: Any, key: str, producer: Producer[Any]) -> None:
        """Start a detached revalidation; its failure is reported only via events."""
        task = asyncio.ensure_future(self._revalidate(cache_key, key, producer))
        self._background_tasks.add(task)

        def done(fut: asyncio.Task) -> None:
            self._background_tasks.discard(fut)
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                logger.debug(f"Background revalidation failed for {key}: {error}")
            else:
                logger.debug(f"Background revalidation complete: {key}")

        task.add_done_callback(done)

    # ------------------------------------------------------------------
    # Scheduled revalidation
    # ------------------------------------------------------------------

    def schedule_revalidation(
        self,
        cache_key: str | CacheKey,
        producer: Producer[Any],
        interval_seconds: float,
        run_immediately: bool = True,
    ) -> str:
        """
        Revalidate cache_key every interval_seconds, keeping it warm.
        Must be called with an event loop running. Returns the job id.

        Example:
            swr.schedule_revalidation("categories", load_categories, interval_seconds=300)
        """
        key = to_cache_key(cache_key).resolve()

        async def refresh_job() -> None:
            try:
                await self._revalidate(cache_key, key, producer)
                logger.debug(f"Scheduled revalidation complete: {key}")
            except Exception as e:
                logger.error(f"Scheduled revalidation failed for {key}: {e}")

        self._scheduler.add(key, refresh_job, interval_seconds, run_immediately)
        return key

    def unschedule_revalidation(self, cache_key: str | CacheKey) -> bool:
        return self._scheduler.remove(to_cache_key(cache_key).resolve())

    def scheduled_keys(self) -> list[str]:
        return self._scheduler.job_ids()

    def shutdown(self, wait: bool = False) -> None:
        """Stop scheduled revalidation. Background revalidations already running are left alone."""
        self._scheduler.shutdown(wait=wait)


def create_stale_while_revalidate_cache(
    config: Config | Mapping[str, Any] | None = None, **options: Any
) -> StaleWhileRevalidate:
    """Validate options and build an engine with its own event emitter."""
    return StaleWhileRevalidate(parse_config(config, **options))
