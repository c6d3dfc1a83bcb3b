"""
Storage backends for the SWR cache.

Provides InMemStorage (in-memory), RedisStorage, the CacheStorage protocol and
the CacheEntry view the engine classifies. Backends may expose sync or async
methods; the engine awaits whatever is awaitable.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

try:
    import redis.asyncio as aioredis
except ImportError:
    aioredis = None  # type: ignore


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


# ============================================================================
# Cache Entry - Value/timestamp pair as read from storage
# ============================================================================


@dataclass
class CacheEntry:
    """Deserialized value plus the raw timestamp stored next to it."""

    value: Any
    cached_time: Any  # raw timestamp string, or None
    age: float  # milliseconds, NaN when the timestamp is missing or invalid

    @classmethod
    def from_raw(cls, value: Any, cached_time: Any, now: float | None = None) -> CacheEntry:
        now = now_ms() if now is None else now
        return cls(value=value, cached_time=cached_time, age=now - _to_number(cached_time))

    def has_valid_time(self) -> bool:
        return not math.isnan(self.age)

    def is_expired(self, max_time_to_live: float) -> bool:
        """Check if entry is older than max_time_to_live."""
        return self.age > max_time_to_live

    def is_stale(self, min_time_to_stale: float) -> bool:
        """Check if entry is due for background revalidation."""
        return self.age >= min_time_to_stale


def _to_number(raw: Any) -> float:
    if raw is None:
        return math.nan
    if isinstance(raw, bytes):
        raw = raw.decode()
    try:
        return float(raw)
    except (TypeError, ValueError):
        return math.nan


# ============================================================================
# Storage Protocol - Common interface for all backends
# ============================================================================


class CacheStorage(Protocol):
    """
    Protocol for SWR storage backends.

    Only get_item and set_item are required, each either sync or async.
    Backends able to write several keys atomically may also provide
    set_items(mapping); the engine then writes value and timestamp together.

    Example:
        class DictStorage:
            def __init__(self):
                self.data = {}

            async def get_item(self, key):
                return self.data.get(key)

            async def set_item(self, key, value):
                self.data[key] = value
    """

    def get_item(self, key: str) -> Any:
        """Return the raw stored string, or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> Any:
        """Store the raw string under key."""
        ...


def validate_cache_storage(storage: Any) -> bool:
    """
    Validate that an object implements the CacheStorage protocol.

    Returns:
        True if valid, False otherwise
    """
    required_methods = ["get_item", "set_item"]
    return all(
        hasattr(storage, method) and callable(getattr(storage, method))
        for method in required_methods
    )


def supports_atomic_write(storage: Any) -> bool:
    return callable(getattr(storage, "set_items", None))


# ============================================================================
# InMemStorage - In-memory storage
# ============================================================================


class InMemStorage:
    """
    Thread-safe in-memory storage. Entries are kept until overwritten or
    explicitly deleted.

    Attributes:
        _data: raw key/value map
        _lock: re-entrant lock to protect concurrent access
    """

    def __init__(self, data: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(data or {})
        self._lock = threading.RLock()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def set_items(self, items: Mapping[str, str]) -> None:
        """Write all items under one lock acquisition."""
        with self._lock:
            self._data.update(items)

    def delete_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        """Clear all stored data."""
        with self._lock:
            self._data.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# ============================================================================
# RedisStorage - Redis-backed storage
# ============================================================================


class RedisStorage:
    """
    Redis-backed storage using an asyncio client.

    Example:
        import redis.asyncio as redis
        client = redis.Redis(host='localhost', port=6379)
        storage = RedisStorage(client, prefix="app:")
        swr = create_stale_while_revalidate_cache(storage=storage, max_time_to_live=60_000)
    """

    def __init__(self, redis_client: Any, prefix: str = ""):
        """
        Initialize Redis storage.

        Args:
            redis_client: redis.asyncio.Redis instance
            prefix: Key prefix for namespacing
        """
        if aioredis is None:
            raise ImportError("redis package required. Install: pip install redis")
        self.client = redis_client
        self.prefix = prefix

    def _make_key(self, key: str) -> str:
        """Add prefix to key."""
        return f"{self.prefix}{key}"

    async def get_item(self, key: str) -> str | None:
        try:
            data = await self.client.get(self._make_key(key))
        except Exception as e:
            raise RuntimeError(f"Redis get failed: {e}") from e
        if isinstance(data, bytes):
            return data.decode()
        return data

    async def set_item(self, key: str, value: str) -> None:
        try:
            await self.client.set(self._make_key(key), value)
        except Exception as e:
            raise RuntimeError(f"Redis set failed: {e}") from e

    async def set_items(self, items: Mapping[str, str]) -> None:
        """Atomic multi-key write (MSET)."""
        try:
            await self.client.mset({self._make_key(k): v for k, v in items.items()})
        except Exception as e:
            raise RuntimeError(f"Redis mset failed: {e}") from e

    async def delete_item(self, key: str) -> None:
        try:
            await self.client.delete(self._make_key(key))
        except Exception as e:
            raise RuntimeError(f"Redis delete failed: {e}") from e
