"""
Stale-while-revalidate caching for asyncio.

Expose the SWR engine, its event vocabulary, storage backends, and helpers under `swr_cache`.
"""

from .storage import (
    InMemStorage,
    RedisStorage,
    CacheEntry,
    CacheStorage,
    validate_cache_storage,
)
from .config import (
    Config,
    parse_config,
    pass_through,
    json_serialize,
    json_deserialize,
)
from .events import EmitterEvents, EventEmitter
from .keys import LiteralKey, ComputedKey
from .cache import StaleWhileRevalidate, create_stale_while_revalidate_cache
from .decorators import cached

__all__ = [
    "InMemStorage",
    "RedisStorage",
    "CacheEntry",
    "CacheStorage",
    "validate_cache_storage",
    "Config",
    "parse_config",
    "pass_through",
    "json_serialize",
    "json_deserialize",
    "EmitterEvents",
    "EventEmitter",
    "LiteralKey",
    "ComputedKey",
    "StaleWhileRevalidate",
    "create_stale_while_revalidate_cache",
    "cached",
]
