"""
Cache key variants.

A key is either a literal string or a zero-argument factory evaluated once
per lookup, which allows keys built from request-scoped state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union

TIME_KEY_SUFFIX = "_time"


@dataclass(frozen=True)
class LiteralKey:
    value: Any

    def resolve(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ComputedKey:
    factory: Callable[[], Any]

    def resolve(self) -> str:
        return str(self.factory())


CacheKey = Union[LiteralKey, ComputedKey]


def to_cache_key(cache_key: Any) -> CacheKey:
    """Wrap a plain value or callable into its tagged key variant."""
    if isinstance(cache_key, (LiteralKey, ComputedKey)):
        return cache_key
    if callable(cache_key):
        return ComputedKey(cache_key)
    return LiteralKey(cache_key)


def time_key_for(key: str) -> str:
    """Storage key holding the write timestamp for key."""
    return f"{key}{TIME_KEY_SUFFIX}"
