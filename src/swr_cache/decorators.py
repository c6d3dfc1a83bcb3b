"""
Decorator front-end for the SWR engine.

Example:
    swr = create_stale_while_revalidate_cache(storage=InMemStorage(), min_time_to_stale=30_000)

    @cached(swr, "product:{}")
    async def get_product(product_id: int):
        return await db.fetch_product(product_id)

    product = await get_product(42)
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, TypeVar

from .cache import StaleWhileRevalidate

T = TypeVar("T")


def make_key(key: str | Callable[..., Any], args: tuple, kwargs: dict) -> str:
    """
    Build a cache key from a template or key function.

    Templates are formatted with the first positional argument, or with the
    keyword arguments when called without positionals.
    """
    if callable(key):
        return str(key(*args, **kwargs))
    if "{" not in key:
        return key
    if args:
        return key.format(args[0])
    return key.format(**kwargs)


def cached(
    swr: StaleWhileRevalidate, key: str | Callable[..., Any]
) -> Callable[[Callable[..., T]], Callable[..., Awaitable[T]]]:
    """
    Route calls of the decorated function through swr.

    Args:
        swr: engine holding storage, timings and events
        key: key template (e.g. "user:{}") or function receiving the call's arguments

    The decorated function may be sync or async; the wrapper is always async.

    Example:
        @cached(swr, key=lambda user_id, lang="en": f"profile:{user_id}:{lang}")
        def get_profile(user_id, lang="en"):
            return render_profile(user_id, lang)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            cache_key = make_key(key, args, kwargs)
            return await swr.get(cache_key, lambda: func(*args, **kwargs))

        # Store engine reference for testing/debugging
        wrapper._swr = swr  # type: ignore
        return wrapper

    return decorator
