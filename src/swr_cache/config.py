"""
Configuration for the SWR engine.

Options are normalized once into an immutable Config; times are in milliseconds.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Mapping

from .storage import CacheStorage, validate_cache_storage


def pass_through(value: Any) -> Any:
    return value


def json_serialize(value: Any) -> str:
    return json.dumps(value)


def json_deserialize(raw: str | bytes | None) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


@dataclass(frozen=True)
class Config:
    """
    Normalized engine settings.

    Attributes:
        storage: backing store implementing get_item/set_item
        min_time_to_stale: age (ms) at/above which a hit is revalidated in background
        max_time_to_live: age (ms) above which a hit is discarded as expired
        serialize: value -> raw stored representation
        deserialize: raw stored representation (or None) -> value
    """

    storage: CacheStorage
    min_time_to_stale: float = 0
    max_time_to_live: float = math.inf
    serialize: Callable[[Any], Any] = field(default=pass_through)
    deserialize: Callable[[Any], Any] = field(default=pass_through)


def parse_config(config: Config | Mapping[str, Any] | None = None, **options: Any) -> Config:
    """
    Build a validated Config from a Config, a mapping, or keyword options.
    Keyword options override entries from config.

    Raises:
        TypeError: storage missing or lacking get_item/set_item, or unknown option
        ValueError: negative times or min_time_to_stale > max_time_to_live

    Example:
        config = parse_config(storage=InMemStorage(), min_time_to_stale=1000)
    """
    if isinstance(config, Config):
        values = {f.name: getattr(config, f.name) for f in fields(Config)}
    else:
        values = dict(config or {})
    values.update(options)

    known = {f.name for f in fields(Config)}
    unknown = set(values) - known
    if unknown:
        raise TypeError(f"Unknown config option(s): {', '.join(sorted(unknown))}")

    storage = values.get("storage")
    if storage is None or not validate_cache_storage(storage):
        raise TypeError("Invalid storage: expected an object with get_item and set_item")

    min_time_to_stale = values.get("min_time_to_stale")
    min_time_to_stale = 0 if min_time_to_stale is None else float(min_time_to_stale)
    max_time_to_live = values.get("max_time_to_live")
    max_time_to_live = math.inf if max_time_to_live is None else float(max_time_to_live)

    if min_time_to_stale < 0 or max_time_to_live < 0:
        raise ValueError("min_time_to_stale and max_time_to_live must be non-negative")
    if min_time_to_stale > max_time_to_live:
        raise ValueError("min_time_to_stale must not exceed max_time_to_live")

    serialize = values.get("serialize")
    deserialize = values.get("deserialize")

    return Config(
        storage=storage,
        min_time_to_stale=min_time_to_stale,
        max_time_to_live=max_time_to_live,
        serialize=serialize if callable(serialize) else pass_through,
        deserialize=deserialize if callable(deserialize) else pass_through,
    )
