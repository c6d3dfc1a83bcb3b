"""Shared fixtures for swr_cache tests."""

from __future__ import annotations

import asyncio

import pytest

from swr_cache import EmitterEvents, InMemStorage
from swr_cache.storage import now_ms


class EventRecorder:
    """Collects (event, payload) pairs from every engine event."""

    def __init__(self, swr):
        self.events: list[tuple[str, dict]] = []
        for name in EmitterEvents.all():
            swr.on(name, lambda payload, name=name: self.events.append((name, payload)))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> list[dict]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def storage() -> InMemStorage:
    return InMemStorage()


@pytest.fixture
def seed(storage):
    """Write a value whose timestamp is age_ms in the past."""

    def _seed(key: str, value: str, age_ms: int) -> None:
        storage.set_item(key, value)
        storage.set_item(f"{key}_time", str(now_ms() - age_ms))

    return _seed


async def drain(swr, timeout: float = 2.0) -> None:
    """Wait until all background revalidations of swr finished."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while swr.pending_revalidations:
        if loop.time() > deadline:
            raise AssertionError("background revalidation did not finish")
        await asyncio.sleep(0.01)
