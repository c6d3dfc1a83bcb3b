"""
Tests for the EventEmitter used by the engine.
"""

import asyncio
import logging

import pytest

from swr_cache import EmitterEvents, EventEmitter


def test_event_names_are_stable():
    assert EmitterEvents.all() == (
        "invoke",
        "cacheHit",
        "cacheExpired",
        "cacheMiss",
        "revalidate",
        "revalidateFailed",
    )


def test_listeners_run_in_registration_order():
    emitter = EventEmitter()
    calls = []

    emitter.on("cacheHit", lambda payload: calls.append(("first", payload)))
    emitter.on("cacheHit", lambda payload: calls.append(("second", payload)))
    emitter.on("cacheMiss", lambda payload: calls.append(("other", payload)))

    emitter.emit("cacheHit", {"key": "a"})

    assert calls == [("first", {"key": "a"}), ("second", {"key": "a"})]


def test_emit_without_listeners_is_noop():
    EventEmitter().emit("invoke", {"key": "a"})


def test_off_removes_by_identity():
    emitter = EventEmitter()
    calls = []

    def listener(payload):
        calls.append(payload)

    emitter.on("invoke", listener)
    emitter.on("invoke", lambda payload: calls.append("lambda"))
    emitter.off("invoke", listener)
    emitter.off("invoke", lambda payload: None)  # never registered

    emitter.emit("invoke", {"key": "a"})

    assert calls == ["lambda"]
    assert emitter.listener_count("invoke") == 1


def test_same_listener_registered_twice():
    emitter = EventEmitter()
    calls = []

    def listener(payload):
        calls.append(payload["key"])

    emitter.on("invoke", listener).on("invoke", listener)
    emitter.emit("invoke", {"key": "a"})
    emitter.off("invoke", listener)
    emitter.emit("invoke", {"key": "b"})

    assert calls == ["a", "a", "b"]


def test_once_runs_a_single_time():
    emitter = EventEmitter()
    calls = []

    def listener(payload):
        calls.append(payload["key"])

    emitter.once("cacheMiss", listener)
    assert emitter.listeners("cacheMiss") == [listener]

    emitter.emit("cacheMiss", {"key": "a"})
    emitter.emit("cacheMiss", {"key": "b"})

    assert calls == ["a"]
    assert emitter.listener_count("cacheMiss") == 0


def test_off_removes_once_listener():
    emitter = EventEmitter()
    calls = []

    def listener(payload):
        calls.append(payload)

    emitter.once("cacheMiss", listener)
    emitter.off("cacheMiss", listener)
    emitter.emit("cacheMiss", {"key": "a"})

    assert calls == []


def test_once_reentrant_emit_fires_once():
    emitter = EventEmitter()
    calls = []
    nested = {"done": False}

    def reentrant(payload):
        if not nested["done"]:
            nested["done"] = True
            emitter.emit("cacheHit", {"key": "inner"})

    emitter.on("cacheHit", reentrant)
    emitter.once("cacheHit", lambda payload: calls.append(payload["key"]))

    emitter.emit("cacheHit", {"key": "outer"})

    assert calls == ["inner"]
    assert emitter.listener_count("cacheHit") == 1


def test_failing_listener_is_isolated(caplog):
    emitter = EventEmitter()
    calls = []

    def bad(payload):
        raise RuntimeError("listener exploded")

    emitter.on("revalidate", bad)
    emitter.on("revalidate", lambda payload: calls.append(payload["key"]))

    with caplog.at_level(logging.ERROR, logger="swr_cache.events"):
        emitter.emit("revalidate", {"key": "a"})

    assert calls == ["a"]
    assert "listener exploded" in caplog.text


def test_subscription_changes_during_emit_use_snapshot():
    emitter = EventEmitter()
    calls = []

    def late(payload):
        calls.append("late")

    def second(payload):
        calls.append("second")

    def first(payload):
        calls.append("first")
        emitter.off("invoke", second)
        emitter.on("invoke", late)

    emitter.on("invoke", first)
    emitter.on("invoke", second)

    emitter.emit("invoke", {})
    assert calls == ["first", "second"]

    calls.clear()
    emitter.emit("invoke", {})
    assert calls == ["first", "late"]
    assert emitter.listener_count("invoke") == 3


def test_remove_all_listeners():
    emitter = EventEmitter()
    emitter.on("invoke", print).on("cacheHit", print)

    emitter.remove_all_listeners("invoke")
    assert emitter.listener_count("invoke") == 0
    assert emitter.listener_count("cacheHit") == 1

    emitter.remove_all_listeners()
    assert emitter.listener_count("cacheHit") == 0


@pytest.mark.asyncio
async def test_async_listener_is_scheduled_not_awaited():
    emitter = EventEmitter()
    started = []
    finished = []

    async def listener(payload):
        started.append(payload["key"])
        await asyncio.sleep(0)
        finished.append(payload["key"])

    emitter.on("cacheHit", listener)
    emitter.emit("cacheHit", {"key": "a"})

    assert started == []

    for _ in range(3):
        await asyncio.sleep(0)

    assert finished == ["a"]


@pytest.mark.asyncio
async def test_async_listener_failure_is_logged(caplog):
    emitter = EventEmitter()

    async def listener(payload):
        raise ValueError("async listener failed")

    emitter.on("cacheHit", listener)

    with caplog.at_level(logging.ERROR, logger="swr_cache.events"):
        emitter.emit("cacheHit", {"key": "a"})
        for _ in range(3):
            await asyncio.sleep(0)

    assert "async listener failed" in caplog.text


def test_async_listener_without_loop_is_dropped(caplog):
    emitter = EventEmitter()
    calls = []

    async def listener(payload):
        calls.append(payload)

    emitter.on("cacheHit", listener)

    with caplog.at_level(logging.WARNING, logger="swr_cache.events"):
        emitter.emit("cacheHit", {"key": "a"})

    assert calls == []
    assert "no running event loop" in caplog.text
