"""Tests for EventEmitter."""
import pytest

from qdrop.utils import EventEmitter


@pytest.mark.asyncio
async def test_emit_sync_and_async_listeners():
    emitter = EventEmitter()
    seen = []

    async def on_async(value):
        seen.append(("async", value))

    emitter.on("complete", lambda value: seen.append(("sync", value)))
    emitter.on("complete", on_async)
    await emitter.emit("complete", 1)

    assert seen == [("sync", 1), ("async", 1)]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others():
    emitter = EventEmitter()
    seen = []

    def broken(value):
        raise RuntimeError("boom")

    emitter.on("fail", broken)
    emitter.on("fail", seen.append)
    await emitter.emit("fail", "x")

    assert seen == ["x"]


def test_on_is_idempotent_and_off_removes():
    emitter = EventEmitter()
    emitter.on("phase", print)
    emitter.on("phase", print)
    assert emitter.listener_count("phase") == 1
    emitter.off("phase", print)
    assert emitter.listener_count("phase") == 0
