import asyncio

import pytest

from voicer.processing import EventBus, ProcessingEvent


@pytest.mark.asyncio
async def test_emit_calls_sync_and_async_listeners_in_order():
    bus = EventBus()
    received: list[tuple[str, dict]] = []

    def sync_listener(payload):
        received.append(("sync", payload))

    async def async_listener(payload):
        await asyncio.sleep(0)
        received.append(("async", payload))

    bus.on(ProcessingEvent.ITEM_START, sync_listener)
    bus.on("item:start", async_listener)

    await bus.emit(ProcessingEvent.ITEM_START, {"n": 1})

    assert received == [("sync", {"n": 1}), ("async", {"n": 1})]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others(caplog):
    bus = EventBus()
    received: list[dict] = []

    def broken(payload):
        raise RuntimeError("listener bug")

    bus.on(ProcessingEvent.COMPLETE, broken)
    bus.on(ProcessingEvent.COMPLETE, received.append)

    await bus.emit(ProcessingEvent.COMPLETE, {"ok": True})

    assert received == [{"ok": True}]
    assert "listener bug" in caplog.text


def test_unsubscribe_and_clear():
    bus = EventBus()
    received: list[dict] = []

    unsubscribe = bus.on(ProcessingEvent.PAUSED, received.append)
    assert bus.listener_count(ProcessingEvent.PAUSED) == 1

    unsubscribe()
    bus.emit_nowait(ProcessingEvent.PAUSED, {})
    assert received == []

    bus.on(ProcessingEvent.PAUSED, received.append)
    bus.clear()
    assert bus.listener_count(ProcessingEvent.PAUSED) == 0


@pytest.mark.asyncio
async def test_emit_nowait_schedules_async_listeners():
    bus = EventBus()
    received: list[dict] = []

    async def listener(payload):
        received.append(payload)

    bus.on(ProcessingEvent.CANCELLED, listener)
    bus.emit_nowait(ProcessingEvent.CANCELLED, {"processed": 2})
    assert received == []

    await bus.drain()

    assert received == [{"processed": 2}]


def test_emit_nowait_without_loop_drops_async_listener():
    bus = EventBus()

    async def listener(payload):
        raise AssertionError("should not run")

    bus.on(ProcessingEvent.CANCELLED, listener)
    bus.emit_nowait(ProcessingEvent.CANCELLED, {})
