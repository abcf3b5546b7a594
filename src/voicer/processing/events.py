"""Lifecycle event names and a small subscription registry."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)


class ProcessingEvent(str, Enum):
    START = "processing:start"
    ITEM_START = "item:start"
    ITEM_COMPLETE = "item:complete"
    ITEM_ERROR = "item:error"
    PAUSED = "processing:paused"
    RESUMED = "processing:resumed"
    CANCELLED = "processing:cancelled"
    COMPLETE = "processing:complete"


Listener = Callable[[dict[str, Any]], Union[None, Awaitable[None]]]
EventName = Union[ProcessingEvent, str]


def _key(event: EventName) -> str:
    return event.value if isinstance(event, ProcessingEvent) else event


class EventBus:
    """Register callbacks per event name and dispatch payloads to them.

    Listeners may be plain functions or coroutine functions. A failing
    listener is logged and never interrupts the job that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()

    def on(self, event: EventName, listener: Listener) -> Callable[[], None]:
        """Subscribe ``listener``; returns a callable that unsubscribes it."""
        self._listeners[_key(event)].append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: EventName, listener: Listener) -> None:
        listeners = self._listeners.get(_key(event))
        if listeners and listener in listeners:
            listeners.remove(listener)

    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self, event: EventName) -> int:
        return len(self._listeners.get(_key(event), ()))

    async def emit(self, event: EventName, payload: dict[str, Any]) -> None:
        """Call every listener for ``event`` and await async ones in order."""
        name = _key(event)
        for listener in list(self._listeners.get(name, ())):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for %s failed", name)

    def emit_nowait(self, event: EventName, payload: dict[str, Any]) -> None:
        """Dispatch from synchronous code.

        Plain listeners run immediately; awaitables they return are scheduled
        on the running loop.
        """
        name = _key(event)
        for listener in list(self._listeners.get(name, ())):
            try:
                result = listener(payload)
            except Exception:
                logger.exception("Listener for %s failed", name)
                continue
            if inspect.isawaitable(result):
                self._schedule(name, result)

    def _schedule(self, name: str, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropped async listener for %s", name)
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            return

        async def _run() -> None:
            try:
                await awaitable
            except Exception:
                logger.exception("Listener for %s failed", name)

        task = loop.create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for listeners scheduled by ``emit_nowait`` to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = ["EventBus", "EventName", "Listener", "ProcessingEvent"]
