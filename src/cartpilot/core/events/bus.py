"""In-process event bus feeding task and proxy updates to subscribers."""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import structlog

from cartpilot.core.events.types import EventType

logger = structlog.get_logger(__name__)

EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]

# Queued behind the last real event by stop(); the consumer exits on it
_STOP = object()


@dataclass
class Event:
    """One published event."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    source: str = "unknown"
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
        }


class AsyncEventBus:
    """
    Queue-backed publish/subscribe bus.

    Events are delivered in publish order by a single consumer task.
    Handlers for one event run one after another; a handler that raises is
    logged and counted, and the remaining handlers still run. Stopping the
    bus delivers everything already queued before the consumer exits.
    """

    def __init__(self, max_queue_size: int = 10000) -> None:
        self._subscribers: dict[EventType | None, list[EventHandler]] = {}
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_queue_size)
        self._consumer: asyncio.Task[None] | None = None
        self._counters: Counter[str] = Counter(
            events_published=0, events_processed=0, handler_errors=0
        )

    @property
    def is_running(self) -> bool:
        return self._consumer is not None

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._counters)

    async def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume(), name="event-bus")
            logger.info("Event bus started")

    async def stop(self) -> None:
        """Deliver queued events, then stop the consumer."""
        consumer, self._consumer = self._consumer, None
        if consumer is None:
            return
        await self._queue.put(_STOP)
        await consumer
        logger.info("Event bus stopped", **self.stats)

    def subscribe(
        self,
        event_type: EventType | None,
        handler: EventHandler,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            event_type: Type to receive, or None to receive every event

        Returns:
            Callable that removes the subscription
        """
        handlers = self._subscribers.setdefault(event_type, [])
        handlers.append(handler)
        return lambda: handlers.remove(handler)

    async def publish(self, event: Event) -> None:
        self._counters["events_published"] += 1
        await self._queue.put(event)

    async def emit(
        self,
        event_type: EventType,
        data: dict[str, Any] | None = None,
        source: str = "unknown",
    ) -> Event:
        """Build an Event and publish it."""
        event = Event(type=event_type, data=data or {}, source=source)
        await self.publish(event)
        return event

    async def _consume(self) -> None:
        while (event := await self._queue.get()) is not _STOP:
            for handler in self._handlers_for(event.type):
                await self._deliver(handler, event)
            self._counters["events_processed"] += 1

    def _handlers_for(self, event_type: EventType) -> list[EventHandler]:
        return [*self._subscribers.get(event_type, ()), *self._subscribers.get(None, ())]

    async def _deliver(self, handler: EventHandler, event: Event) -> None:
        try:
            await handler(event)
        except Exception as e:
            self._counters["handler_errors"] += 1
            logger.exception(
                "Event handler failed",
                handler=getattr(handler, "__name__", repr(handler)),
                event_type=event.type.value,
                error=str(e),
            )


__all__ = ["AsyncEventBus", "Event", "EventHandler", "EventType"]
