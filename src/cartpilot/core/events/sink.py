"""UI event sink: where task lifecycle pushes go."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from cartpilot.core.events.types import EventType
from cartpilot.core.models.task import utc_now

if TYPE_CHECKING:
    from cartpilot.core.events.bus import AsyncEventBus
    from cartpilot.core.models.task import CheckoutResult, TaskStatus


@dataclass
class TaskEvent:
    """Push event describing a task status change or error."""

    task_id: str
    status: TaskStatus | None
    timestamp: datetime = field(default_factory=utc_now)
    result: CheckoutResult | None = None
    error: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": self.status.value if self.status else None,
            "timestamp": self.timestamp.isoformat(),
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


@runtime_checkable
class EventSink(Protocol):
    """Receives task events for presentation."""

    async def publish(self, event: TaskEvent) -> None:
        """Deliver one event."""
        ...


class EventBusSink:
    """Sink that forwards task events onto an AsyncEventBus."""

    def __init__(self, bus: AsyncEventBus, source: str = "orchestrator") -> None:
        self._bus = bus
        self._source = source

    async def publish(self, event: TaskEvent) -> None:
        event_type = EventType.TASK_ERROR if event.is_error else EventType.TASK_UPDATE
        await self._bus.emit(event_type, event.to_dict(), source=self._source)


class CollectingSink:
    """Sink that keeps events in memory, in order."""

    def __init__(self) -> None:
        self.events: list[TaskEvent] = []

    async def publish(self, event: TaskEvent) -> None:
        self.events.append(event)

    def for_task(self, task_id: str) -> list[TaskEvent]:
        return [e for e in self.events if e.task_id == task_id]
