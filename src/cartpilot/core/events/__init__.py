"""Event system for decoupled communication."""

from cartpilot.core.events.bus import AsyncEventBus, Event, EventHandler, EventType
from cartpilot.core.events.sink import CollectingSink, EventBusSink, EventSink, TaskEvent

__all__ = [
    "AsyncEventBus",
    "CollectingSink",
    "Event",
    "EventBusSink",
    "EventHandler",
    "EventSink",
    "EventType",
    "TaskEvent",
]
