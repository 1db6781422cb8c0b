"""Core module - models, interfaces, storage and the task engine."""

from cartpilot.core.engine.orchestrator import TaskOrchestrator
from cartpilot.core.engine.session import AutomationSession, SessionState
from cartpilot.core.events.bus import AsyncEventBus, Event, EventType
from cartpilot.core.registry.strategies import StrategyRegistry

__all__ = [
    "AsyncEventBus",
    "AutomationSession",
    "Event",
    "EventType",
    "SessionState",
    "StrategyRegistry",
    "TaskOrchestrator",
]
