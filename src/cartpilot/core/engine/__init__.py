"""Session engine and task orchestration."""

from cartpilot.core.engine.orchestrator import STATUS_BY_STATE, RunningTask, TaskOrchestrator
from cartpilot.core.engine.session import (
    AutomationSession,
    SessionState,
    SessionUpdate,
    Transition,
)

__all__ = [
    "STATUS_BY_STATE",
    "AutomationSession",
    "RunningTask",
    "SessionState",
    "SessionUpdate",
    "TaskOrchestrator",
    "Transition",
]
