"""Event type definitions."""

from enum import Enum


class EventType(str, Enum):
    """All event types in the system."""

    # Task lifecycle (pushed to the UI)
    TASK_UPDATE = "task.update"
    TASK_ERROR = "task.error"

    # Proxy pool
    PROXY_TESTED = "proxy.tested"
    PROXY_IMPORTED = "proxy.imported"
