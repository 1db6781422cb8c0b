"""Persistent storage."""

from cartpilot.core.storage.database import Database, TaskStore
from cartpilot.core.storage.models import (
    Base,
    ProfileRecord,
    ProxyRecord,
    TaskRecord,
    TaskResultRecord,
)

__all__ = [
    "Base",
    "Database",
    "ProfileRecord",
    "ProxyRecord",
    "TaskRecord",
    "TaskResultRecord",
    "TaskStore",
]
