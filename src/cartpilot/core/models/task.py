"""Task data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class TaskStatus(str, Enum):
    """Persisted runtime status of a task."""

    IDLE = "idle"
    MONITORING = "monitoring"
    CARTING = "carting"
    CHECKOUT = "checkout"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """Check if the status belongs to a running session."""
        return self in (TaskStatus.MONITORING, TaskStatus.CARTING, TaskStatus.CHECKOUT)


@dataclass
class Task:
    """A user-defined intent to monitor and buy one product at one retailer."""

    retailer: str
    name: str = ""
    product_url: str | None = None
    product_id: str | None = None
    keywords: str | None = None

    # Option filters
    size: str | None = None
    color: str | None = None

    # References
    profile_id: str | None = None
    proxy_id: str | None = None

    # Timing (milliseconds)
    monitor_delay_ms: int = 3000
    retry_delay_ms: int = 1500

    id: str = field(default_factory=lambda: str(uuid4()))
    status: TaskStatus = TaskStatus.IDLE
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = f"{self.retailer} {self.product_reference or ''}".strip()

    @property
    def product_reference(self) -> str | None:
        """URL or id identifying the product."""
        return self.product_url or self.product_id

    @property
    def monitor_delay(self) -> float:
        """Inter-poll delay in seconds."""
        return self.monitor_delay_ms / 1000

    @property
    def retry_delay(self) -> float:
        """Inter-retry delay in seconds."""
        return self.retry_delay_ms / 1000

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "retailer": self.retailer,
            "product_url": self.product_url,
            "product_id": self.product_id,
            "keywords": self.keywords,
            "size": self.size,
            "color": self.color,
            "profile_id": self.profile_id,
            "proxy_id": self.proxy_id,
            "monitor_delay_ms": self.monitor_delay_ms,
            "retry_delay_ms": self.retry_delay_ms,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class CheckoutOutcome:
    """What a site strategy reports after submitting an order."""

    success: bool
    order_reference: str | None = None
    price: float | None = None


@dataclass(frozen=True)
class CheckoutResult:
    """Durable record of a session's terminal outcome."""

    task_id: str
    success: bool
    order_reference: str | None = None
    price: float | None = None
    error_message: str | None = None
    completed_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def succeeded(cls, task_id: str, outcome: CheckoutOutcome) -> CheckoutResult:
        """Build the record for a completed checkout."""
        return cls(
            task_id=task_id,
            success=True,
            order_reference=outcome.order_reference,
            price=outcome.price,
        )

    @classmethod
    def failed(cls, task_id: str, error_message: str) -> CheckoutResult:
        """Build the record for a failed session."""
        return cls(task_id=task_id, success=False, error_message=error_message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "task_id": self.task_id,
            "success": self.success,
            "order_reference": self.order_reference,
            "price": self.price,
            "error_message": self.error_message,
            "completed_at": self.completed_at.isoformat(),
        }
