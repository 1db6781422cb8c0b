"""SQLAlchemy database models for CartPilot persistence.

Tables:
- profiles: checkout identities (card and account secrets vault-encrypted)
- proxies: proxy inventory with health (password vault-encrypted)
- tasks: purchase tasks and their persisted runtime status
- task_results: one row per finished session, cascade-deleted with the task
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from cartpilot.core.models.proxy import ProxyStatus, ProxyType
from cartpilot.core.models.task import TaskStatus, utc_now

Base = declarative_base()


class ProfileRecord(Base):
    """Checkout identity."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), default="")
    phone = Column(String(64), default="")

    shipping = Column(JSON, nullable=False, default=dict)
    billing = Column(JSON, nullable=True)

    # Encrypted JSON of the payment card
    card_encrypted = Column(Text, default="")

    account_email = Column(String(255), nullable=True)
    account_password_encrypted = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)

    tasks = relationship("TaskRecord", back_populates="profile")


class ProxyRecord(Base):
    """Proxy record with health tracking."""

    __tablename__ = "proxies"

    id = Column(String(36), primary_key=True)
    host = Column(String(255), nullable=False)
    port = Column(Integer, nullable=False)
    proxy_type = Column(Enum(ProxyType), default=ProxyType.HTTP)
    username = Column(String(255), nullable=True)
    password_encrypted = Column(Text, nullable=True)
    location = Column(String(64), nullable=True, index=True)

    # Health
    status = Column(Enum(ProxyStatus), default=ProxyStatus.ACTIVE, index=True)
    last_tested_at = Column(DateTime(timezone=True), nullable=True)
    response_time_ms = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)

    tasks = relationship("TaskRecord", back_populates="proxy")

    __table_args__ = (Index("idx_proxies_status_latency", "status", "response_time_ms"),)


class TaskRecord(Base):
    """Purchase task."""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    retailer = Column(String(64), nullable=False, index=True)
    product_url = Column(String(2048), nullable=True)
    product_id = Column(String(255), nullable=True)
    keywords = Column(String(512), nullable=True)
    size = Column(String(64), nullable=True)
    color = Column(String(64), nullable=True)

    profile_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    proxy_id = Column(String(36), ForeignKey("proxies.id", ondelete="SET NULL"), nullable=True)

    monitor_delay_ms = Column(Integer, default=3000)
    retry_delay_ms = Column(Integer, default=1500)

    status = Column(Enum(TaskStatus), default=TaskStatus.IDLE, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    profile = relationship("ProfileRecord", back_populates="tasks")
    proxy = relationship("ProxyRecord", back_populates="tasks")
    results = relationship(
        "TaskResultRecord",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TaskResultRecord(Base):
    """Terminal outcome of one session."""

    __tablename__ = "task_results"

    id = Column(String(36), primary_key=True)
    task_id = Column(
        String(36),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    success = Column(Boolean, nullable=False)
    order_reference = Column(String(255), nullable=True)
    price = Column(Float, nullable=True)
    error_message = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), default=utc_now)

    task = relationship("TaskRecord", back_populates="results")
