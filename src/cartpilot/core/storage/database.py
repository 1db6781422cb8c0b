"""Database connection and record operations.

Provides async database access with:
- SQLite via aiosqlite (default) or any SQLAlchemy async URL
- Foreign keys enforced on SQLite so results cascade with their task
- Conversion between table rows and domain dataclasses
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog
from sqlalchemy import delete, event, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cartpilot.core.errors import StoreError
from cartpilot.core.models.config import DatabaseConfig
from cartpilot.core.models.profile import Address, CheckoutProfile, PaymentCard
from cartpilot.core.models.proxy import Proxy, ProxyStatus
from cartpilot.core.models.task import CheckoutResult, Task, TaskStatus, utc_now
from cartpilot.core.storage.models import (
    Base,
    ProfileRecord,
    ProxyRecord,
    TaskRecord,
    TaskResultRecord,
)

if TYPE_CHECKING:
    from cartpilot.core.security.vault import CredentialVault

logger = structlog.get_logger(__name__)

PROXY_FIELDS = frozenset(
    {
        "host",
        "port",
        "proxy_type",
        "username",
        "password",
        "location",
        "status",
        "last_tested_at",
        "response_time_ms",
    }
)


@runtime_checkable
class TaskStore(Protocol):
    """Persistence operations the orchestrator depends on."""

    async def update_task_status(self, task_id: str, status: TaskStatus) -> bool:
        ...

    async def add_result(self, result: CheckoutResult) -> None:
        ...

    async def get_profile(self, profile_id: str) -> CheckoutProfile | None:
        ...


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Database:
    """Async database manager.

    Usage:
        db = Database(DatabaseConfig(), vault=FernetVault(key))
        await db.init()

        task = await db.create_task(Task(retailer="shopify", product_url=url))
        await db.update_task_status(task.id, TaskStatus.MONITORING)

        await db.close()

    Proxy rows hold the password exactly as given (the proxy pool seals
    it). Profile card and account secrets are sealed here with the vault.
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        vault: CredentialVault | None = None,
    ) -> None:
        self.config = config or DatabaseConfig()
        self._vault = vault
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._initialized = False

    async def init(self) -> None:
        """Initialize database connection and create tables."""
        if self._initialized:
            return

        url = self.config.url
        engine_kwargs: dict[str, Any] = {"echo": self.config.echo}

        is_sqlite = url.startswith("sqlite")
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            engine_kwargs["poolclass"] = StaticPool

        self._engine = create_async_engine(url, **engine_kwargs)

        if is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self._initialized = True
        logger.info("Database initialized", url=url.split("@")[-1])

    async def close(self) -> None:
        """Close database connection."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False
            logger.info("Database connection closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session context that commits on success.

        SQLAlchemy errors are re-raised as StoreError.
        """
        if not self._session_factory:
            await self.init()

        assert self._session_factory is not None
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ==================== Task Operations ====================

    async def create_task(self, task: Task) -> Task:
        """Insert a task and return it as stored."""
        async with self.session() as session:
            record = TaskRecord(
                id=task.id,
                name=task.name,
                retailer=task.retailer,
                product_url=task.product_url,
                product_id=task.product_id,
                keywords=task.keywords,
                size=task.size,
                color=task.color,
                profile_id=task.profile_id,
                proxy_id=task.proxy_id,
                monitor_delay_ms=task.monitor_delay_ms,
                retry_delay_ms=task.retry_delay_ms,
                status=task.status,
                created_at=task.created_at,
                updated_at=task.updated_at,
            )
            session.add(record)
            await session.flush()
            return _task_from_record(record)

    async def get_task(self, task_id: str) -> Task | None:
        """Get task by ID."""
        async with self.session() as session:
            record = await session.get(TaskRecord, task_id)
            return _task_from_record(record) if record else None

    async def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        async with self.session() as session:
            query = select(TaskRecord).order_by(TaskRecord.created_at)
            if status is not None:
                query = query.where(TaskRecord.status == status)
            result = await session.execute(query)
            return [_task_from_record(r) for r in result.scalars().all()]

    async def update_task_status(self, task_id: str, status: TaskStatus) -> bool:
        """Persist a task's runtime status and bump updated_at.

        Returns:
            False if the task does not exist
        """
        async with self.session() as session:
            result = await session.execute(
                update(TaskRecord)
                .where(TaskRecord.id == task_id)
                .values(status=status, updated_at=utc_now())
            )
            return bool(result.rowcount)

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task; its results go with it."""
        async with self.session() as session:
            result = await session.execute(delete(TaskRecord).where(TaskRecord.id == task_id))
            return bool(result.rowcount)

    # ==================== Result Operations ====================

    async def add_result(self, result: CheckoutResult) -> None:
        """Insert one checkout result."""
        async with self.session() as session:
            session.add(
                TaskResultRecord(
                    id=result.id,
                    task_id=result.task_id,
                    success=result.success,
                    order_reference=result.order_reference,
                    price=result.price,
                    error_message=result.error_message,
                    completed_at=result.completed_at,
                )
            )

    async def list_results(
        self,
        task_id: str | None = None,
        limit: int = 100,
    ) -> list[CheckoutResult]:
        """Most recent results first."""
        async with self.session() as session:
            query = select(TaskResultRecord).order_by(TaskResultRecord.completed_at.desc())
            if task_id is not None:
                query = query.where(TaskResultRecord.task_id == task_id)
            result = await session.execute(query.limit(limit))
            return [_result_from_record(r) for r in result.scalars().all()]

    # ==================== Proxy Operations ====================

    async def create_proxy(self, proxy: Proxy) -> Proxy:
        async with self.session() as session:
            record = ProxyRecord(
                id=proxy.id,
                host=proxy.host,
                port=proxy.port,
                proxy_type=proxy.proxy_type,
                username=proxy.username,
                password_encrypted=proxy.password,
                location=proxy.location,
                status=proxy.status,
                last_tested_at=proxy.last_tested_at,
                response_time_ms=proxy.response_time_ms,
                created_at=proxy.created_at,
            )
            session.add(record)
            await session.flush()
            return _proxy_from_record(record)

    async def get_proxy(self, proxy_id: str) -> Proxy | None:
        async with self.session() as session:
            record = await session.get(ProxyRecord, proxy_id)
            return _proxy_from_record(record) if record else None

    async def list_proxies(self, status: ProxyStatus | None = None) -> list[Proxy]:
        async with self.session() as session:
            query = select(ProxyRecord).order_by(ProxyRecord.created_at)
            if status is not None:
                query = query.where(ProxyRecord.status == status)
            result = await session.execute(query)
            return [_proxy_from_record(r) for r in result.scalars().all()]

    async def update_proxy(self, proxy_id: str, **fields: Any) -> bool:
        """
        Update proxy columns.

        Raises:
            ValueError: If a field is not a proxy attribute
        """
        unknown = set(fields) - PROXY_FIELDS
        if unknown:
            raise ValueError(f"Unknown proxy fields: {', '.join(sorted(unknown))}")
        if not fields:
            return await self.get_proxy(proxy_id) is not None

        values = dict(fields)
        if "password" in values:
            values["password_encrypted"] = values.pop("password")

        async with self.session() as session:
            result = await session.execute(
                update(ProxyRecord).where(ProxyRecord.id == proxy_id).values(**values)
            )
            return bool(result.rowcount)

    async def delete_proxy(self, proxy_id: str) -> bool:
        async with self.session() as session:
            result = await session.execute(delete(ProxyRecord).where(ProxyRecord.id == proxy_id))
            return bool(result.rowcount)

    async def find_fastest_proxy(self, location: str | None = None) -> Proxy | None:
        """Active proxy with the lowest recorded latency; unmeasured ones last."""
        async with self.session() as session:
            query = select(ProxyRecord).where(ProxyRecord.status == ProxyStatus.ACTIVE)
            if location is not None:
                query = query.where(ProxyRecord.location == location)
            query = query.order_by(
                ProxyRecord.response_time_ms.is_(None),
                ProxyRecord.response_time_ms.asc(),
                ProxyRecord.created_at.asc(),
            ).limit(1)
            record = (await session.execute(query)).scalars().first()
            return _proxy_from_record(record) if record else None

    # ==================== Profile Operations ====================

    async def create_profile(self, profile: CheckoutProfile) -> CheckoutProfile:
        async with self.session() as session:
            session.add(
                ProfileRecord(
                    id=profile.id,
                    name=profile.name,
                    email=profile.email,
                    phone=profile.phone,
                    shipping=asdict(profile.shipping),
                    billing=asdict(profile.billing) if profile.billing else None,
                    card_encrypted=self._seal(json.dumps(asdict(profile.card))),
                    account_email=profile.account_email,
                    account_password_encrypted=(
                        self._seal(profile.account_password) if profile.account_password else None
                    ),
                    created_at=profile.created_at,
                )
            )
        return profile

    async def get_profile(self, profile_id: str) -> CheckoutProfile | None:
        async with self.session() as session:
            record = await session.get(ProfileRecord, profile_id)
            return self._profile_from_record(record) if record else None

    async def list_profiles(self) -> list[CheckoutProfile]:
        async with self.session() as session:
            result = await session.execute(select(ProfileRecord).order_by(ProfileRecord.name))
            return [self._profile_from_record(r) for r in result.scalars().all()]

    async def delete_profile(self, profile_id: str) -> bool:
        async with self.session() as session:
            result = await session.execute(
                delete(ProfileRecord).where(ProfileRecord.id == profile_id)
            )
            return bool(result.rowcount)

    def _seal(self, plaintext: str) -> str:
        return self._vault.encrypt(plaintext) if self._vault else plaintext

    def _unseal(self, ciphertext: str) -> str:
        return self._vault.decrypt(ciphertext) if self._vault else ciphertext

    def _profile_from_record(self, record: ProfileRecord) -> CheckoutProfile:
        card_json = self._unseal(record.card_encrypted or "")
        return CheckoutProfile(
            id=record.id,
            name=record.name,
            email=record.email or "",
            phone=record.phone or "",
            shipping=Address.from_dict(record.shipping),
            billing=Address.from_dict(record.billing) if record.billing else None,
            card=PaymentCard.from_dict(json.loads(card_json) if card_json else None),
            account_email=record.account_email,
            account_password=(
                self._unseal(record.account_password_encrypted)
                if record.account_password_encrypted
                else None
            ),
            created_at=_aware(record.created_at) or utc_now(),
        )


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _task_from_record(record: TaskRecord) -> Task:
    return Task(
        id=record.id,
        name=record.name,
        retailer=record.retailer,
        product_url=record.product_url,
        product_id=record.product_id,
        keywords=record.keywords,
        size=record.size,
        color=record.color,
        profile_id=record.profile_id,
        proxy_id=record.proxy_id,
        monitor_delay_ms=record.monitor_delay_ms,
        retry_delay_ms=record.retry_delay_ms,
        status=record.status,
        created_at=_aware(record.created_at) or utc_now(),
        updated_at=_aware(record.updated_at) or utc_now(),
    )


def _proxy_from_record(record: ProxyRecord) -> Proxy:
    return Proxy(
        id=record.id,
        host=record.host,
        port=record.port,
        proxy_type=record.proxy_type,
        username=record.username,
        password=record.password_encrypted,
        location=record.location,
        status=record.status,
        last_tested_at=_aware(record.last_tested_at),
        response_time_ms=record.response_time_ms,
        created_at=_aware(record.created_at) or utc_now(),
    )


def _result_from_record(record: TaskResultRecord) -> CheckoutResult:
    return CheckoutResult(
        id=record.id,
        task_id=record.task_id,
        success=record.success,
        order_reference=record.order_reference,
        price=record.price,
        error_message=record.error_message,
        completed_at=_aware(record.completed_at) or utc_now(),
    )
