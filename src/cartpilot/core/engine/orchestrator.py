"""Task orchestrator - owns the live sessions and their bookkeeping."""

from __future__ import annotations

import asyncio
import contextlib
from collections import Counter
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from cartpilot.core.engine.session import (
    AutomationSession,
    SessionState,
    SessionUpdate,
    SleepFunc,
)
from cartpilot.core.errors import ConfigurationError
from cartpilot.core.events.sink import TaskEvent
from cartpilot.core.models.config import Config
from cartpilot.core.models.task import CheckoutResult, TaskStatus

if TYPE_CHECKING:
    from cartpilot.core.events.sink import EventSink
    from cartpilot.core.interfaces.browser import IBrowserEngine
    from cartpilot.core.models.profile import CheckoutProfile
    from cartpilot.core.models.proxy import Proxy
    from cartpilot.core.models.task import Task
    from cartpilot.core.proxy.pool import ProxyPoolManager
    from cartpilot.core.registry.manager import PluginManager
    from cartpilot.core.registry.strategies import StrategyRegistry
    from cartpilot.core.storage.database import TaskStore

logger = structlog.get_logger(__name__)

# Session state -> persisted task status. Initializing is not persisted.
STATUS_BY_STATE: dict[SessionState, TaskStatus] = {
    SessionState.MONITORING: TaskStatus.MONITORING,
    SessionState.CARTING: TaskStatus.CARTING,
    SessionState.CHECKING_OUT: TaskStatus.CHECKOUT,
    SessionState.SUCCEEDED: TaskStatus.SUCCESS,
    SessionState.FAILED: TaskStatus.FAILED,
    SessionState.STOPPED: TaskStatus.IDLE,
}


@dataclass
class RunningTask:
    """Registry entry for a live session."""

    session: AutomationSession
    watcher: asyncio.Task[None]


class TaskOrchestrator:
    """
    Starts, stops and tracks automation sessions, one per task id.

    Every session update is persisted through the store and pushed to the
    event sink. Persistence failures are logged and reported to the sink;
    side effects already performed in the browser are never rolled back.
    """

    def __init__(
        self,
        store: TaskStore,
        sink: EventSink,
        strategies: StrategyRegistry,
        browser_engine: IBrowserEngine,
        proxy_pool: ProxyPoolManager | None = None,
        config: Config | None = None,
        plugins: PluginManager | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            store: Task status, result and profile persistence
            sink: Receiver of task events
            strategies: Retailer strategy registry
            browser_engine: Engine each session launches its browser from
            proxy_pool: Proxy lookup and selection
            config: Application configuration
            plugins: Plugin manager notified of session updates
            sleep: Inter-poll delay function handed to sessions
        """
        self.store = store
        self.sink = sink
        self.strategies = strategies
        self.browser_engine = browser_engine
        self.proxy_pool = proxy_pool
        self.config = config or Config()
        self.plugins = plugins
        self._sleep = sleep

        self._sessions: dict[str, RunningTask] = {}
        # Per-task start/stop locks, kept only while held or awaited
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    # ==================== Public API ====================

    def is_running(self, task_id: str) -> bool:
        """Check if a session is registered for the task."""
        return task_id in self._sessions

    def running_tasks(self) -> list[str]:
        return list(self._sessions)

    def get_session(self, task_id: str) -> AutomationSession | None:
        entry = self._sessions.get(task_id)
        return entry.session if entry else None

    async def start(self, task: Task) -> AutomationSession:
        """
        Start a session for the task, replacing any session already running.

        Raises:
            ConfigurationError: Missing product reference, unknown proxy or
                unknown profile
            Exception: Whatever the session start raised
        """
        async with self._task_lock(task.id):
            if task.id in self._sessions:
                logger.info("Task already running, restarting", task_id=task.id)
                await self._stop_registered(task.id)

            try:
                session = await self._start_session(task)
            except Exception as e:
                logger.error("Failed to start task", task_id=task.id, error=str(e))
                await self._persist_status(task.id, TaskStatus.IDLE)
                await self._publish(TaskEvent(task.id, TaskStatus.IDLE, error=str(e)))
                raise

            watcher = asyncio.create_task(self._watch(session), name=f"watch-{task.id}")
            self._sessions[task.id] = RunningTask(session=session, watcher=watcher)
            logger.info("Task started", task_id=task.id, retailer=task.retailer)
            return session

    async def stop(self, task_id: str) -> None:
        """
        Stop the task's session. Not running: warning only.

        The registry entry is removed even if the session's stop raises.
        """
        async with self._task_lock(task_id):
            if task_id not in self._sessions:
                logger.warning("Task not running", task_id=task_id)
                return
            await self._stop_registered(task_id)

    async def wait(self, task_id: str) -> SessionUpdate | None:
        """
        Block until the task's session finishes and its final update is handled.

        Returns None when the task is not running.
        """
        entry = self._sessions.get(task_id)
        if entry is None:
            return None
        update = await entry.session.wait()
        await asyncio.wait({entry.watcher})
        return update

    async def close(self) -> None:
        """Stop every running session."""
        for task_id in list(self._sessions):
            try:
                await self.stop(task_id)
            except Exception as e:
                logger.error("Failed to stop task on close", task_id=task_id, error=str(e))
        logger.info("Orchestrator closed")

    # ==================== Start / Stop ====================

    @contextlib.asynccontextmanager
    async def _task_lock(self, task_id: str) -> AsyncIterator[None]:
        """Serialize start/stop per task; the lock is dropped once unused."""
        lock = self._locks.setdefault(task_id, asyncio.Lock())
        self._lock_users[task_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[task_id] -= 1
            if self._lock_users[task_id] <= 0:
                del self._lock_users[task_id]
                del self._locks[task_id]

    async def _start_session(self, task: Task) -> AutomationSession:
        if not task.product_reference:
            raise ConfigurationError(f"Task {task.id} has no product URL or id")

        proxy = await self._resolve_proxy(task)
        profile = await self._load_profile(task)

        session = AutomationSession(
            task=task,
            strategies=self.strategies,
            browser_engine=self.browser_engine,
            proxy=proxy,
            profile=profile,
            config=self.config.session,
            sleep=self._sleep,
        )
        await session.start()
        return session

    async def _resolve_proxy(self, task: Task) -> Proxy | None:
        pool = self.proxy_pool

        if task.proxy_id:
            if pool is None:
                raise ConfigurationError(f"Task {task.id} names a proxy but no proxy pool is set")
            proxy = await pool.get_proxy(task.proxy_id)
            if proxy is None:
                raise ConfigurationError(f"Proxy {task.proxy_id} not found")
            return proxy

        if pool is None or not self.config.proxy.auto_select:
            return None

        proxy_id = await pool.select_best_proxy(task.retailer, self.config.proxy.location)
        if proxy_id is None:
            logger.info("No proxy available, running without proxy", task_id=task.id)
            return None
        return await pool.get_proxy(proxy_id)

    async def _load_profile(self, task: Task) -> CheckoutProfile | None:
        if not task.profile_id:
            return None
        profile = await self.store.get_profile(task.profile_id)
        if profile is None:
            raise ConfigurationError(f"Profile {task.profile_id} not found")
        return profile

    async def _stop_registered(self, task_id: str) -> None:
        entry = self._sessions[task_id]
        try:
            await entry.session.stop()
        except Exception as e:
            logger.error("Session stop failed", task_id=task_id, error=str(e))
            entry.watcher.cancel()
            await self._publish(TaskEvent(task_id, None, error=f"Stop failed: {e}"))
            raise
        else:
            # Let the terminal update be persisted before returning
            await asyncio.wait({entry.watcher})
        finally:
            if self._sessions.get(task_id) is entry:
                del self._sessions[task_id]
        logger.info("Task stopped", task_id=task_id)

    # ==================== Updates ====================

    async def _watch(self, session: AutomationSession) -> None:
        try:
            async for update in session.updates():
                await self._handle_update(session, update)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Session watcher crashed", task_id=session.task.id, error=str(e))

    async def _handle_update(self, session: AutomationSession, update: SessionUpdate) -> None:
        task_id = update.task_id
        status = STATUS_BY_STATE.get(update.state)
        if status is None:
            return

        persist_errors: list[str] = []

        if not await self._persist_status(task_id, status):
            persist_errors.append(f"status {status.value}")

        result = self._result_for(update)
        if result is not None:
            try:
                await self.store.add_result(result)
            except Exception as e:
                logger.error("Failed to persist result", task_id=task_id, error=str(e))
                persist_errors.append("checkout result")

        if self.plugins is not None:
            self.plugins.notify_session_update(update)

        await self._publish(TaskEvent(task_id, status, result=result, error=update.error))

        if persist_errors:
            await self._publish(
                TaskEvent(
                    task_id,
                    status,
                    error=f"Failed to persist {' and '.join(persist_errors)}",
                )
            )

        if update.is_terminal:
            entry = self._sessions.get(task_id)
            if entry is not None and entry.session is session:
                del self._sessions[task_id]
            logger.info("Task finished", task_id=task_id, status=status.value)

    @staticmethod
    def _result_for(update: SessionUpdate) -> CheckoutResult | None:
        if update.state is SessionState.SUCCEEDED:
            return update.result
        if update.state is SessionState.FAILED:
            return update.result or CheckoutResult.failed(
                update.task_id, update.error or "Session failed"
            )
        if update.state is SessionState.STOPPED:
            # A checkout that completed while stopping still stands
            return update.result
        return None

    async def _persist_status(self, task_id: str, status: TaskStatus) -> bool:
        try:
            await self.store.update_task_status(task_id, status)
        except Exception as e:
            logger.error(
                "Failed to persist task status",
                task_id=task_id,
                status=status.value,
                error=str(e),
            )
            return False
        return True

    async def _publish(self, event: TaskEvent) -> None:
        try:
            await self.sink.publish(event)
        except Exception as e:
            logger.error("Failed to publish task event", task_id=event.task_id, error=str(e))
