"""Automation session: one task's monitor, cart and checkout run.

A session owns one browser handle for its whole life and reports every
state change through an update channel (see ``updates()`` and ``wait()``).

    INITIALIZING -> MONITORING -> CARTING -> CHECKING_OUT -> SUCCEEDED
                        |  ^          |            |
                        +--+          +--> FAILED <+
    any non-terminal state -> STOPPED (explicit stop)

Monitoring polls with a fixed delay measured from when the previous poll
settled. Poll errors reload the page and keep polling. Once availability
is seen the session moves on to carting and never polls again.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from cartpilot.core.errors import BlockedError, CheckoutError, SessionError
from cartpilot.core.interfaces.strategy import Capability
from cartpilot.core.models.config import SessionConfig
from cartpilot.core.models.task import CheckoutResult, utc_now

if TYPE_CHECKING:
    from cartpilot.core.interfaces.browser import IBrowserEngine, IBrowserHandle
    from cartpilot.core.interfaces.strategy import SiteStrategy
    from cartpilot.core.models.profile import CheckoutProfile
    from cartpilot.core.models.proxy import Proxy
    from cartpilot.core.models.task import Task
    from cartpilot.core.registry.strategies import StrategyRegistry

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class SessionState(str, Enum):
    """In-memory state of an automation session."""

    INITIALIZING = "initializing"
    MONITORING = "monitoring"
    CARTING = "carting"
    CHECKING_OUT = "checking_out"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.SUCCEEDED, SessionState.FAILED, SessionState.STOPPED)


@dataclass(frozen=True)
class Transition:
    """One recorded state change (self-transitions included)."""

    source: SessionState
    target: SessionState
    at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SessionUpdate:
    """Message on a session's update channel."""

    task_id: str
    state: SessionState
    result: CheckoutResult | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


class AutomationSession:
    """Drives one task through its site strategy."""

    def __init__(
        self,
        task: Task,
        strategies: StrategyRegistry,
        browser_engine: IBrowserEngine,
        proxy: Proxy | None = None,
        profile: CheckoutProfile | None = None,
        config: SessionConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the session.

        Args:
            task: Task to run
            strategies: Registry resolving the task's retailer
            browser_engine: Engine providing the browser and page
            proxy: Proxy the browser is launched behind
            profile: Checkout identity handed to the strategy
            config: Session timing configuration
            sleep: Inter-poll delay function
        """
        self.task = task
        self.proxy = proxy
        self.profile = profile
        self.config = config or SessionConfig()

        self._strategies = strategies
        self._engine = browser_engine
        self._sleep = sleep

        self._state = SessionState.INITIALIZING
        self.transitions: list[Transition] = []
        self.availability_checks = 0

        self._handle: IBrowserHandle | None = None
        self._strategy: SiteStrategy | None = None
        self._runner: asyncio.Task[None] | None = None

        self._updates: asyncio.Queue[SessionUpdate] = asyncio.Queue()
        self._done = asyncio.Event()
        self._terminal: SessionUpdate | None = None

        self._started = False
        self._stop_requested = False
        self._finishing = False
        self._idle = False
        self._released = False
        self._stopped_result: CheckoutResult | None = None

        self._log = logger.bind(task_id=task.id, retailer=task.retailer)

    # ==================== Inspection ====================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def strategy(self) -> SiteStrategy | None:
        return self._strategy

    @property
    def is_finished(self) -> bool:
        return self._done.is_set()

    async def updates(self) -> AsyncIterator[SessionUpdate]:
        """Yield every state change; the terminal update comes last."""
        while True:
            update = await self._updates.get()
            yield update
            if update.is_terminal:
                return

    async def wait(self) -> SessionUpdate:
        """Wait for the session to end and return its terminal update."""
        await self._done.wait()
        return self._terminal  # set together with _done

    # ==================== Lifecycle ====================

    async def start(self) -> None:
        """
        Acquire the browser, bind the strategy and begin monitoring.

        Raises:
            SessionError: If the session was already started
            Exception: Whatever the browser launch or strategy lookup raised;
                the session is Failed by then
        """
        if self._started:
            raise SessionError(f"Session for task {self.task.id} already started")
        self._started = True

        self._log.info(
            "Starting session",
            proxy_id=self.proxy.id if self.proxy else None,
        )

        try:
            handle = await self._engine.launch(self.proxy)
        except Exception as e:
            self._log.error("Browser launch failed", error=str(e))
            if self._stop_requested:
                raise
            await self._finish(SessionState.FAILED, error=f"Browser launch failed: {e}")
            raise

        if self._stop_requested:
            # Stopped while launching; the stop already completed
            with contextlib.suppress(Exception):
                await handle.close()
            return

        self._handle = handle
        try:
            self._strategy = self._strategies.create(
                self.task.retailer, handle.page, self.task, self.profile
            )
        except Exception as e:
            self._log.error("Strategy setup failed", error=str(e))
            await self._finish(SessionState.FAILED, error=str(e))
            raise

        self._transition(SessionState.MONITORING)
        self._runner = asyncio.create_task(self._run(), name=f"session-{self.task.id}")

    async def stop(self) -> SessionUpdate:
        """
        Stop the session and release its browser.

        An inter-poll delay is cancelled at once. A strategy call already
        underway gets ``config.stop_timeout`` seconds to settle before the
        runner is cancelled.

        Returns:
            The terminal update (Stopped, or the outcome that was already
            being finalized)
        """
        if self._finishing or self._state.is_terminal:
            return await self.wait()

        self._stop_requested = True
        runner = self._runner
        self._log.info("Stopping session", state=self._state.value)

        if runner is not None and not runner.done():
            if self._idle:
                runner.cancel()
            else:
                await asyncio.wait({runner}, timeout=self.config.stop_timeout)
                if not runner.done():
                    self._log.warning(
                        "Unit of work did not settle in time, cancelling",
                        timeout=self.config.stop_timeout,
                    )
                    runner.cancel()
            await asyncio.wait({runner})

        if self._finishing:
            return await self.wait()

        await self._finish(SessionState.STOPPED, result=self._stopped_result)
        return await self.wait()

    # ==================== Runner ====================

    async def _run(self) -> None:
        strategy = self._strategy
        if strategy is None:
            return
        try:
            if not await self._monitor(strategy):
                return
            if not await self._cart(strategy):
                return
            result = await self._checkout(strategy)
            if result is None:
                return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._stop_requested:
                self._log.info("Error while stopping", error=str(e))
                return
            self._log.error("Session failed", state=self._state.value, error=str(e))
            await self._finish(
                SessionState.FAILED,
                result=CheckoutResult.failed(self.task.id, str(e)),
                error=str(e),
            )
            return

        await self._finish(SessionState.SUCCEEDED, result=result)

    async def _monitor(self, strategy: SiteStrategy) -> bool:
        """Poll until the product is available. False if stopped first."""
        while not self._stop_requested:
            self.availability_checks += 1
            try:
                available = await strategy.check_availability()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._stop_requested:
                    self._log.info("Availability check failed while stopping", error=str(e))
                    return False
                self._log.warning(
                    "Availability check failed, reloading",
                    check=self.availability_checks,
                    error=str(e),
                )
                await self._reload()
                available = False

            if self._stop_requested:
                return False
            if available:
                self._log.info("Product available", checks=self.availability_checks)
                return True

            self._transition(SessionState.MONITORING)
            await self._idle_sleep(self.task.monitor_delay)

        return False

    async def _cart(self, strategy: SiteStrategy) -> bool:
        """Select options and add to cart. False if stopped in between."""
        self._transition(SessionState.CARTING)

        if strategy.supports(Capability.SELECT_OPTIONS):
            await strategy.select_options()
            if self._stop_requested:
                return False

        await strategy.add_to_cart()
        if self._stop_requested:
            return False

        self._transition(SessionState.CHECKING_OUT)
        return True

    async def _checkout(self, strategy: SiteStrategy) -> CheckoutResult | None:
        """Log in, clear captcha and submit. None if stopped before submit."""

        if strategy.supports(Capability.LOGIN):
            if not await strategy.login():
                raise SessionError("Login failed")
            if self._stop_requested:
                return None

        if strategy.supports(Capability.SUBMIT_CAPTCHA):
            if not await strategy.submit_captcha():
                raise BlockedError("Captcha challenge could not be resolved")
            if self._stop_requested:
                return None

        outcome = await strategy.checkout()

        if outcome.success:
            result = CheckoutResult.succeeded(self.task.id, outcome)
        else:
            result = CheckoutResult.failed(self.task.id, "Checkout was not completed")

        if self._stop_requested:
            # The order was submitted; keep the record for the stop path
            self._stopped_result = result
            return None

        if not outcome.success:
            raise CheckoutError("Checkout was not completed")

        self._log.info(
            "Checkout succeeded",
            order_reference=outcome.order_reference,
            price=outcome.price,
        )
        return result

    async def _idle_sleep(self, delay: float) -> None:
        self._idle = True
        try:
            await self._sleep(delay)
        finally:
            self._idle = False

    async def _reload(self) -> None:
        if self._handle is None:
            return
        try:
            await self._handle.page.reload(wait_until=self.config.reload_wait_until)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.warning("Page reload failed", error=str(e))

    # ==================== State ====================

    def _transition(
        self,
        target: SessionState,
        result: CheckoutResult | None = None,
        error: str | None = None,
    ) -> None:
        source = self._state
        if source.is_terminal:
            raise SessionError(f"Session already {source.value}")

        self.transitions.append(Transition(source, target))
        self._state = target

        if source is target:
            return

        self._log.debug("State changed", source=source.value, target=target.value)
        update = SessionUpdate(self.task.id, target, result=result, error=error)
        self._updates.put_nowait(update)
        if target.is_terminal:
            self._terminal = update
            self._done.set()

    async def _finish(
        self,
        state: SessionState,
        result: CheckoutResult | None = None,
        error: str | None = None,
    ) -> None:
        """Release the browser, then enter the terminal state."""
        self._finishing = True
        await self._release()
        self._transition(state, result=result, error=error)
        self._log.info("Session finished", state=state.value, error=error)

    async def _release(self) -> None:
        """Close the browser handle. Runs its body at most once."""
        if self._released:
            return
        self._released = True

        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            await handle.close()
        except Exception as e:
            self._log.warning("Browser close failed", error=str(e))

    def __repr__(self) -> str:
        return f"AutomationSession(task_id={self.task.id!r}, state={self._state.value})"
