"""Tests for AutomationSession state machine."""

from __future__ import annotations

import asyncio

import pytest

from cartpilot.core.engine.session import AutomationSession, SessionState
from cartpilot.core.errors import ConfigurationError, SessionError
from cartpilot.core.models.config import SessionConfig
from cartpilot.core.models.task import CheckoutOutcome
from cartpilot.core.registry.strategies import StrategyRegistry
from tests.fakes import (
    MockBrowserEngine,
    RecordingSleep,
    StrategyScript,
    registry_with,
    scripted_strategy,
)

S = SessionState


def make_session(
    task,
    script: StrategyScript,
    engine: MockBrowserEngine,
    sleep: RecordingSleep,
    config: SessionConfig | None = None,
    **capabilities: bool,
) -> AutomationSession:
    return AutomationSession(
        task=task,
        strategies=registry_with(scripted_strategy(script, **capabilities)),
        browser_engine=engine,
        config=config,
        sleep=sleep,
    )


async def collect(session: AutomationSession) -> list[SessionState]:
    return [update.state async for update in session.updates()]


# ============================================================================
# HAPPY PATH
# ============================================================================


class TestSuccessfulRun:
    """Tests for a session that reaches Succeeded."""

    @pytest.mark.asyncio
    async def test_polls_until_available_then_checks_out(self, task, engine, sleep):
        """Two misses then a hit: fixed delay between polls, one checkout."""
        script = StrategyScript(availability=[False, False, True])
        session = make_session(task, script, engine, sleep)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.SUCCEEDED
        assert [t.target for t in session.transitions if t.source is not S.INITIALIZING] == [
            S.MONITORING,
            S.MONITORING,
            S.CARTING,
            S.CHECKING_OUT,
            S.SUCCEEDED,
        ]
        assert sleep.delays == [3.0, 3.0]
        assert session.availability_checks == 3
        assert update.result is not None
        assert update.result.success is True
        assert update.result.order_reference == "ORDER-1001"
        assert update.result.price == 129.99
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_update_channel_skips_self_transitions(self, task, engine, sleep):
        """Monitoring is reported once even when polled several times."""
        script = StrategyScript(availability=[False, False, True])
        session = make_session(task, script, engine, sleep)

        await session.start()
        states = await asyncio.wait_for(collect(session), 2)

        assert states == [S.MONITORING, S.CARTING, S.CHECKING_OUT, S.SUCCEEDED]

    @pytest.mark.asyncio
    async def test_never_polls_again_after_availability(self, task, engine, sleep):
        """Once carting starts, Monitoring is never re-entered."""
        script = StrategyScript(availability=[False, True, False])
        session = make_session(task, script, engine, sleep)

        await session.start()
        await asyncio.wait_for(session.wait(), 2)

        assert script.count("check_availability") == 2
        carting_index = next(
            i for i, t in enumerate(session.transitions) if t.target is S.CARTING
        )
        assert all(
            t.target is not S.MONITORING for t in session.transitions[carting_index:]
        )

    @pytest.mark.asyncio
    async def test_optional_capabilities_are_invoked_in_order(self, task, engine, sleep):
        """select_options, login and submit_captcha run when the strategy has them."""
        script = StrategyScript()
        session = make_session(
            task, script, engine, sleep, select_options=True, login=True, submit_captcha=True
        )

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.SUCCEEDED
        assert script.calls == [
            "check_availability",
            "select_options",
            "add_to_cart",
            "login",
            "submit_captcha",
            "checkout",
        ]

    @pytest.mark.asyncio
    async def test_missing_capabilities_are_skipped(self, task, engine, sleep):
        """A strategy without optional methods goes straight to cart and checkout."""
        script = StrategyScript()
        session = make_session(task, script, engine, sleep)

        await session.start()
        await asyncio.wait_for(session.wait(), 2)

        assert script.calls == ["check_availability", "add_to_cart", "checkout"]

    @pytest.mark.asyncio
    async def test_browser_close_error_does_not_change_outcome(self, task, sleep):
        """A failing browser close is logged, the session still succeeds."""
        engine = MockBrowserEngine(close_error=RuntimeError("already gone"))
        session = make_session(task, StrategyScript(), engine, sleep)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.SUCCEEDED
        assert engine.close_calls == 1


# ============================================================================
# MONITORING ERRORS
# ============================================================================


class TestMonitoringErrors:
    """Tests for availability check failures."""

    @pytest.mark.asyncio
    async def test_poll_error_reloads_and_keeps_polling(self, task, engine, sleep):
        """A poll error is treated as unavailable after reloading the page."""
        script = StrategyScript(availability=[RuntimeError("selector drift"), True])
        session = make_session(task, script, engine, sleep)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.SUCCEEDED
        assert session.availability_checks == 2
        assert len(engine.handles[0].page.reloads) == 1
        assert sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_reload_failure_does_not_stop_monitoring(self, task, sleep):
        """A failing reload is logged and polling continues."""
        engine = MockBrowserEngine()
        script = StrategyScript(availability=[RuntimeError("timeout"), True])
        session = make_session(task, script, engine, sleep)

        original_launch = engine.launch

        async def launch(proxy=None):
            handle = await original_launch(proxy)
            handle.page.reload_error = RuntimeError("reload failed")
            return handle

        engine.launch = launch

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.SUCCEEDED
        assert len(engine.handles[0].page.reloads) == 1

    @pytest.mark.asyncio
    async def test_reload_uses_configured_wait_until(self, task, engine, sleep):
        """Reload waits for the configured load state."""
        script = StrategyScript(availability=[RuntimeError("boom"), True])
        config = SessionConfig(reload_wait_until="load")
        session = make_session(task, script, engine, sleep, config=config)

        await session.start()
        await asyncio.wait_for(session.wait(), 2)

        assert engine.handles[0].page.reloads == [{"wait_until": "load"}]

    @pytest.mark.asyncio
    async def test_poll_error_after_stop_skips_reload(self, task, engine, sleep):
        """A poll that fails once stop was requested ends the run without reloading."""
        gate = asyncio.Event()
        script = StrategyScript(
            availability=[RuntimeError("page detached")], availability_gate=gate
        )
        session = make_session(task, script, engine, sleep)

        await session.start()
        await asyncio.wait_for(script.availability_started.wait(), 2)

        stopping = asyncio.create_task(session.stop())
        await asyncio.sleep(0)
        gate.set()
        update = await asyncio.wait_for(stopping, 2)

        assert update.state is S.STOPPED
        assert engine.handles[0].page.reloads == []
        assert script.count("check_availability") == 1
        assert engine.close_calls == 1


# ============================================================================
# FAILURES
# ============================================================================


class TestFailures:
    """Tests for sessions that end Failed."""

    @pytest.mark.asyncio
    async def test_unsuccessful_checkout_fails(self, task, engine, sleep):
        """A checkout outcome without success fails the session with a result."""
        script = StrategyScript(outcome=CheckoutOutcome(success=False, price=10.0))
        session = make_session(task, script, engine, sleep)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.FAILED
        assert update.error == "Checkout was not completed"
        assert update.result is not None
        assert update.result.success is False
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_add_to_cart_error_fails(self, task, engine, sleep):
        script = StrategyScript(add_to_cart_error=RuntimeError("button vanished"))
        session = make_session(task, script, engine, sleep)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.FAILED
        assert "button vanished" in update.error
        assert session.transitions[-1].source is S.CARTING
        assert "checkout" not in script.calls
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_login_rejection_fails(self, task, engine, sleep):
        script = StrategyScript(login_result=False)
        session = make_session(task, script, engine, sleep, login=True)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.FAILED
        assert update.error == "Login failed"
        assert "checkout" not in script.calls

    @pytest.mark.asyncio
    async def test_unresolved_captcha_fails(self, task, engine, sleep):
        script = StrategyScript(captcha_result=False)
        session = make_session(task, script, engine, sleep, submit_captcha=True)

        await session.start()
        update = await asyncio.wait_for(session.wait(), 2)

        assert update.state is S.FAILED
        assert "Captcha" in update.error
        assert "checkout" not in script.calls

    @pytest.mark.asyncio
    async def test_launch_failure_fails_and_raises(self, task, sleep):
        """A browser launch error fails the session and propagates from start."""
        engine = MockBrowserEngine(launch_error=RuntimeError("no chromium"))
        session = make_session(task, StrategyScript(), engine, sleep)

        with pytest.raises(RuntimeError, match="no chromium"):
            await session.start()

        update = await session.wait()
        assert session.state is S.FAILED
        assert update.error == "Browser launch failed: no chromium"
        assert [t.target for t in session.transitions] == [S.FAILED]

    @pytest.mark.asyncio
    async def test_unresolvable_strategy_fails_and_releases_browser(self, task, engine, sleep):
        """No strategy and no default: start raises and the browser is closed."""
        session = AutomationSession(
            task=task,
            strategies=StrategyRegistry(),
            browser_engine=engine,
            sleep=sleep,
        )

        with pytest.raises(ConfigurationError):
            await session.start()

        assert session.state is S.FAILED
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, task, engine, sleep):
        session = make_session(task, StrategyScript(), engine, sleep)
        await session.start()

        with pytest.raises(SessionError):
            await session.start()

        await session.wait()


# ============================================================================
# STOP
# ============================================================================


class TestStop:
    """Tests for explicit stop."""

    @pytest.mark.asyncio
    async def test_stop_while_waiting_between_polls_is_immediate(self, task, engine):
        """The inter-poll delay is cancelled without waiting for stop_timeout."""
        sleep = RecordingSleep(block=True)
        script = StrategyScript(availability=[False])
        config = SessionConfig(stop_timeout=30)
        session = make_session(task, script, engine, sleep, config=config)

        await session.start()
        await asyncio.wait_for(sleep.sleeping.wait(), 2)

        update = await asyncio.wait_for(session.stop(), 1)

        assert update.state is S.STOPPED
        assert update.result is None
        assert session.state is S.STOPPED
        assert engine.close_calls == 1
        assert script.count("check_availability") == 1

    @pytest.mark.asyncio
    async def test_stop_waits_for_checkout_to_settle(self, task, engine, sleep):
        """A checkout finishing within stop_timeout keeps its result on Stopped."""
        gate = asyncio.Event()
        script = StrategyScript(checkout_gate=gate)
        session = make_session(task, script, engine, sleep, config=SessionConfig(stop_timeout=5))

        await session.start()
        await asyncio.wait_for(script.checkout_started.wait(), 2)

        stopping = asyncio.create_task(session.stop())
        await asyncio.sleep(0)
        gate.set()
        update = await asyncio.wait_for(stopping, 2)

        assert update.state is S.STOPPED
        assert update.result is not None
        assert update.result.success is True
        assert update.result.order_reference == "ORDER-1001"
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_checkout_after_timeout(self, task, engine, sleep):
        """A unit of work that never settles is cancelled after stop_timeout."""
        script = StrategyScript(checkout_gate=asyncio.Event())
        session = make_session(
            task, script, engine, sleep, config=SessionConfig(stop_timeout=0.05)
        )

        await session.start()
        await asyncio.wait_for(script.checkout_started.wait(), 2)

        update = await asyncio.wait_for(session.stop(), 2)

        assert update.state is S.STOPPED
        assert update.result is None
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_stop_after_finish_returns_terminal_update(self, task, engine, sleep):
        """Stopping a finished session changes nothing."""
        session = make_session(task, StrategyScript(), engine, sleep)
        await session.start()
        finished = await asyncio.wait_for(session.wait(), 2)

        update = await session.stop()

        assert update is finished
        assert session.state is S.SUCCEEDED
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_stop_twice_releases_browser_once(self, task, engine):
        sleep = RecordingSleep(block=True)
        session = make_session(task, StrategyScript(availability=[False]), engine, sleep)
        await session.start()
        await asyncio.wait_for(sleep.sleeping.wait(), 2)

        first, second = await asyncio.gather(session.stop(), session.stop())

        assert first.state is S.STOPPED
        assert second.state is S.STOPPED
        assert engine.close_calls == 1

    @pytest.mark.asyncio
    async def test_stopped_update_ends_the_channel(self, task, engine):
        sleep = RecordingSleep(block=True)
        session = make_session(task, StrategyScript(availability=[False]), engine, sleep)
        await session.start()
        reader = asyncio.create_task(collect(session))
        await asyncio.wait_for(sleep.sleeping.wait(), 2)

        await session.stop()
        states = await asyncio.wait_for(reader, 2)

        assert states == [S.MONITORING, S.STOPPED]
