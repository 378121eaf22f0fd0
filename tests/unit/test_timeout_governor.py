"""TimeoutGovernor / CompletionStrategy 테스트."""

from __future__ import annotations

import asyncio

import pytest

from src.core.exceptions import ChannelProtocolError, SessionLostError
from src.engine.outcome import ChannelError, ProcessError, Success, TimedOut
from src.engine.signals import SentinelMeaning, SignalDispatcher
from src.engine.strategy import (
    PolledCompletion,
    SettleDelayCompletion,
    SignalCompletion,
    build_load_strategy,
    build_readiness_strategy,
    run_trigger,
)
from src.engine.timeout_governor import TimeoutGovernor


DONE = {"kind": "text", "value": "done"}


@pytest.fixture
def governor():
    return TimeoutGovernor(poll_interval_s=0.01)


class TestSignalWatch:
    @pytest.mark.asyncio
    async def test_resolves_on_first_match(self, governor):
        dispatcher = SignalDispatcher()
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, dispatcher.dispatch_raw, DONE)

        outcome = await governor.await_signal(
            dispatcher, lambda s: s if s.is_sentinel else None, 1.0, "test"
        )

        assert isinstance(outcome, Success)
        assert outcome.value.ordinal == 1
        assert dispatcher.listener_count == 0

    @pytest.mark.asyncio
    async def test_times_out_and_detaches(self, governor):
        dispatcher = SignalDispatcher()
        outcome = await governor.await_signal(dispatcher, lambda s: s, 0.05, "test")

        assert isinstance(outcome, TimedOut)
        assert outcome.phase == "test"
        assert outcome.budget_s == 0.05
        assert dispatcher.listener_count == 0

    @pytest.mark.asyncio
    async def test_late_signal_after_timeout_is_ignored(self, governor):
        dispatcher = SignalDispatcher()
        await governor.await_signal(dispatcher, lambda s: s, 0.02, "test")
        # 대기 종료 후 도착한 신호는 아무도 받지 않음
        dispatcher.dispatch_raw(DONE)
        assert dispatcher.listener_count == 0

    @pytest.mark.asyncio
    async def test_matcher_error_becomes_channel_error(self, governor):
        dispatcher = SignalDispatcher()

        def matcher(_signal):
            raise ChannelProtocolError("bad message")

        asyncio.get_running_loop().call_later(0.01, dispatcher.dispatch_raw, {"kind": "unknown"})
        outcome = await governor.await_signal(dispatcher, matcher, 1.0, "test")

        assert isinstance(outcome, ChannelError)
        assert isinstance(outcome.cause, ChannelProtocolError)

    @pytest.mark.asyncio
    async def test_watch_detaches_after_wait(self, governor):
        dispatcher = SignalDispatcher()
        async with governor.watch(dispatcher, lambda s: s, "test") as watch:
            assert watch.attached
            assert dispatcher.listener_count == 1
            dispatcher.dispatch_raw(DONE)
            outcome = await watch.wait(1.0)
            assert not watch.attached
        assert isinstance(outcome, Success)
        assert dispatcher.listener_count == 0

    @pytest.mark.asyncio
    async def test_wait_before_enter_is_rejected(self, governor):
        watch = governor.watch(SignalDispatcher(), lambda s: s, "test")
        with pytest.raises(RuntimeError):
            await watch.wait(0.1)


class TestAwaitCondition:
    @pytest.mark.asyncio
    async def test_poll_until_truthy(self, governor):
        calls = {"n": 0}

        async def probe():
            calls["n"] += 1
            return calls["n"] >= 3

        outcome = await governor.await_condition(probe, 1.0, "poll")
        assert isinstance(outcome, Success)
        assert calls["n"] == 3

    @pytest.mark.asyncio
    async def test_poll_timeout(self, governor):
        async def probe():
            return False

        outcome = await governor.await_condition(probe, 0.05, "poll")
        assert isinstance(outcome, TimedOut)

    @pytest.mark.asyncio
    async def test_probe_session_lost_is_process_error(self, governor):
        async def probe():
            raise SessionLostError("page closed")

        outcome = await governor.await_condition(probe, 1.0, "poll")
        assert isinstance(outcome, ProcessError)

    @pytest.mark.asyncio
    async def test_probe_other_error_is_channel_error(self, governor):
        async def probe():
            raise KeyError("ready")

        outcome = await governor.await_condition(probe, 1.0, "poll")
        assert isinstance(outcome, ChannelError)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            TimeoutGovernor(poll_interval_s=0)


class TestRunTrigger:
    @pytest.mark.asyncio
    async def test_success_returns_none(self):
        async def trigger():
            return None

        assert await run_trigger(trigger, 1.0, "t") is None

    @pytest.mark.asyncio
    async def test_slow_trigger_times_out(self):
        async def trigger():
            await asyncio.sleep(1.0)

        assert isinstance(await run_trigger(trigger, 0.02, "t"), TimedOut)

    @pytest.mark.asyncio
    async def test_session_lost(self):
        async def trigger():
            raise SessionLostError("gone")

        assert isinstance(await run_trigger(trigger, 1.0, "t"), ProcessError)


class TestStrategies:
    @pytest.mark.asyncio
    async def test_signal_completion_ignores_unaccepted_meaning(self, governor):
        """첫 번째 센티널(초기화)은 로드 완료로 취급하지 않음"""
        dispatcher = SignalDispatcher()
        dispatcher.dispatch_raw(DONE)  # 이미 ready
        strategy = build_load_strategy("signal")

        async def trigger():
            asyncio.get_running_loop().call_later(0.01, dispatcher.dispatch_raw, DONE)

        outcome = await strategy.await_completion(dispatcher, governor, trigger, 1.0, "load")
        assert isinstance(outcome, Success)
        assert outcome.value.meaning == SentinelMeaning.LOAD_COMPLETE

    @pytest.mark.asyncio
    async def test_signal_completion_subscribes_before_trigger(self, governor):
        """trigger 안에서 즉시 응답해도 놓치지 않음"""
        dispatcher = SignalDispatcher()
        strategy = build_readiness_strategy("event")

        async def trigger():
            dispatcher.dispatch_raw(DONE)

        outcome = await strategy.await_completion(dispatcher, governor, trigger, 1.0, "handshake")
        assert isinstance(outcome, Success)

    @pytest.mark.asyncio
    async def test_signal_completion_timeout_reports_full_budget(self, governor):
        strategy = SignalCompletion(accept=[SentinelMeaning.EDITOR_READY])

        async def trigger():
            return None

        outcome = await strategy.await_completion(SignalDispatcher(), governor, trigger, 0.05, "handshake")
        assert isinstance(outcome, TimedOut)
        assert outcome.budget_s == 0.05
        assert outcome.elapsed_s >= 0.04

    @pytest.mark.asyncio
    async def test_polled_completion(self, governor):
        class FlagChannel:
            ready = False

            async def read_ready_flag(self):
                return self.ready

        channel = FlagChannel()

        async def trigger():
            asyncio.get_running_loop().call_later(0.03, setattr, channel, "ready", True)

        outcome = await PolledCompletion(interval_s=0.01).await_completion(
            channel, governor, trigger, 1.0, "load"
        )
        assert isinstance(outcome, Success)

    @pytest.mark.asyncio
    async def test_settle_delay_is_bounded_by_budget(self, governor):
        async def trigger():
            return None

        loop = asyncio.get_running_loop()
        start = loop.time()
        outcome = await SettleDelayCompletion(5.0).await_completion(None, governor, trigger, 0.05, "load")
        assert isinstance(outcome, Success)
        assert loop.time() - start < 1.0

    def test_unknown_strategy_names(self):
        with pytest.raises(ValueError):
            build_readiness_strategy("settle")
        with pytest.raises(ValueError):
            build_load_strategy("magic")
        with pytest.raises(ValueError):
            SignalCompletion(accept=[])
