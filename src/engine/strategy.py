"""Completion Strategy - "완료 대기" 방식 선택

원격 에디터는 단계에 따라 이벤트로 알려 주기도 하고 상태만 바꾸기도 합니다.
같은 논리적 조건("준비됨", "로드 완료")을 세 가지 방식으로 감지할 수 있게
하나의 인터페이스 뒤에 구현체를 두고 설정으로 고릅니다.

- SignalCompletion: 채널 구독, 위치 기반 의미가 맞는 센티널을 기다림
- PolledCompletion: 페이지 브리지의 ready 플래그를 주기적으로 확인
- SettleDelayCompletion: 고정 대기 (저하 모드, 실제 완료 신호가 아님)
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol

from src.core.exceptions import ConverterException, SessionLostError
from src.core.logging import logger

from .outcome import ChannelError, PhaseOutcome, ProcessError, TimedOut
from .signals import ProtocolSignal, SentinelMeaning
from .timeout_governor import TimeoutGovernor

Trigger = Callable[[], Awaitable[None]]


class CompletionStrategy(Protocol):
    """완료 감지 전략 인터페이스

    trigger(내비게이션, 바이트 전송 등)를 실행하고 완료를 기다립니다.
    trigger 실행 시간도 budget_s에 포함됩니다.
    """

    name: str

    async def await_completion(
        self,
        channel: Any,
        governor: TimeoutGovernor,
        trigger: Trigger,
        budget_s: float,
        label: str,
    ) -> PhaseOutcome:
        ...


async def run_trigger(trigger: Trigger, budget_s: float, label: str) -> Optional[PhaseOutcome]:
    """trigger를 예산 안에서 실행. 실패하면 PhaseOutcome, 성공하면 None"""
    loop = asyncio.get_running_loop()
    start = loop.time()
    try:
        await asyncio.wait_for(trigger(), timeout=max(0.0, budget_s))
    except asyncio.TimeoutError:
        return TimedOut(label, budget_s, loop.time() - start)
    except SessionLostError as e:
        logger.warning(f"[Strategy] '{label}' trigger lost the session: {e}")
        return ProcessError(e)
    except ConverterException as e:
        logger.warning(f"[Strategy] '{label}' trigger failed: {e}")
        return ChannelError(e)
    return None


class SignalCompletion:
    """센티널 의미 기반 완료 감지 (이벤트 구독)

    trigger보다 먼저 구독해 두므로 에디터가 즉시 응답해도 신호를 놓치지 않습니다.
    """

    name = "signal"

    def __init__(self, accept: Iterable[SentinelMeaning]):
        self.accept = frozenset(accept)
        if not self.accept:
            raise ValueError("accept must contain at least one SentinelMeaning")

    def _match(self, signal: ProtocolSignal) -> Optional[ProtocolSignal]:
        if signal.is_sentinel and signal.meaning in self.accept:
            return signal
        return None

    async def await_completion(
        self,
        channel: Any,
        governor: TimeoutGovernor,
        trigger: Trigger,
        budget_s: float,
        label: str,
    ) -> PhaseOutcome:
        loop = asyncio.get_running_loop()
        start = loop.time()
        async with governor.watch(channel, self._match, label) as watch:
            failure = await run_trigger(trigger, budget_s, label)
            if failure is not None:
                return failure
            outcome = await watch.wait(budget_s - (loop.time() - start))
        if isinstance(outcome, TimedOut):
            return TimedOut(label, budget_s, loop.time() - start)
        return outcome


class PolledCompletion:
    """페이지 브리지 ready 플래그 폴링

    플래그는 센티널이 올 때마다 켜지고, reset_state()로 꺼집니다.
    """

    name = "poll"

    def __init__(self, interval_s: Optional[float] = None):
        self.interval_s = interval_s

    async def await_completion(
        self,
        channel: Any,
        governor: TimeoutGovernor,
        trigger: Trigger,
        budget_s: float,
        label: str,
    ) -> PhaseOutcome:
        loop = asyncio.get_running_loop()
        start = loop.time()
        failure = await run_trigger(trigger, budget_s, label)
        if failure is not None:
            return failure
        outcome = await governor.await_condition(
            channel.read_ready_flag,
            budget_s - (loop.time() - start),
            label,
            interval_s=self.interval_s,
        )
        if isinstance(outcome, TimedOut):
            return TimedOut(label, budget_s, loop.time() - start)
        return outcome


class SettleDelayCompletion:
    """고정 대기 (저하 모드)

    에디터가 구분 가능한 로드 완료 신호를 주지 않는 배포에서만 사용합니다.
    정확도 대신 견고함을 택한 절충이며, 완료를 관측한 것이 아닙니다.
    """

    name = "settle"

    def __init__(self, delay_s: float):
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self.delay_s = delay_s

    async def await_completion(
        self,
        channel: Any,
        governor: TimeoutGovernor,
        trigger: Trigger,
        budget_s: float,
        label: str,
    ) -> PhaseOutcome:
        loop = asyncio.get_running_loop()
        start = loop.time()
        failure = await run_trigger(trigger, budget_s, label)
        if failure is not None:
            return failure
        remaining = max(0.0, budget_s - (loop.time() - start))
        return await governor.settle(min(self.delay_s, remaining), label)


def build_readiness_strategy(name: str, interval_s: Optional[float] = None) -> CompletionStrategy:
    """핸드셰이크용 전략 ("event" | "poll")"""
    if name == "event":
        return SignalCompletion(accept=[SentinelMeaning.EDITOR_READY])
    if name == "poll":
        return PolledCompletion(interval_s=interval_s)
    raise ValueError(f"Unknown readiness strategy: {name}")


def build_load_strategy(
    name: str,
    settle_delay_s: float = 5.0,
    interval_s: Optional[float] = None,
) -> CompletionStrategy:
    """파일 로드 완료용 전략 ("signal" | "poll" | "settle")

    signal 방식은 LOAD_COMPLETE와 OPERATION_DONE을 모두 받습니다.
    ready_only 정책에서는 두 번째 센티널부터 OPERATION_DONE으로 분류되기 때문입니다.
    """
    if name == "signal":
        return SignalCompletion(accept=[SentinelMeaning.LOAD_COMPLETE, SentinelMeaning.OPERATION_DONE])
    if name == "poll":
        return PolledCompletion(interval_s=interval_s)
    if name == "settle":
        return SettleDelayCompletion(settle_delay_s)
    raise ValueError(f"Unknown load strategy: {name}")
