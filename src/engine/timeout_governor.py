"""Timeout Governor - 신호/조건을 마감 시간과 경쟁시키는 공용 도구

두 가지 대기 방식을 지원합니다.
- 이벤트 구독: 채널 신호가 matcher를 만족하는 첫 순간에 완료
- 능동 폴링: probe가 참 값을 반환하는 첫 순간에 완료

타임아웃은 예외가 아니라 TimedOut 값으로 반환합니다.
대기가 끝나면(성공/타임아웃/오류 모두) 구독과 폴링 타이머를 반드시 정리합니다.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from src.core.exceptions import ConverterException, SessionLostError
from src.core.logging import logger

from .outcome import ChannelError, PhaseOutcome, ProcessError, Success, TimedOut
from .signals import ProtocolSignal

# matcher: 신호를 받아 완료 값을 반환 (아직이면 None). ChannelProtocolError를 던지면 채널 오류로 종료
SignalMatcher = Callable[[ProtocolSignal], Optional[Any]]
Probe = Callable[[], Awaitable[Any]]


class SignalWatch:
    """채널 구독 기반 대기

    트리거(명령 전송 등)보다 먼저 구독을 걸어 두기 위해 컨텍스트 매니저로 씁니다.

    Usage:
        async with governor.watch(channel, matcher, "export") as watch:
            await channel.post_command(command)
            outcome = await watch.wait(budget_s)
    """

    def __init__(self, channel: Any, matcher: SignalMatcher, label: str):
        self._channel = channel
        self._matcher = matcher
        self.label = label
        self._future: Optional[asyncio.Future] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def __aenter__(self) -> "SignalWatch":
        self._future = asyncio.get_running_loop().create_future()
        self._unsubscribe = self._channel.subscribe(self._on_signal)
        return self

    async def __aexit__(self, *exc) -> None:
        self._detach()

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def _detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._future is not None and not self._future.done():
            self._future.cancel()

    def _on_signal(self, signal: ProtocolSignal) -> None:
        if self._future is None or self._future.done():
            return
        try:
            value = self._matcher(signal)
        except ConverterException as e:
            self._future.set_result(ChannelError(e))
            return
        if value is not None:
            self._future.set_result(Success(value))

    async def wait(self, budget_s: float) -> PhaseOutcome:
        """budget_s 안에 matcher가 완료되면 Success, 아니면 TimedOut"""
        if self._future is None:
            raise RuntimeError("SignalWatch must be entered before wait()")

        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            return await asyncio.wait_for(self._future, timeout=max(0.0, budget_s))
        except asyncio.TimeoutError:
            elapsed = loop.time() - start
            logger.debug(f"[Governor] '{self.label}' timed out after {elapsed:.2f}s (budget {budget_s:.2f}s)")
            return TimedOut(self.label, budget_s, elapsed)
        finally:
            self._detach()


class TimeoutGovernor:
    """신호 도착/조건 충족을 예산과 경쟁시키는 실행기

    Args:
        poll_interval_s: 폴링 방식의 기본 샘플링 간격 (초)
    """

    def __init__(self, poll_interval_s: float = 0.25):
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be positive")
        self.poll_interval_s = poll_interval_s

    def watch(self, channel: Any, matcher: SignalMatcher, label: str) -> SignalWatch:
        return SignalWatch(channel, matcher, label)

    async def await_signal(
        self,
        channel: Any,
        matcher: SignalMatcher,
        budget_s: float,
        label: str,
    ) -> PhaseOutcome:
        """이벤트 구독 방식 대기 (구독 후 바로 대기)"""
        async with self.watch(channel, matcher, label) as watch:
            return await watch.wait(budget_s)

    async def await_condition(
        self,
        probe: Probe,
        budget_s: float,
        label: str,
        interval_s: Optional[float] = None,
    ) -> PhaseOutcome:
        """능동 폴링 방식 대기

        probe를 interval_s 간격으로 호출해 참 값이 나오면 Success(value).
        예산을 넘기면 폴링 루프를 취소하고 TimedOut을 반환합니다.
        """
        interval = interval_s or self.poll_interval_s
        loop = asyncio.get_running_loop()
        start = loop.time()

        async def _poll() -> Any:
            while True:
                value = await probe()
                if value:
                    return value
                await asyncio.sleep(interval)

        try:
            value = await asyncio.wait_for(_poll(), timeout=max(0.0, budget_s))
        except asyncio.TimeoutError:
            elapsed = loop.time() - start
            logger.debug(f"[Governor] '{label}' poll timed out after {elapsed:.2f}s (budget {budget_s:.2f}s)")
            return TimedOut(label, budget_s, elapsed)
        except SessionLostError as e:
            return ProcessError(e)
        except ConverterException as e:
            return ChannelError(e)
        except Exception as e:
            logger.warning(f"[Governor] '{label}' probe failed: {type(e).__name__}: {e}")
            return ChannelError(e)

        return Success(value)

    async def settle(self, delay_s: float, label: str) -> PhaseOutcome:
        """고정 대기 (저하 모드)

        완료 신호를 관측한 것이 아니므로 결과는 '시간이 지났다'는 의미뿐입니다.
        """
        logger.warning(
            f"[Governor] '{label}' using fixed settle delay {delay_s:.1f}s instead of a completion signal"
        )
        await asyncio.sleep(delay_s)
        return Success(None)
