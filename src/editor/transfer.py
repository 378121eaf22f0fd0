"""Payload Transfer - 원본 바이트를 에디터에 넘기고 로드 완료를 기다림

1. 이전 단계의 ready/result 플래그 초기화 (오탐 방지)
2. 바이트를 ArrayBuffer로 전송 (수신 확인 없음, fire-and-forget)
3. 로드 완료 대기 - 두 번째 센티널, ready 플래그 폴링, 또는 고정 대기(저하 모드)
"""

from __future__ import annotations

from typing import Any

from src.core.exceptions import ConverterException, SessionLostError
from src.core.logging import logger
from src.engine.outcome import ChannelError, Phase, PhaseOutcome, ProcessError, Success, TimedOut
from src.engine.strategy import CompletionStrategy
from src.engine.timeout_governor import TimeoutGovernor


class PayloadTransferProtocol:
    """파일 전달 단계

    성공하면 에디터 안에 새 문서가 활성화되며, 이후 내보내기 단계가 이 상태에 의존합니다.
    """

    def __init__(self, governor: TimeoutGovernor, strategy: CompletionStrategy, budget_s: float):
        self.governor = governor
        self.strategy = strategy
        self.budget_s = budget_s

    async def send(self, session: Any, data: bytes) -> PhaseOutcome:
        if not data:
            raise ValueError("payload must not be empty")

        channel = session.channel
        try:
            await channel.reset_state()
        except SessionLostError as e:
            return ProcessError(e)
        except ConverterException as e:
            return ChannelError(e)

        async def transmit() -> None:
            logger.info(f"[Transfer:{session.session_id}] Sending payload ({len(data)} bytes)")
            await channel.post_bytes(data)

        outcome = await self.strategy.await_completion(
            channel,
            self.governor,
            transmit,
            self.budget_s,
            Phase.LOAD.value,
        )

        if isinstance(outcome, Success):
            if self.strategy.name == "settle":
                logger.warning(
                    f"[Transfer:{session.session_id}] Load assumed complete after settle delay (degraded mode)"
                )
            else:
                logger.info(f"[Transfer:{session.session_id}] Payload loaded (strategy={self.strategy.name})")
        elif isinstance(outcome, TimedOut):
            logger.warning(f"[Transfer:{session.session_id}] No load-complete signal within {self.budget_s:.1f}s")
        else:
            logger.warning(f"[Transfer:{session.session_id}] Transfer failed: {outcome}")
        return outcome
