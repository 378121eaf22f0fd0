"""Document Handshake - 에디터를 "파일 받을 준비 완료" 상태까지 구동

NAVIGATING → AWAITING_READY → READY (실패 시 FAILED)
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from src.core.logging import logger
from src.engine.outcome import Phase, PhaseOutcome, Success, TimedOut
from src.engine.strategy import CompletionStrategy
from src.engine.timeout_governor import TimeoutGovernor


class HandshakeState(str, Enum):
    NAVIGATING = "navigating"
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    FAILED = "failed"


class DocumentHandshakeProtocol:
    """원격 에디터 핸드셰이크

    호스트 문서를 열어 에디터를 로드하고, 준비 신호(첫 번째 센티널 또는 ready 플래그)를
    budget_s 안에 기다립니다. 예산에는 내비게이션 시간도 포함됩니다.
    핸드셰이크 실패는 항상 치명적입니다 - 준비되지 않은 에디터에 파일을 보내면 결과가 정의되지 않습니다.
    """

    def __init__(
        self,
        governor: TimeoutGovernor,
        strategy: CompletionStrategy,
        editor_url: str,
        budget_s: float,
    ):
        self.governor = governor
        self.strategy = strategy
        self.editor_url = editor_url
        self.budget_s = budget_s

    async def await_ready(self, session: Any) -> PhaseOutcome:
        channel = session.channel
        state = HandshakeState.NAVIGATING

        async def navigate() -> None:
            nonlocal state
            logger.info(f"[Handshake:{session.session_id}] Loading editor: {self.editor_url}")
            await channel.navigate(self.editor_url, self.budget_s)
            state = HandshakeState.AWAITING_READY

        outcome = await self.strategy.await_completion(
            channel,
            self.governor,
            navigate,
            self.budget_s,
            Phase.HANDSHAKE.value,
        )

        if isinstance(outcome, Success):
            logger.info(
                f"[Handshake:{session.session_id}] {state.value} -> {HandshakeState.READY.value} "
                f"(strategy={self.strategy.name})"
            )
        elif isinstance(outcome, TimedOut):
            logger.warning(
                f"[Handshake:{session.session_id}] {state.value} -> {HandshakeState.FAILED.value}: "
                f"no ready signal within {self.budget_s:.1f}s"
            )
        else:
            logger.warning(
                f"[Handshake:{session.session_id}] {state.value} -> {HandshakeState.FAILED.value}: {outcome}"
            )

        return outcome
