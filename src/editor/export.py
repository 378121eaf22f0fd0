"""Export - 활성 문서를 대상 포맷으로 직렬화해 받아옴

명령: app.activeDocument.saveToOE("<format>");
응답: 바이너리 결과, 이어서 (선택적으로) 후행 센티널 하나.
결과 리스너는 명령 전송보다 먼저 등록합니다.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Optional

from src.core.exceptions import ChannelProtocolError
from src.core.logging import logger
from src.engine.outcome import Phase, PhaseOutcome, Success, TimedOut
from src.engine.signals import ProtocolSignal, SignalKind
from src.engine.strategy import run_trigger
from src.engine.timeout_governor import TimeoutGovernor
from src.utils.signature import check_signature

EXPORT_COMMAND_TEMPLATE = 'app.activeDocument.saveToOE("{format}");'

# "psd", "png", "jpg:0.8" 등 짧은 포맷 토큰만 허용 (스크립트 주입 방지)
_FORMAT_TOKEN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9:._-]{0,15}$")


def build_export_command(fmt: str) -> str:
    """내보내기 명령 문자열 생성

    Raises:
        ValueError: 포맷 토큰이 유효하지 않은 경우
    """
    if not fmt or not _FORMAT_TOKEN.match(fmt):
        raise ValueError(f"Invalid export format token: {fmt!r}")
    return EXPORT_COMMAND_TEMPLATE.format(format=fmt)


class ExportCollector:
    """내보내기 응답 수집기 (SignalWatch matcher)

    - 첫 번째 바이너리 결과를 보관
    - await_trailing=True면 바이너리 이후 센티널이 와야 완료
    - 해석 불가 신호는 채널 오류
    """

    def __init__(self, await_trailing: bool = True):
        self.await_trailing = await_trailing
        self.payload: Optional[bytes] = None

    def __call__(self, signal: ProtocolSignal) -> Optional[bytes]:
        if signal.kind == SignalKind.UNRECOGNIZED:
            raise ChannelProtocolError(
                f"unrecognized message during export: {signal.describe()}",
                details={"phase": Phase.EXPORT.value},
            )

        if signal.kind == SignalKind.BINARY_RESULT:
            if self.payload is not None:
                logger.debug(f"[Export] Ignoring extra binary message ({len(signal.payload)} bytes)")
                return None
            self.payload = signal.payload
            return None if self.await_trailing else self.payload

        if signal.is_sentinel and self.payload is not None:
            return self.payload

        return None


class ExportProtocol:
    """내보내기 단계

    Args:
        governor: 대기 실행기
        budget_s: 단계 예산 (초)
        target_format: 기본 포맷 토큰 (예: "psd")
        magic: 결과 파일 시그니처 (예: b"8BPS")
        await_trailing_sentinel: 바이너리 뒤 후행 센티널까지 기다릴지 여부
    """

    def __init__(
        self,
        governor: TimeoutGovernor,
        budget_s: float,
        target_format: str = "psd",
        magic: bytes = b"8BPS",
        await_trailing_sentinel: bool = True,
    ):
        self.governor = governor
        self.budget_s = budget_s
        self.target_format = target_format
        self.magic = magic
        self.await_trailing_sentinel = await_trailing_sentinel

    async def request_export(self, session: Any, fmt: Optional[str] = None) -> PhaseOutcome:
        """내보내기 요청 후 결과 대기

        Returns:
            Success(bytes) | TimedOut | ChannelError | ProcessError

        Raises:
            EmptyResultError: 결과가 0바이트
            ValidationError: 시그니처 불일치
        """
        command = build_export_command(fmt or self.target_format)
        channel = session.channel
        collector = ExportCollector(await_trailing=self.await_trailing_sentinel)

        async def send_command() -> None:
            logger.info(f"[Export:{session.session_id}] Requesting export: {command}")
            await channel.post_command(command)

        loop = asyncio.get_running_loop()
        start = loop.time()
        async with self.governor.watch(channel, collector, Phase.EXPORT.value) as watch:
            failure = await run_trigger(send_command, self.budget_s, Phase.EXPORT.value)
            if failure is not None:
                return failure
            outcome = await watch.wait(self.budget_s - (loop.time() - start))

        if isinstance(outcome, TimedOut):
            received = "binary received, trailing signal missing" if collector.payload is not None else "no result"
            logger.warning(f"[Export:{session.session_id}] Timed out after {self.budget_s:.1f}s ({received})")
            return outcome
        if not isinstance(outcome, Success):
            logger.warning(f"[Export:{session.session_id}] Export failed: {outcome}")
            return outcome

        payload: bytes = outcome.value
        check_signature(payload, self.magic)
        logger.info(f"[Export:{session.session_id}] Result received ({len(payload)} bytes)")
        return Success(payload)
