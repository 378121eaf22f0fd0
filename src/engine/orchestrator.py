"""Conversion Orchestrator - Main Engine Entry Point

Coordinates one conversion job end to end:
1. Browser session acquisition (scoped, always released)
2. Handshake (editor ready)
3. Payload transfer (load complete)
4. Export (binary result + signature check)

Phases run strictly in sequence. The first failed phase stops the job;
the error is classified here and nowhere else.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from src.core.exceptions import (
    ChannelProtocolError,
    ConversionException,
    ExportTimeout,
    HandshakeTimeout,
    JobTimeoutError,
    LoadTimeout,
    SessionLostError,
)
from src.core.logging import logger, sanitize_for_log
from src.utils.file_utils import derive_output_name

from .budget import BudgetManager, PhaseBudgetConfig
from .outcome import ChannelError, Phase, PhaseOutcome, ProcessError, TimedOut, is_success
from .result import ConversionJob, ConversionReport, ConversionResult

_TIMEOUT_ERRORS = {
    Phase.HANDSHAKE: HandshakeTimeout,
    Phase.LOAD: LoadTimeout,
    Phase.EXPORT: ExportTimeout,
}


@dataclass
class _JobTrace:
    session_id: Optional[str] = None


class ConversionOrchestrator:
    """변환 오케스트레이터

    Session → Handshake → Transfer → Export 파이프라인을 관리합니다.

    - 단계는 겹치지 않으며, 이전 단계 완료 신호를 관측한 뒤에만 다음 단계를 시작
    - 실패한 단계가 있으면 즉시 중단, 부분 결과는 복구하지 않음
    - 세션은 성공/실패/취소와 무관하게 정확히 한 번 해제
    - 재시도하지 않음 (재시도는 호출자 책임)
    """

    def __init__(
        self,
        sessions: Any,
        handshake: Any,
        transfer: Any,
        export: Any,
        budget_config: Optional[PhaseBudgetConfig] = None,
        source_suffix: str = ".fig",
        target_format: str = "psd",
    ):
        """
        Args:
            sessions: BrowserSessionManager (session() 컨텍스트 제공)
            handshake: DocumentHandshakeProtocol (await_ready)
            transfer: PayloadTransferProtocol (send)
            export: ExportProtocol (request_export)
            budget_config: 단계별 예산
            source_suffix: 원본 확장자 (결과 파일명 생성용)
            target_format: 대상 포맷 토큰
        """
        if sessions is None:
            raise ValueError("sessions must not be None")
        if handshake is None or transfer is None or export is None:
            raise ValueError("handshake, transfer and export must not be None")

        self.sessions = sessions
        self.handshake = handshake
        self.transfer = transfer
        self.export = export
        self.budget_config = budget_config or PhaseBudgetConfig()
        self.source_suffix = source_suffix
        self.target_format = target_format

    @property
    def job_timeout_s(self) -> float:
        """작업 전체 최악 소요 시간 (호출자 노출용)"""
        return self.budget_config.job_timeout_s

    async def convert(self, job: ConversionJob) -> ConversionReport:
        """변환 실행

        Args:
            job: 변환 작업

        Returns:
            ConversionReport: 성공 시 결과 포함, 실패 시 분류된 오류/메시지/경과 시간

        Raises:
            ValueError: job이 유효하지 않은 경우
        """
        if not isinstance(job, ConversionJob) or not job.source_bytes:
            raise ValueError("job must be a ConversionJob with a non-empty payload")

        budget = BudgetManager(self.budget_config)
        budget.start()
        trace = _JobTrace()
        name = sanitize_for_log(job.source_name)
        logger.info(f"[Coordinator] Conversion started: file='{name}', size={job.size}")

        try:
            payload = await asyncio.wait_for(
                self._run(job, budget, trace),
                timeout=self.job_timeout_s,
            )
        except ConversionException as e:
            logger.warning(
                f"[Coordinator] Conversion failed: file='{name}', kind={e.error_code}, "
                f"elapsed={budget.elapsed():.2f}s, message={e.message}"
            )
            return ConversionReport.failure(
                e,
                elapsed_ms=budget.elapsed_ms(),
                session_id=trace.session_id,
                budget_report=budget.get_report(),
            )
        except asyncio.TimeoutError:
            error = JobTimeoutError(self.job_timeout_s, budget.elapsed())
            logger.error(f"[Coordinator] Job deadline exceeded: file='{name}', budget={self.job_timeout_s:.1f}s")
            return ConversionReport.failure(
                error,
                elapsed_ms=budget.elapsed_ms(),
                session_id=trace.session_id,
                budget_report=budget.get_report(),
            )
        except Exception as e:
            logger.error(f"[Coordinator] Unexpected failure: file='{name}', error={type(e).__name__}", exc_info=True)
            return ConversionReport.internal_error(
                f"{type(e).__name__}: {e}",
                elapsed_ms=budget.elapsed_ms(),
                session_id=trace.session_id,
            )

        result = ConversionResult(
            payload_bytes=payload,
            declared_name=derive_output_name(job.source_name, self.source_suffix, self.target_format),
        )
        logger.info(
            f"[Coordinator] Conversion completed: file='{name}', output={result.size} bytes, "
            f"elapsed={budget.elapsed():.2f}s"
        )
        return ConversionReport.success(
            result,
            elapsed_ms=budget.elapsed_ms(),
            session_id=trace.session_id,
            budget_report=budget.get_report(),
        )

    async def _run(self, job: ConversionJob, budget: BudgetManager, trace: _JobTrace) -> bytes:
        async with self.sessions.session() as session:
            trace.session_id = session.session_id
            budget.checkpoint("session_acquired")

            self._unwrap(await self.handshake.await_ready(session), Phase.HANDSHAKE)
            budget.checkpoint("handshake_ready")

            self._unwrap(await self.transfer.send(session, job.source_bytes), Phase.LOAD)
            budget.checkpoint("payload_loaded")

            payload = self._unwrap(await self.export.request_export(session), Phase.EXPORT)
            budget.checkpoint("export_received")
            return payload

    @staticmethod
    def _unwrap(outcome: PhaseOutcome, phase: Phase) -> Any:
        """PhaseOutcome → 값 또는 분류된 예외"""
        if is_success(outcome):
            return outcome.value

        if isinstance(outcome, TimedOut):
            raise _TIMEOUT_ERRORS[phase](outcome.budget_s, outcome.elapsed_s)

        if isinstance(outcome, ChannelError):
            if isinstance(outcome.cause, ConversionException):
                raise outcome.cause
            raise ChannelProtocolError(str(outcome.cause), details={"phase": phase.value})

        if isinstance(outcome, ProcessError):
            if isinstance(outcome.cause, ConversionException):
                raise outcome.cause
            raise SessionLostError(str(outcome.cause), details={"phase": phase.value})

        raise ChannelProtocolError(f"unknown phase outcome: {outcome!r}", details={"phase": phase.value})
