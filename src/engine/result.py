"""Conversion Result - Standardized Result Format

Provides the job/result data model and the coordinator's standard report.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from src.core.exceptions import ConverterException


class ConversionStatus(str, Enum):
    """변환 상태

    오케스트레이터가 반환하는 최종 상태입니다. 실패 상태는 예외 error_code와 1:1 대응합니다.
    """

    SUCCESS = "success"
    PROCESS_LAUNCH_ERROR = "process_launch_error"
    HANDSHAKE_TIMEOUT = "handshake_timeout"
    LOAD_TIMEOUT = "load_timeout"
    EXPORT_TIMEOUT = "export_timeout"
    JOB_TIMEOUT = "job_timeout"
    CHANNEL_PROTOCOL_ERROR = "channel_protocol_error"
    SESSION_LOST = "session_lost"
    VALIDATION_ERROR = "validation_error"
    EMPTY_RESULT = "empty_result"
    INTERNAL_ERROR = "internal_error"

    @property
    def is_timeout(self) -> bool:
        return self in (
            ConversionStatus.HANDSHAKE_TIMEOUT,
            ConversionStatus.LOAD_TIMEOUT,
            ConversionStatus.EXPORT_TIMEOUT,
            ConversionStatus.JOB_TIMEOUT,
        )


@dataclass(frozen=True)
class ConversionJob:
    """변환 작업 (생성 후 불변)

    Attributes:
        source_bytes: 원본 .fig 바이트 (내용은 해석하지 않음)
        source_name: 업로드 파일명
        requested_at: 요청 시각 (UTC)
    """

    source_bytes: bytes
    source_name: str
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.source_bytes)


@dataclass
class ConversionResult:
    """변환 결과 (성공 시에만 생성, 호출자에게 소유권 이전)"""

    payload_bytes: bytes
    declared_name: str

    @property
    def size(self) -> int:
        return len(self.payload_bytes)


@dataclass
class ConversionReport:
    """변환 리포트 표준 포맷

    Attributes:
        status: 변환 상태
        result: 성공 시 결과
        error_code: 실패 시 오류 코드
        error_message: 실패 시 사람이 읽을 수 있는 메시지
        error: 실패 시 원본 예외
        elapsed_ms: 소요 시간 (밀리초), 실패 시 실패 시점까지
        session_id: 사용한 브라우저 세션 ID
        budget_report: 예산 사용 리포트
    """

    status: ConversionStatus
    result: Optional[ConversionResult] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error: Optional[ConverterException] = None
    elapsed_ms: Optional[float] = None
    session_id: Optional[str] = None
    budget_report: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return self.status == ConversionStatus.SUCCESS and self.result is not None

    @classmethod
    def success(
        cls,
        result: ConversionResult,
        elapsed_ms: float,
        session_id: Optional[str] = None,
        budget_report: Optional[dict] = None,
    ) -> "ConversionReport":
        return cls(
            status=ConversionStatus.SUCCESS,
            result=result,
            elapsed_ms=elapsed_ms,
            session_id=session_id,
            budget_report=budget_report,
        )

    @classmethod
    def failure(
        cls,
        error: ConverterException,
        elapsed_ms: float,
        session_id: Optional[str] = None,
        budget_report: Optional[dict] = None,
    ) -> "ConversionReport":
        """분류된 예외로부터 실패 리포트 생성

        error_code가 ConversionStatus에 없으면 INTERNAL_ERROR로 취급합니다.
        """
        try:
            status = ConversionStatus(error.error_code.lower())
        except ValueError:
            status = ConversionStatus.INTERNAL_ERROR
        return cls(
            status=status,
            error_code=error.error_code,
            error_message=error.message,
            error=error,
            elapsed_ms=elapsed_ms,
            session_id=session_id,
            budget_report=budget_report,
        )

    @classmethod
    def internal_error(
        cls,
        message: str,
        elapsed_ms: float,
        session_id: Optional[str] = None,
    ) -> "ConversionReport":
        return cls(
            status=ConversionStatus.INTERNAL_ERROR,
            error_code="INTERNAL_ERROR",
            error_message=message,
            elapsed_ms=elapsed_ms,
            session_id=session_id,
        )
