"""커스텀 예외 정의 (Structured Exception Hierarchy)"""
from typing import Any, Optional


# 기본 예외 클래스
class ConverterException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 업로드(입력) 관련 예외 - 변환 엔진까지 도달하지 않음
class InvalidUploadException(ConverterException):
    """업로드 파일이 없거나 형식이 맞지 않을 때"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(reason, "BAD_INPUT", details or {"reason": reason})


class UploadTooLargeException(InvalidUploadException):
    """업로드 크기 제한 초과"""
    def __init__(self, size: int, limit: int, details: Optional[dict[str, Any]] = None):
        super().__init__(
            f"File too large: {size} bytes (limit: {limit} bytes)",
            details or {"size": size, "limit": limit},
        )
        self.error_code = "PAYLOAD_TOO_LARGE"


# 변환 엔진 예외 - 모두 작업 종료(terminal), 내부 재시도 없음
class ConversionException(ConverterException):
    """변환 실패 예외의 기본 클래스"""
    def __init__(self, message: str, error_code: str = "CONVERSION_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "CONVERSION_ERROR", details)


class ProcessLaunchError(ConversionException):
    """브라우저 프로세스 기동 실패 (실행 파일 없음, 샌드박스 오류, 기동 타임아웃 등)"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Browser launch failed: {reason}"
        super().__init__(message, "PROCESS_LAUNCH_ERROR", details or {"reason": reason})


class PhaseTimeoutError(ConversionException):
    """단계별 예산 초과 공통 부모"""
    phase = "phase"
    code = "PHASE_TIMEOUT"

    def __init__(self, budget_s: float, elapsed_s: Optional[float] = None, details: Optional[dict[str, Any]] = None):
        message = f"Phase '{self.phase}' timed out after {budget_s:.1f}s"
        self.budget_s = budget_s
        super().__init__(
            message,
            self.code,
            details or {"phase": self.phase, "budget_s": budget_s, "elapsed_s": elapsed_s},
        )


class HandshakeTimeout(PhaseTimeoutError):
    """에디터 초기화 완료 신호를 예산 안에 받지 못함"""
    phase = "handshake"
    code = "HANDSHAKE_TIMEOUT"


class LoadTimeout(PhaseTimeoutError):
    """파일 로드 완료 신호를 예산 안에 받지 못함"""
    phase = "load"
    code = "LOAD_TIMEOUT"


class ExportTimeout(PhaseTimeoutError):
    """내보내기 결과를 예산 안에 받지 못함"""
    phase = "export"
    code = "EXPORT_TIMEOUT"


class JobTimeoutError(PhaseTimeoutError):
    """작업 전체 예산(모든 단계 합) 초과"""
    phase = "job"
    code = "JOB_TIMEOUT"


class ChannelProtocolError(ConversionException):
    """메시지 채널에서 예상하지 못한/해석 불가능한 신호"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Unexpected signal on editor channel: {reason}"
        super().__init__(message, "CHANNEL_PROTOCOL_ERROR", details or {"reason": reason})


class SessionLostError(ConversionException):
    """작업 도중 브라우저/페이지가 종료됨"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Browser session lost: {reason}"
        super().__init__(message, "SESSION_LOST", details or {"reason": reason})


class ValidationError(ConversionException):
    """결과 파일 시그니처(매직 넘버) 불일치"""
    def __init__(self, expected: bytes, observed: bytes, details: Optional[dict[str, Any]] = None):
        self.expected = expected
        self.observed = observed
        message = f"Result signature mismatch: expected {expected!r}, got {observed!r}"
        super().__init__(
            message,
            "VALIDATION_ERROR",
            details or {"expected": expected.hex(), "observed": observed.hex()},
        )


class EmptyResultError(ConversionException):
    """내보내기는 끝났지만 결과가 0바이트"""
    def __init__(self, details: Optional[dict[str, Any]] = None):
        super().__init__("Export returned an empty payload", "EMPTY_RESULT", details)
