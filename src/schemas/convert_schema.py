"""Pydantic 스키마 정의"""
from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime


class StatusResponse(BaseModel):
    """간단 상태 응답 (/status)"""
    status: str = Field(..., description="서버 상태")
    message: str = Field(..., description="상태 메시지")
    job_timeout_s: Optional[float] = Field(None, description="변환 1건의 최대 소요 시간 (초)")


class SessionStats(BaseModel):
    """브라우저 세션 카운터"""
    acquired: int = Field(..., ge=0, description="누적 획득 수")
    released: int = Field(..., ge=0, description="누적 해제 수")
    active: int = Field(..., ge=0, description="현재 열린 세션 수")
    max_concurrent: int = Field(..., ge=1, description="동시 세션 상한")


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    status: str = Field(..., description="서버 상태")
    timestamp: datetime = Field(..., description="응답 시간")
    version: str = Field(..., description="API 버전")
    sessions: Optional[SessionStats] = Field(None, description="브라우저 세션 현황")
    job_timeout_s: Optional[float] = Field(None, description="변환 1건의 최대 소요 시간 (초)")


class ErrorResponse(BaseModel):
    """입력 오류 응답"""
    error: str = Field(..., description="오류 메시지")
    error_code: Optional[str] = Field(None, description="오류 코드")


class ConversionErrorResponse(BaseModel):
    """변환 실패 응답 (부분 결과는 절대 포함하지 않음)"""
    error: str = Field("Conversion failed", description="오류 분류")
    kind: str = Field(..., description="실패 종류 (예: HANDSHAKE_TIMEOUT)")
    message: str = Field(..., description="사람이 읽을 수 있는 메시지")
    elapsed_ms: Optional[float] = Field(None, ge=0, description="실패 시점까지 경과 시간 (ms)")
    session_id: Optional[str] = Field(None, description="브라우저 세션 ID (로그 추적용)")
