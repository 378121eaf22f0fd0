"""헬스 체크 엔드포인트"""
from fastapi import APIRouter, Depends
from datetime import datetime

from src.schemas.convert_schema import HealthResponse, SessionStats, StatusResponse
from src.engine import ConversionOrchestrator
from src.api.routes.convert_routes import get_orchestrator
from src.core.logging import logger
from src import __version__

router = APIRouter(tags=["health"])


@router.get("/status", response_model=StatusResponse)
async def status_check(orchestrator: ConversionOrchestrator = Depends(get_orchestrator)):
    """서버 동작 여부 (브라우저는 띄우지 않음)"""
    return StatusResponse(
        status="OK",
        message="Fig to PSD server running",
        job_timeout_s=orchestrator.job_timeout_s,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(orchestrator: ConversionOrchestrator = Depends(get_orchestrator)):
    """
    헬스 체크 엔드포인트

    - 서버 상태
    - 브라우저 세션 현황 (열린 세션이 상한에 닿으면 degraded)
    """
    stats = orchestrator.sessions.stats()
    status = "ok"
    if stats["active"] >= stats["max_concurrent"]:
        logger.warning(f"[API] All browser session slots in use: {stats}")
        status = "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(),
        version=__version__,
        sessions=SessionStats(**stats),
        job_timeout_s=orchestrator.job_timeout_s,
    )


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "Fig → PSD 변환 서비스",
        "version": __version__,
        "docs": "/docs"
    }
