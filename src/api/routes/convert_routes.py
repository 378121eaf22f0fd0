"""Convert Routes - HTTP Layer

HTTP Layer는 업로드 검증과 응답 변환만 하고, 변환은 Engine Layer에 위임합니다.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse, Response

from src.browser import (
    BrowserSessionManager,
    LaunchOptions,
    PlaywrightController,
    PlaywrightMessageChannel,
)
from src.core.config import settings
from src.core.exceptions import InvalidUploadException, UploadTooLargeException
from src.core.logging import logger, sanitize_for_log
from src.editor import DocumentHandshakeProtocol, ExportProtocol, PayloadTransferProtocol
from src.engine import (
    ConversionJob,
    ConversionOrchestrator,
    ConversionReport,
    ConversionStatus,
    PhaseBudgetConfig,
    TimeoutGovernor,
    build_load_strategy,
    build_readiness_strategy,
    get_sentinel_policy,
)
from src.schemas.convert_schema import ConversionErrorResponse
from src.utils.file_utils import content_disposition, has_suffix

router = APIRouter(tags=["convert"])

# 싱글톤 서비스
_controller: Optional[PlaywrightController] = None
_orchestrator: Optional[ConversionOrchestrator] = None

_HTTP_STATUS = {
    ConversionStatus.PROCESS_LAUNCH_ERROR: 503,
    ConversionStatus.HANDSHAKE_TIMEOUT: 504,
    ConversionStatus.LOAD_TIMEOUT: 504,
    ConversionStatus.EXPORT_TIMEOUT: 504,
    ConversionStatus.JOB_TIMEOUT: 504,
    ConversionStatus.CHANNEL_PROTOCOL_ERROR: 502,
    ConversionStatus.SESSION_LOST: 502,
    ConversionStatus.VALIDATION_ERROR: 502,
    ConversionStatus.EMPTY_RESULT: 502,
    ConversionStatus.INTERNAL_ERROR: 500,
}


def get_controller() -> PlaywrightController:
    """PlaywrightController 싱글톤 (드라이버 공유)"""
    global _controller
    if _controller is None:
        _controller = PlaywrightController()
    return _controller


def build_orchestrator(controller=None) -> ConversionOrchestrator:
    """설정값으로 엔진 조립"""
    controller = controller or get_controller()
    budget_config = PhaseBudgetConfig.from_settings(settings)
    governor = TimeoutGovernor(poll_interval_s=settings.poll_interval_s)

    def channel_factory(page):
        return PlaywrightMessageChannel(
            page,
            sentinel=settings.editor_sentinel,
            policy=get_sentinel_policy(settings.sentinel_policy),
        )

    sessions = BrowserSessionManager(
        controller=controller,
        channel_factory=channel_factory,
        launch_options=LaunchOptions.from_settings(),
        max_concurrent=settings.max_concurrent_sessions,
    )
    handshake = DocumentHandshakeProtocol(
        governor=governor,
        strategy=build_readiness_strategy(settings.readiness_strategy),
        editor_url=settings.editor_url,
        budget_s=budget_config.handshake_timeout,
    )
    transfer = PayloadTransferProtocol(
        governor=governor,
        strategy=build_load_strategy(settings.load_strategy, settle_delay_s=budget_config.settle_delay),
        budget_s=budget_config.load_timeout,
    )
    export = ExportProtocol(
        governor=governor,
        budget_s=budget_config.export_timeout,
        target_format=settings.target_format,
        magic=settings.target_magic.encode("latin-1"),
        await_trailing_sentinel=settings.export_await_trailing_sentinel,
    )
    return ConversionOrchestrator(
        sessions=sessions,
        handshake=handshake,
        transfer=transfer,
        export=export,
        budget_config=budget_config,
        source_suffix=settings.source_suffix,
        target_format=settings.target_format,
    )


def get_orchestrator() -> ConversionOrchestrator:
    """ConversionOrchestrator 싱글톤

    Engine Layer의 진입점을 제공합니다.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator


async def shutdown_engine() -> None:
    """공유 Playwright 드라이버 정리 (앱 종료 시)"""
    global _orchestrator
    if _controller is not None:
        await _controller.shutdown()
    _orchestrator = None


async def read_upload(file: Optional[UploadFile]) -> tuple[str, bytes]:
    """업로드 파일 검증 후 (파일명, 바이트) 반환

    Raises:
        InvalidUploadException: 파일 없음 / 확장자 불일치 / 빈 파일
        UploadTooLargeException: 크기 제한 초과
    """
    if file is None:
        raise InvalidUploadException("No file uploaded")

    filename = file.filename or ""
    if not has_suffix(filename, settings.source_suffix):
        raise InvalidUploadException(
            f"Only {settings.source_suffix} files are allowed",
            details={"filename": sanitize_for_log(filename)},
        )

    limit = settings.max_upload_mb * 1024 * 1024
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise UploadTooLargeException(size=len(data), limit=limit)
    if not data:
        raise InvalidUploadException("Uploaded file is empty")
    return filename, data


def report_to_error_response(report: ConversionReport) -> JSONResponse:
    body = ConversionErrorResponse(
        kind=report.error_code or report.status.value.upper(),
        message=report.error_message or "Conversion failed",
        elapsed_ms=report.elapsed_ms,
        session_id=report.session_id,
    )
    return JSONResponse(status_code=_HTTP_STATUS.get(report.status, 500), content=body.model_dump())


@router.post("/convert")
async def convert_file(
    file: Optional[UploadFile] = File(None),
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
):
    """.fig → .psd 변환 API

    Flow:
        1. 업로드 검증 (파일 존재, 확장자, 크기)
        2. Engine에 위임 (Session → Handshake → Transfer → Export)
        3. 결과를 HTTP Response로 변환 (성공: 바이너리, 실패: 분류된 JSON 오류)
    """
    filename, data = await read_upload(file)
    logger.info(f"[API] Conversion request: file='{sanitize_for_log(filename)}' ({len(data)} bytes)")

    report = await orchestrator.convert(ConversionJob(source_bytes=data, source_name=filename))

    if not report.ok:
        logger.warning(f"[API] Conversion failed: kind={report.error_code}, elapsed_ms={report.elapsed_ms:.0f}")
        return report_to_error_response(report)

    result = report.result
    logger.info(f"[API] Sending {result.declared_name} ({result.size} bytes)")
    return Response(
        content=result.payload_bytes,
        media_type=settings.target_media_type,
        headers={
            "Content-Disposition": content_disposition(result.declared_name),
            "X-Conversion-Elapsed-Ms": f"{report.elapsed_ms:.0f}",
            "X-Job-Timeout": f"{orchestrator.job_timeout_s:.0f}",
        },
    )
