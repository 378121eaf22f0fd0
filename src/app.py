"""FastAPI 앱 팩토리"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from src.core.config import settings
from src.core.exceptions import InvalidUploadException, UploadTooLargeException
from src.core.logging import logger
from src.api import health_router, convert_router, shutdown_engine
from src.schemas.convert_schema import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    logger.info("Starting application...")
    logger.info(
        f"Editor: {settings.editor_url}, max sessions: {settings.max_concurrent_sessions}, "
        f"load strategy: {settings.load_strategy}"
    )
    yield
    logger.info("Shutting down application...")
    await shutdown_engine()


async def upload_error_handler(request: Request, exc: InvalidUploadException) -> JSONResponse:
    """업로드 검증 실패 → 400 / 413"""
    status_code = 413 if isinstance(exc, UploadTooLargeException) else 400
    logger.info(f"[API] Rejected upload: {exc.error_code} {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.message, error_code=exc.error_code).model_dump(),
    )


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)
    
    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )
    
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Job-Timeout", "X-Conversion-Elapsed-Ms"],
    )

    app.add_exception_handler(InvalidUploadException, upload_error_handler)
    
    # 라우터 등록
    app.include_router(health_router)
    app.include_router(convert_router)
    
    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
