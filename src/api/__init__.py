"""API 엔드포인트 패키지 - export only."""

from .routes import health_router, convert_router, get_orchestrator, shutdown_engine

__all__ = ["health_router", "convert_router", "get_orchestrator", "shutdown_engine"]
