"""API routes package."""

from .convert_routes import router as convert_router, get_orchestrator, shutdown_engine
from .health_routes import router as health_router

__all__ = ["health_router", "convert_router", "get_orchestrator", "shutdown_engine"]
