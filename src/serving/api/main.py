"""
FastAPI Application Factory

Creates and configures the reporting API application.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from src.config import Settings, get_settings
from src.core.exceptions import (
    ComputationError,
    ConfigurationError,
    ExportError,
    ExpressionError,
    ReportingError,
    TransportError,
)
from src.services import ReportingServices, create_services
from src.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from src.serving.api.routes import (
    analytics_router,
    dashboards_router,
    exports_router,
    health_router,
    realtime_router,
    reports_router,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    ConfigurationError: 400,
    TransportError: 502,
    ComputationError: 500,
    ExportError: 500,
}


def _error_response(exc: ReportingError) -> JSONResponse:
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": type(exc).__name__, "details": exc.details},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ReportingError)
    async def reporting_error_handler(request: Request, exc: ReportingError) -> JSONResponse:
        logger.warning("Request failed", path=request.url.path, error=type(exc).__name__, message=exc.message)
        return _error_response(exc)

    @app.exception_handler(ExpressionError)
    async def expression_error_handler(request: Request, exc: ExpressionError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "error": "ExpressionError"})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "error": "ValueError"})


def create_api_app(
    settings: Optional[Settings] = None,
    services: Optional[ReportingServices] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    When ``services`` is given it is used as-is and left open on shutdown;
    otherwise the lifespan builds and closes its own container.

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            app.state.services = services
            yield
            return

        logger.info("Starting Education Analytics API", environment=settings.app_env)
        app.state.services = await create_services(settings)
        try:
            yield
        finally:
            logger.info("Shutting down...")
            await app.state.services.close()
            app.state.services = None

    app = FastAPI(
        title="Education Analytics API",
        description="Reports, dashboards, realtime metrics and exports for an education platform",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])
    app.include_router(exports_router, prefix="/api/v1/exports", tags=["Exports"])
    app.include_router(dashboards_router, prefix="/api/v1/dashboards", tags=["Dashboards"])
    app.include_router(realtime_router, prefix="/api/v1/realtime", tags=["Realtime"])
    app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs",
        }

    return app
