"""
FastAPI Application Factory

Creates the admin analytics API around one data store.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from marketplace.config import get_settings
from marketplace.config.logging import configure_logging
from marketplace.data.stores import DataStore, create_store
from marketplace.exceptions import InvalidReportRequest, ProductNotFound
from marketplace.reporting.assembler import ReportAssembler
from marketplace.serving.api.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from marketplace.serving.api.routes import analytics_router, health_router

logger = structlog.get_logger(__name__)


def create_app(store: Optional[DataStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Data store to report from; defaults to the configured one

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()
    store = store if store is not None else create_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        configure_logging()
        logger.info("Starting Marketplace Analytics API", store=type(store).__name__)

        database = getattr(store, "database", None)
        if database is not None:
            try:
                await database.create_schema()
            except Exception as e:
                logger.warning("Database schema init failed", error=str(e))

        yield

        logger.info("Shutting down...")
        await store.close()

    app = FastAPI(
        title="Marketplace Analytics API",
        description="Admin console analytics and report exports for the marketplace",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.assembler = ReportAssembler(store, settings.analytics)

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

    @app.exception_handler(InvalidReportRequest)
    async def invalid_request_handler(request: Request, exc: InvalidReportRequest) -> JSONResponse:
        logger.info("Rejected report request", parameter=exc.parameter, error=str(exc))
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": str(exc), "parameter": exc.parameter},
        )

    @app.exception_handler(ProductNotFound)
    async def product_not_found_handler(request: Request, exc: ProductNotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def report_failure_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Report generation failed", path=request.url.path, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Report generation failed"},
        )

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(analytics_router, prefix="/api/v1/admin/analytics", tags=["Analytics"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Marketplace Analytics API",
            "version": settings.version,
            "environment": settings.app_env,
            "store": type(store).__name__,
        }

    return app
