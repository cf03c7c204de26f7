"""
FastAPI application factory
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.responses import PlainTextResponse

from gvr_exporter.api.routes import health, metrics
from gvr_exporter.core.config import Settings, get_settings
from gvr_exporter.core.logging_config import LoggingConfig
from gvr_exporter.core.middleware import LoggingContextMiddleware
from gvr_exporter.services.scrape_service import ScrapeService

logger = LoggingConfig.get_logger(__name__)

VERSION = "0.1.0"


def create_app(scrape_service: ScrapeService, settings: Optional[Settings] = None) -> FastAPI:
    """Build the app around an already prepared scrape service"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting {settings.app_name}",
            extra={"selector": str(scrape_service.selector), "query": scrape_service.query.query},
        )
        yield
        logger.info(f"Shutting down {settings.app_name}...")

    app = FastAPI(
        title=settings.app_name,
        description="Exports metrics printed by a stub evaluated over Kubernetes resources",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.scrape_service = scrape_service

    app.add_middleware(LoggingContextMiddleware)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Log unhandled errors and answer with a plain-text 500"""
        if isinstance(exc, FastAPIHTTPException):
            raise exc

        logger.error(
            "Unhandled exception",
            exc_info=True,
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
            }
        )
        return PlainTextResponse(
            f"internal_error: {type(exc).__name__}: {exc}\n",
            status_code=500,
        )

    app.include_router(metrics.router)
    app.include_router(health.router)

    return app
