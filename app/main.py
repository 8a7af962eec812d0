"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config.dependencies import get_intake, get_provider_client
from .config.settings import settings
from .controllers import analyses, discussions, users
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ANALYSIS_LOGGERS = ("app.services.orchestrator", "app.services.intake")
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def _file_handler(path: str, max_bytes: int) -> RotatingFileHandler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _configure_logging() -> None:
    """Route logs to stdout and logs/app.log; run lifecycles also to their own file."""

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(_file_handler(settings.log_file, 1_000_000))
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    # Request lines are already formatted by the middleware.
    middleware_logger = logging.getLogger("app.middleware.structured")
    middleware_logger.handlers.clear()
    middleware_stdout = logging.StreamHandler(sys.stdout)
    middleware_stdout.setFormatter(logging.Formatter("%(message)s"))
    middleware_logger.addHandler(middleware_stdout)
    middleware_logger.setLevel(logging.INFO)
    middleware_logger.propagate = False

    analysis_handler = _file_handler(settings.analysis_log_file, 500_000)
    for name in ANALYSIS_LOGGERS:
        analysis_logger = logging.getLogger(name)
        analysis_logger.handlers.clear()
        analysis_logger.addHandler(analysis_handler)
        analysis_logger.setLevel(logging.INFO)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Streams LLM text analyses to browsers over Server-Sent Events",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(analyses.router)
    app.include_router(discussions.router)
    app.include_router(users.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, object]:
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "storage": settings.storage_backend,
            "runningAnalyses": get_intake().running,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logging.getLogger(__name__).exception(
            "Unhandled error on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        if settings.storage_backend == "sql":
            from .database import init_models

            await init_models()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        # In-flight runs are cancelled; their jobs stay "streaming".
        await get_intake().shutdown()
        await get_provider_client().aclose()
        if settings.storage_backend == "sql":
            from .database import dispose_engine

            await dispose_engine()

    return app


app = create_app()
