"""
FastAPI application factory with middleware, CORS, request tracing,
error mapping and the notification scheduler lifespan.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paydash import __version__
from paydash.config import get_settings
from paydash.engine.alerts import NotificationScheduler
from paydash.errors import AnalyticsError, DataUnavailable
from paydash.routers import analytics, export, notifications
from paydash.utils.logging import configure_logging, get_logger


configure_logging()
logger = get_logger(__name__)

# Polled by load balancers; completed-request events are skipped
QUIET_PATHS = frozenset({"/health"})


def build_scheduler() -> NotificationScheduler:
    """Scheduler with the threshold evaluation and cleanup jobs registered."""
    settings = get_settings()
    scheduler = NotificationScheduler()
    scheduler.register(
        "threshold_evaluation",
        lambda: notifications.build_threshold_evaluator().run_cycle(),
        settings.notification_interval_seconds,
    )
    scheduler.register(
        "notification_cleanup",
        lambda: notifications.build_notification_center().cleanup(),
        settings.notification_cleanup_interval_seconds,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Starts the notification scheduler unless disabled or under test.
    """
    settings = get_settings()

    logger.info(
        "application_startup",
        version=app.version,
        dev_mode=settings.dev_mode,
        notifications_enabled=settings.notifications_enabled,
    )

    scheduler = None
    if settings.notifications_enabled and not settings.testing:
        scheduler = build_scheduler()
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Paydash API",
        description="Payments analytics: KPIs, comparisons, breakdowns, search and alerts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )

    @app.exception_handler(AnalyticsError)
    async def analytics_error_handler(request: Request, exc: AnalyticsError):
        """Render engine errors with their mapped status code."""
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        log = logger.error if isinstance(exc, DataUnavailable) else logger.warning
        log(
            "request_rejected",
            path=request.url.path,
            error=exc.code,
            detail=exc.message,
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.code,
                "detail": exc.message,
                "request_id": request_id,
            },
        )

    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Bind a request id for the request's log events and time the call."""
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        quiet = request.url.path in QUIET_PATHS
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "internal_error",
                    "detail": "Internal server error",
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )

        response.headers["X-Request-ID"] = request_id
        if not quiet:
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                query=str(request.query_params) or None,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        scheduler = getattr(app.state, "scheduler", None)
        return {
            "status": "healthy",
            "version": app.version,
            "scheduler": scheduler.get_status() if scheduler else {"running": False},
        }

    app.include_router(analytics.router, prefix="/api/v1/analytics", tags=["Analytics"])
    app.include_router(
        notifications.router, prefix="/api/v1/notifications", tags=["Notifications"]
    )
    app.include_router(export.router, prefix="/api/v1/export", tags=["Export"])

    logger.info("application_configured", routers_count=3)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "paydash.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        workers=None if settings.api_reload else settings.api_workers,
        log_level=settings.log_level.lower(),
    )
