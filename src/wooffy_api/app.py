from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from wooffy_api.core.settings import settings
from wooffy_api.db.session import async_session
from .api.errors import install_error_handlers
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .scheduling import ReminderJobScheduler


APP_VERSION = "0.1.0"


def _resolve_schedule_path() -> Path:
    schedule_path = Path(settings.reminder_schedule_path)
    if not schedule_path.is_absolute():
        schedule_path = Path(__file__).resolve().parent.parent.parent / schedule_path
    return schedule_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    schedule_path = _resolve_schedule_path()
    scheduler = ReminderJobScheduler(session_factory=async_session, config_path=schedule_path)
    app.state.reminder_scheduler = scheduler

    scheduler_enabled = settings.reminder_scheduler_enabled
    if scheduler_enabled:
        try:
            scheduler.start()
        except FileNotFoundError as exc:
            logger.exception("Reminder job scheduler failed to start", error=str(exc))
        else:
            logger.info("Reminder job scheduler enabled", schedule_path=str(schedule_path))
    else:
        logger.info(
            "Reminder job scheduler disabled",
            reason="reminder_scheduler_enabled is false",
        )

    try:
        yield
    finally:
        if scheduler.is_running:
            await scheduler.stop()


def create_app() -> FastAPI:
    """Application factory for the Wooffy membership API."""
    configure_logging(
        service_name="wooffy-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Wooffy API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="wooffy-api",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    install_error_handlers(app)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
