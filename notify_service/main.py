import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from notify_service.core.config import settings
from notify_service.core.exceptions import NotifyServiceError, notify_service_error_handler
from notify_service.core.logging_config import setup_logging
from notify_service.jobs.notification_jobs import NotificationJobs
from notify_service.jobs.scheduler import NotificationScheduler
from notify_service.models.db import SessionLocal, engine, init_models
from notify_service.routers import dead_letter, events, notifications, preferences, push, templates
from notify_service.routers import scheduler as scheduler_admin
from notify_service.services.delivery_service import build_channel_senders

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, wire channel senders, start the delivery ticks; stop them on shutdown."""
    await init_models()

    app.state.channel_senders = build_channel_senders(settings)

    scheduler = None
    if settings.ENABLE_SCHEDULER:
        scheduler = NotificationScheduler(NotificationJobs(SessionLocal, app.state.channel_senders))
        scheduler.register_jobs()
        scheduler.start()
        logger.info("Scheduler started with notification ticks")
    else:
        logger.info("Scheduler disabled (ENABLE_SCHEDULER=false)")
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop(wait=True)

    try:
        await engine.dispose()
        logger.info("Database engine disposed")
    except Exception as e:
        logger.warning(f"Failed to dispose engine gracefully: {e}")


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan, default_response_class=ORJSONResponse)

app.add_exception_handler(NotifyServiceError, notify_service_error_handler)

app.include_router(notifications.router, prefix="/api/v1")
app.include_router(preferences.router, prefix="/api/v1")
app.include_router(events.router, prefix="/api/v1")
app.include_router(templates.router, prefix="/api/v1")
app.include_router(dead_letter.router, prefix="/api/v1")
app.include_router(scheduler_admin.router, prefix="/api/v1")
app.include_router(push.router, prefix="/api/v1")


@app.get("/health")
async def health():
    scheduler = getattr(app.state, "scheduler", None)
    return {"status": "ok", "scheduler": bool(scheduler and scheduler.running)}
