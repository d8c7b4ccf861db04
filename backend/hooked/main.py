"""
FastAPI app entrypoint.

Notification pipeline: change triggers -> idempotent handlers -> per-partition job queue -> Expo push.
"""
import logging
import threading
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from hooked.api.routes import events, notifications, push, triggers
from hooked.config import settings
from hooked.core.constants import (
    NOTIFICATION_RETENTION_JOB_ID,
    NOTIFICATION_SWEEP_INTERVAL_SECONDS,
    NOTIFICATION_SWEEP_JOB_ID,
)
from hooked.scheduler import scheduler
from hooked.scheduler.notification_jobs import (
    install_reactive_drain,
    run_notification_sweep_job,
    run_retention_job,
    uninstall_reactive_drain,
)
from hooked.services.circuit_breaker import NotificationCircuitBreaker

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler.add_job(
        run_notification_sweep_job,
        "interval",
        seconds=NOTIFICATION_SWEEP_INTERVAL_SECONDS,
        id=NOTIFICATION_SWEEP_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        run_retention_job,
        "cron",
        hour=3,
        minute=15,
        id=NOTIFICATION_RETENTION_JOB_ID,
        replace_existing=True,
    )
    install_reactive_drain()
    scheduler.start()
    app.state.scheduler = scheduler

    def startup_background():
        # One sweep on startup so jobs queued while the service was down go out right away
        try:
            run_notification_sweep_job()
            logger.info("Notification sweep on startup; next sweep in %ss", NOTIFICATION_SWEEP_INTERVAL_SECONDS)
        except Exception as e:
            logger.warning("Notification sweep on startup failed: %s", e, exc_info=True)

    threading.Thread(target=startup_background, daemon=True).start()
    logger.info("Backend ready")
    yield
    uninstall_reactive_drain()
    scheduler.shutdown(wait=False)


app = FastAPI(title="Hooked Notifications", version="0.1.0", lifespan=lifespan)
app.state.circuit_breaker = NotificationCircuitBreaker()

# CORS: dev origins + optional CORS_ORIGINS (comma-separated) for deployed clients
_cors_origins = [
    "http://localhost:8081",
    "http://127.0.0.1:8081",
    "http://localhost:19006",
    "http://127.0.0.1:19006",
]
_cors_extra = settings.cors_origins
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(triggers.router, tags=["triggers"])
app.include_router(notifications.router, tags=["notifications"])
app.include_router(push.router, tags=["push"])
app.include_router(events.router, tags=["events"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Hooked notifications API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
