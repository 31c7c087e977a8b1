"""
FastAPI app entrypoint.

Adventure-park booking core: availability templates/instances, carts, checkout and the
payment webhook. Background sweeps run in an in-process scheduler.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from parkbook.api.routes import availability, bookings, cart, payments, templates
from parkbook.config import settings
from parkbook.core.constants import (
    CART_EXPIRY_JOB_ID,
    PAYMENT_RECOVERY_JOB_ID,
    TEMPLATE_HORIZON_JOB_ID,
)
from parkbook.core.errors import DomainError, domain_error_handler
from parkbook.scheduler.sweep_jobs import (
    run_cart_expiry_job,
    run_payment_recovery_job,
    run_template_horizon_job,
)

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.scheduler_enabled:
        _scheduler.add_job(
            run_cart_expiry_job,
            "interval",
            seconds=settings.sweep_interval_seconds,
            id=CART_EXPIRY_JOB_ID,
        )
        _scheduler.add_job(
            run_payment_recovery_job,
            "interval",
            seconds=settings.sweep_interval_seconds,
            id=PAYMENT_RECOVERY_JOB_ID,
        )
        _scheduler.add_job(run_template_horizon_job, "cron", hour=3, minute=15, id=TEMPLATE_HORIZON_JOB_ID)
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info(
            "Scheduler started: sweeps every %ss, horizon job daily", settings.sweep_interval_seconds
        )
    logger.info("Backend ready (payments=%s, working hours=%s)", settings.payment_provider, settings.working_hours_provider)
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Park Booking", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.cors_origins:
    _cors_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DomainError, domain_error_handler)

app.include_router(templates.router, tags=["templates"])
app.include_router(availability.router, tags=["availability"])
app.include_router(cart.router, prefix="/cart", tags=["cart"])
app.include_router(payments.router, prefix="/payments", tags=["payments"])
app.include_router(bookings.router, tags=["bookings"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Park Booking API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
