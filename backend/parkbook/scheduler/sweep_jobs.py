"""
Background sweeps run by the APScheduler BackgroundScheduler in main.py.

- cart expiry: pending unpaid carts idle for CART_EXPIRY_DAYS are cancelled, holds released.
- payment recovery: payment sessions open longer than PAYMENT_SESSION_TIMEOUT_MINUTES are
  resolved against the gateway.
- template horizon: open-ended templates are materialized up to today + horizon.

Each job owns its session and never raises into the scheduler.
"""
import logging

from parkbook.db.session import SessionLocal
from parkbook.services.availability_service import extend_open_ended_templates
from parkbook.services.checkout_service import expire_stale_carts, recover_stale_payment_sessions

logger = logging.getLogger(__name__)


def run_cart_expiry_job() -> int:
    db = SessionLocal()
    try:
        expired = expire_stale_carts(db)
        if expired:
            logger.info("Cart expiry sweep: %s carts cancelled", expired)
        return expired
    except Exception as e:
        logger.exception("Cart expiry sweep failed: %s", e)
        db.rollback()
        return 0
    finally:
        db.close()


def run_payment_recovery_job() -> int:
    db = SessionLocal()
    try:
        recovered = recover_stale_payment_sessions(db)
        if recovered:
            logger.info("Payment recovery sweep: %s sessions resolved", recovered)
        return recovered
    except Exception as e:
        logger.exception("Payment recovery sweep failed: %s", e)
        db.rollback()
        return 0
    finally:
        db.close()


def run_template_horizon_job() -> int:
    db = SessionLocal()
    try:
        return extend_open_ended_templates(db)
    except Exception as e:
        logger.exception("Template horizon job failed: %s", e)
        db.rollback()
        return 0
    finally:
        db.close()
