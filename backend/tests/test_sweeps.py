"""Cart expiry, stale payment recovery, and the scheduler job wrappers."""
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from conftest import FakeGateway
from parkbook.models import Booking, Cart
from parkbook.scheduler import sweep_jobs
from parkbook.services import availability_service, cart_service, checkout_service
from parkbook.services.checkout_service import utc_now

USER = "user-1"


@pytest.fixture
def monday(make_template, instance_on):
    return instance_on(make_template(), "2030-01-07")


@pytest.fixture
def open_session(db, pricing, monday):
    """USER's cart holds 3 Monday tickets behind open payment session fake_1."""
    cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=monday.id, quantity=3)
    gateway = FakeGateway("pending")
    checkout_service.checkout(db, USER, "edahabia", gateway=gateway)
    return gateway


def _available(db, instance):
    db.expire_all()
    return availability_service.get_instance(db, instance.id).available_tickets


class TestExpireStaleCarts:
    def test_idle_cart_is_cancelled(self, db, pricing, monday):
        cart = cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=monday.id, quantity=1)
        assert checkout_service.expire_stale_carts(db, now=utc_now() + timedelta(days=8)) == 1
        assert db.get(Cart, cart.id).status == "cancelled"
        assert cart_service.get_cart(db, USER) is None

    def test_recent_cart_is_kept(self, db, pricing, monday):
        cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=monday.id, quantity=1)
        assert checkout_service.expire_stale_carts(db) == 0
        assert cart_service.get_cart(db, USER) is not None

    def test_held_capacity_is_released(self, db, monday, open_session):
        assert _available(db, monday) == 7
        assert checkout_service.expire_stale_carts(db, now=utc_now() + timedelta(days=8)) == 1
        cart = db.query(Cart).one()
        assert (cart.status, cart.payment_status, cart.capacity_held) == ("cancelled", "failed", False)
        assert _available(db, monday) == 10

    def test_paid_cart_never_expires(self, db, pricing, monday):
        cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=monday.id, quantity=1)
        checkout_service.checkout(db, USER, "paypal", gateway=FakeGateway("paid"))
        assert checkout_service.expire_stale_carts(db, now=utc_now() + timedelta(days=30)) == 0
        assert db.query(Cart).one().status == "confirmed"


class TestRecoverStalePaymentSessions:
    def _later(self):
        return utc_now() + timedelta(minutes=31)

    def test_recent_session_untouched(self, db, monday, open_session):
        assert checkout_service.recover_stale_payment_sessions(db, gateway=open_session) == 0
        assert _available(db, monday) == 7

    def test_still_pending_is_treated_as_failed(self, db, monday, open_session):
        assert checkout_service.recover_stale_payment_sessions(db, gateway=open_session, now=self._later()) == 1
        assert db.query(Cart).one().status == "cancelled"
        assert _available(db, monday) == 10

    def test_paid_at_gateway_is_confirmed(self, db, monday, open_session):
        open_session.statuses["fake_1"] = "paid"
        checkout_service.recover_stale_payment_sessions(db, gateway=open_session, now=self._later())
        assert db.query(Cart).one().status == "confirmed"
        assert db.query(Booking).count() == 1
        assert _available(db, monday) == 7

    def test_gateway_error_releases(self, db, monday, open_session):
        checkout_service.recover_stale_payment_sessions(db, gateway=FakeGateway(error="down"), now=self._later())
        assert db.query(Cart).one().payment_status == "failed"
        assert _available(db, monday) == 10

    def test_unknown_provider_releases(self, db, monday, open_session):
        """Carts opened by a gateway no longer registered are resolved as failed."""
        checkout_service.recover_stale_payment_sessions(db, now=self._later())
        assert db.query(Cart).one().status == "cancelled"
        assert _available(db, monday) == 10


class TestJobs:
    @pytest.fixture(autouse=True)
    def job_sessions(self, engine, monkeypatch):
        monkeypatch.setattr(sweep_jobs, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine))

    def test_jobs_run_against_their_own_session(self, db, pricing, monday):
        cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=monday.id, quantity=1)
        assert sweep_jobs.run_cart_expiry_job() == 0
        assert sweep_jobs.run_payment_recovery_job() == 0
        assert sweep_jobs.run_template_horizon_job() == 0

    def test_failures_are_logged_not_raised(self, monkeypatch, caplog):
        def boom(db, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(sweep_jobs, "expire_stale_carts", boom)
        monkeypatch.setattr(sweep_jobs, "recover_stale_payment_sessions", boom)
        monkeypatch.setattr(sweep_jobs, "extend_open_ended_templates", boom)
        assert sweep_jobs.run_cart_expiry_job() == 0
        assert sweep_jobs.run_payment_recovery_job() == 0
        assert sweep_jobs.run_template_horizon_job() == 0
        assert "database went away" in caplog.text
