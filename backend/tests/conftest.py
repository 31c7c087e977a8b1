"""
Shared fixtures: in-memory SQLite schema, park/pricing factories, a scriptable working-hours
provider and payment gateway, and an API client with real bearer tokens.
"""
import os

# Settings are read at import time; keep background jobs off and secrets fixed in tests
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["PAYMENT_PROVIDER"] = "mock"
os.environ["MOCK_PAYMENT_OUTCOME"] = "paid"
os.environ["WORKING_HOURS_PROVIDER"] = "park_table"
os.environ["SECRET_KEY"] = "test-secret"

from datetime import date
from decimal import Decimal

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from parkbook.core.constants import PAYMENT_PENDING, WEEKDAY_NAMES
from parkbook.db.base import Base
from parkbook.models import Park, Pricing
from parkbook.services import availability_service
from parkbook.services.payments.events import parse_checkout_event
from parkbook.services.payments.types import PaymentGatewayError, PaymentSession, signature_matches
from parkbook.services.scheduling.recurrence import sunday_weekday
from parkbook.services.working_hours.types import WorkingHours

TEST_SECRET = "test-secret"
WEBHOOK_SECRET = "whsec-test"

# Before any template validity used in tests, so open-ended horizons are predictable
TODAY = date(2029, 12, 1)

OPEN_HOURS = {name: {"from": "09:00", "to": "23:59", "closed": False} for name in WEEKDAY_NAMES}


class FakeHoursProvider:
    """Working hours per Sunday-first weekday; unspecified days use `default`."""

    def __init__(self, by_weekday=None, default=None):
        self.by_weekday = by_weekday or {}
        self.default = default if default is not None else WorkingHours(closed=False, open_from="09:00", open_to="23:59")
        self.calls = []

    def get_working_hours(self, park_id, on_date):
        self.calls.append((park_id, on_date))
        return self.by_weekday.get(sunday_weekday(on_date), self.default)


class FakeGateway:
    """
    Settles every checkout with `outcome` (paid/failed settle at once, pending waits for a
    webhook), or raises PaymentGatewayError when `error` is set.
    """

    provider_id = "fake"

    def __init__(self, outcome="paid", error=None):
        self.outcome = outcome
        self.error = error
        self.statuses = {}
        self.checkouts = []

    def create_checkout(self, *, cart_id, amount, currency, payment_method):
        if self.error:
            raise PaymentGatewayError(self.error)
        payment_id = f"fake_{len(self.checkouts) + 1}"
        self.checkouts.append({"cart_id": cart_id, "amount": amount, "currency": currency, "method": payment_method})
        self.statuses[payment_id] = self.outcome
        url = f"https://pay.example/checkout/{payment_id}" if self.outcome == PAYMENT_PENDING else None
        return PaymentSession(payment_id=payment_id, status=self.outcome, checkout_url=url)

    def fetch_status(self, payment_id):
        if self.error:
            raise PaymentGatewayError(self.error)
        return self.statuses.get(payment_id, PAYMENT_PENDING)

    def verify_signature(self, raw_body, signature):
        return signature_matches(WEBHOOK_SECRET, raw_body, signature)

    def parse_event(self, raw_body):
        return parse_checkout_event(raw_body)


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def park(db):
    p = Park(name="Aventura Park", location="Algiers", working_hours=dict(OPEN_HOURS))
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def other_park(db):
    p = Park(name="Forest Ropes", location="Blida", working_hours=dict(OPEN_HOURS))
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def pricing(db, park):
    """[adult, child] for `park`."""
    rows = [
        Pricing(park_id=park.id, name="Adult", price=Decimal("1000.00")),
        Pricing(park_id=park.id, name="Child", price=Decimal("500.00")),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def hours():
    return FakeHoursProvider()


@pytest.fixture
def make_template(db, park, pricing, hours):
    """Create a template with sensible defaults: Mon+Wed 09:00-11:00 in January 2030, 10 tickets."""

    def _make(**overrides):
        fields = {
            "start_time": "09:00",
            "end_time": "11:00",
            "days_of_week": [1, 3],
            "valid_from": "2030-01-01",
            "valid_until": "2030-01-31",
            "ticket_limit": 10,
            "pricing_ids": [pricing[0].id],
            "price_adjustment": 0,
        }
        fields.update(overrides)
        park_id = fields.pop("park_id", park.id)
        provider = fields.pop("provider", hours)
        template, _ = availability_service.create_template(db, park_id, provider=provider, today=TODAY, **fields)
        return template

    return _make


@pytest.fixture
def instance_on(db):
    """Look up a template's instance by ISO date."""

    def _get(template, iso_date):
        for i in availability_service.list_instances(db, on_date=iso_date):
            if i.template_id == template.id:
                return i
        raise AssertionError(f"no instance of template {template.id} on {iso_date}")

    return _get


def bearer(user_id="user-1", role="user", park_id=None):
    claims = {"sub": user_id, "role": role}
    if park_id is not None:
        claims["parkId"] = park_id
    return {"Authorization": f"Bearer {jwt.encode(claims, TEST_SECRET, algorithm='HS256')}"}


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient

    from parkbook.db.session import get_db
    from parkbook.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
