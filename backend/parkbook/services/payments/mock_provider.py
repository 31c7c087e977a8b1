"""In-process gateway for local development: settles every checkout with a fixed outcome."""
import logging
import uuid
from decimal import Decimal

from parkbook.config import settings
from parkbook.core.constants import PAYMENT_FAILED
from parkbook.services.payments.events import parse_checkout_event
from parkbook.services.payments.types import PaymentEvent, PaymentSession, signature_matches

logger = logging.getLogger(__name__)

# payment_id -> last known status; shared across instances, lost on restart
_sessions: dict[str, str] = {}


class MockGateway:
    provider_id = "mock"

    def __init__(self, outcome: str | None = None, *, webhook_secret: str | None = None) -> None:
        self._outcome = outcome or settings.mock_payment_outcome
        self._secret = webhook_secret if webhook_secret is not None else settings.secret_key

    def create_checkout(self, *, cart_id: int, amount: Decimal, currency: str, payment_method: str) -> PaymentSession:
        payment_id = f"mock_{uuid.uuid4().hex}"
        _sessions[payment_id] = self._outcome
        logger.info("Mock checkout %s for cart %s: %s %s -> %s", payment_id, cart_id, amount, currency, self._outcome)
        return PaymentSession(payment_id=payment_id, status=self._outcome)

    def fetch_status(self, payment_id: str) -> str:
        return _sessions.get(payment_id, PAYMENT_FAILED)

    def verify_signature(self, raw_body: bytes, signature: str | None) -> bool:
        return signature_matches(self._secret, raw_body, signature)

    def parse_event(self, raw_body: bytes) -> PaymentEvent:
        return parse_checkout_event(raw_body)
