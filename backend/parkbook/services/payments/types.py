"""Normalized payment shapes shared by every gateway."""
import hashlib
import hmac
from typing import Any

from parkbook.core.constants import PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING

# Gateway statuses that end a payment session
TERMINAL_OUTCOMES = (PAYMENT_PAID, PAYMENT_FAILED)


class PaymentGatewayError(Exception):
    """Gateway unreachable, rejected the request, or answered without a session id."""


def sign_payload(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def signature_matches(secret: str, raw_body: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_payload(secret, raw_body), signature.strip())


class PaymentSession:
    """
    What a gateway returns when checkout is opened. `status` is paid/failed for gateways
    that settle synchronously, pending when the outcome arrives later by webhook.
    """

    __slots__ = ("payment_id", "status", "checkout_url", "raw")

    def __init__(
        self,
        *,
        payment_id: str,
        status: str = PAYMENT_PENDING,
        checkout_url: str | None = None,
        raw: dict[str, Any] | None = None,
    ):
        self.payment_id = payment_id
        self.status = status
        self.checkout_url = checkout_url
        self.raw = raw or {}

    @property
    def settled(self) -> bool:
        return self.status in TERMINAL_OUTCOMES


class PaymentEvent:
    """One parsed webhook event. `outcome` is None for event types we do not act on."""

    __slots__ = ("event_type", "payment_id", "outcome", "cart_id", "payment_method", "currency")

    def __init__(
        self,
        *,
        event_type: str,
        payment_id: str,
        outcome: str | None,
        cart_id: int | None = None,
        payment_method: str | None = None,
        currency: str | None = None,
    ):
        self.event_type = event_type
        self.payment_id = payment_id
        self.outcome = outcome
        self.cart_id = cart_id
        self.payment_method = payment_method
        self.currency = currency
