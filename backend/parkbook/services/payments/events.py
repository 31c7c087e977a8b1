"""Webhook body parsing shared by gateways that speak the checkout.* event format."""
import json
from typing import Any

from parkbook.core.constants import PAYMENT_FAILED, PAYMENT_PAID
from parkbook.core.errors import ValidationError
from parkbook.services.payments.types import PaymentEvent

EVENT_OUTCOMES = {
    "checkout.paid": PAYMENT_PAID,
    "checkout.failed": PAYMENT_FAILED,
    "checkout.canceled": PAYMENT_FAILED,
    "checkout.expired": PAYMENT_FAILED,
}


def _cart_id(metadata: Any) -> int | None:
    if isinstance(metadata, list):
        metadata = next((m for m in metadata if isinstance(m, dict)), None)
    if not isinstance(metadata, dict):
        return None
    try:
        return int(metadata.get("cartId"))
    except (TypeError, ValueError):
        return None


def parse_checkout_event(raw_body: bytes) -> PaymentEvent:
    """{"type": "checkout.paid", "data": {"id", "metadata": {"cartId"}, "payment_method", "currency"}}"""
    try:
        event = json.loads(raw_body or b"{}")
    except ValueError:
        raise ValidationError("Webhook body is not valid JSON")
    data = event.get("data") if isinstance(event, dict) else None
    payment_id = data.get("id") if isinstance(data, dict) else None
    if not payment_id:
        raise ValidationError("Invalid event data", type=event.get("type") if isinstance(event, dict) else None)
    event_type = str(event.get("type") or "")
    return PaymentEvent(
        event_type=event_type,
        payment_id=str(payment_id),
        outcome=EVENT_OUTCOMES.get(event_type),
        cart_id=_cart_id(data.get("metadata")),
        payment_method=data.get("payment_method"),
        currency=data.get("currency"),
    )
