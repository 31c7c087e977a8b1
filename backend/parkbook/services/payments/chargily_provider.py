"""
Chargily Pay v2 gateway: hosted checkout page, outcome delivered by webhook.

POST {base}/checkouts opens a session (amount in minor units); the customer pays on
checkout_url; Chargily then calls our webhook with a `signature` header, the hex
HMAC-SHA256 of the raw body keyed by the API key.
"""
import logging
from decimal import Decimal
from typing import Any

import httpx

from parkbook.config import settings
from parkbook.core.constants import PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING
from parkbook.services.payments.events import parse_checkout_event
from parkbook.services.payments.types import (
    PaymentEvent,
    PaymentGatewayError,
    PaymentSession,
    signature_matches,
)

logger = logging.getLogger(__name__)

# Methods Chargily can preselect on its hosted page
CHARGILY_METHODS = ("edahabia", "cib")

STATUS_MAP = {
    "paid": PAYMENT_PAID,
    "failed": PAYMENT_FAILED,
    "canceled": PAYMENT_FAILED,
    "expired": PAYMENT_FAILED,
}


def _minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


class ChargilyGateway:
    provider_id = "chargily"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.chargily_api_key
        self._base_url = (base_url or settings.chargily_base_url).rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self._api_key:
            raise PaymentGatewayError("CHARGILY_API_KEY is not set")
        url = f"{self._base_url}{path}"
        try:
            with httpx.Client(timeout=self._timeout) as c:
                r = c.request(method, url, headers=self._headers(), json=json)
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Chargily unreachable: {e}") from e
        if not r.is_success:
            raise PaymentGatewayError(f"Chargily HTTP {r.status_code}: {r.text[:200]}")
        try:
            body = r.json()
        except ValueError as e:
            raise PaymentGatewayError("Chargily returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise PaymentGatewayError("Chargily returned an unexpected body")
        return body

    def create_checkout(self, *, cart_id: int, amount: Decimal, currency: str, payment_method: str) -> PaymentSession:
        payload: dict[str, Any] = {
            "amount": _minor_units(amount),
            "currency": currency,
            "success_url": settings.checkout_success_url,
            "failure_url": settings.checkout_failure_url,
            "metadata": {"cartId": cart_id},
        }
        if payment_method in CHARGILY_METHODS:
            payload["payment_method"] = payment_method
        body = self._request("POST", "/checkouts", json=payload)
        payment_id = body.get("id")
        if not payment_id:
            raise PaymentGatewayError("Payment gateway error: no checkout id")
        logger.info("Chargily checkout %s opened for cart %s (%s %s)", payment_id, cart_id, amount, currency)
        return PaymentSession(
            payment_id=str(payment_id),
            status=PAYMENT_PENDING,
            checkout_url=body.get("checkout_url"),
            raw=body,
        )

    def fetch_status(self, payment_id: str) -> str:
        body = self._request("GET", f"/checkouts/{payment_id}")
        return STATUS_MAP.get(str(body.get("status") or "").lower(), PAYMENT_PENDING)

    def verify_signature(self, raw_body: bytes, signature: str | None) -> bool:
        return signature_matches(self._api_key, raw_body, signature)

    def parse_event(self, raw_body: bytes) -> PaymentEvent:
        return parse_checkout_event(raw_body)
