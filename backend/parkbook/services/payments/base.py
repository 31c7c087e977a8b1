"""Protocol for payment gateways. All return the same normalized sessions and events."""
from decimal import Decimal
from typing import Protocol

from parkbook.services.payments.types import PaymentEvent, PaymentSession


class PaymentGateway(Protocol):
    """Mock, Chargily, etc. Same contract; only the transport differs."""

    @property
    def provider_id(self) -> str:
        """Unique id stored on the cart (e.g. 'mock', 'chargily')."""
        ...

    def create_checkout(
        self,
        *,
        cart_id: int,
        amount: Decimal,
        currency: str,
        payment_method: str,
    ) -> PaymentSession:
        """Open a payment session for the cart total. Raises PaymentGatewayError."""
        ...

    def fetch_status(self, payment_id: str) -> str:
        """Current status of a session: paid, failed or pending. Raises PaymentGatewayError."""
        ...

    def verify_signature(self, raw_body: bytes, signature: str | None) -> bool:
        ...

    def parse_event(self, raw_body: bytes) -> PaymentEvent:
        """Parse a verified webhook body. Raises ValidationError when malformed."""
        ...
