"""
Payment gateways: a synchronous mock for development and Chargily's hosted checkout.
Each opens sessions its own way but returns the same PaymentSession / PaymentEvent shapes
so checkout and reconciliation stay gateway-agnostic.
"""
from parkbook.services.payments.base import PaymentGateway
from parkbook.services.payments.registry import get_gateway, list_gateways
from parkbook.services.payments.types import (
    PaymentEvent,
    PaymentGatewayError,
    PaymentSession,
    sign_payload,
)

__all__ = [
    "PaymentEvent",
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentSession",
    "get_gateway",
    "list_gateways",
    "sign_payload",
]
