"""Registry of payment gateways. Add new gateways here."""
import logging
from typing import Any, Callable

from parkbook.config import settings
from parkbook.services.payments.base import PaymentGateway

logger = logging.getLogger(__name__)

_gateways: dict[str, Callable[[], Any]] = {}


def register(name: str, factory: Callable[[], Any]) -> None:
    """Register a gateway factory (e.g. 'mock', 'chargily')."""
    _gateways[name] = factory
    logger.info("Registered payment gateway: %s", name)


def get_gateway(name: str | None = None) -> PaymentGateway:
    """Gateway by name (default: PAYMENT_PROVIDER). Raises KeyError if unknown."""
    name = name or settings.payment_provider
    if name not in _gateways:
        raise KeyError(f"Unknown payment gateway: {name}. Available: {list(_gateways.keys())}")
    return _gateways[name]()


def list_gateways() -> list[str]:
    return list(_gateways.keys())


def _init_registry() -> None:
    from parkbook.services.payments.chargily_provider import ChargilyGateway
    from parkbook.services.payments.mock_provider import MockGateway

    register("mock", MockGateway)
    register("chargily", ChargilyGateway)


# Register built-in gateways on first import
_init_registry()
