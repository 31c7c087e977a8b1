"""Registry of working-hours providers. Add new sources here."""
import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from parkbook.config import settings
from parkbook.services.working_hours.base import WorkingHoursProvider

logger = logging.getLogger(__name__)

# name -> factory(db) returning a provider bound to that session
_providers: dict[str, Callable[[Session], Any]] = {}


def register(name: str, factory: Callable[[Session], Any]) -> None:
    """Register a provider factory (e.g. 'park_table', 'http')."""
    _providers[name] = factory
    logger.info("Registered working-hours provider: %s", name)


def get_provider(db: Session, name: str | None = None) -> WorkingHoursProvider:
    """Provider by name (default: WORKING_HOURS_PROVIDER). Raises KeyError if unknown."""
    name = name or settings.working_hours_provider
    if name not in _providers:
        raise KeyError(f"Unknown working-hours provider: {name}. Available: {list(_providers.keys())}")
    return _providers[name](db)


def list_providers() -> list[str]:
    return list(_providers.keys())


def _init_registry() -> None:
    from parkbook.services.working_hours.http_provider import HttpWorkingHoursProvider
    from parkbook.services.working_hours.park_table_provider import ParkTableWorkingHoursProvider

    register("park_table", ParkTableWorkingHoursProvider)
    register("http", HttpWorkingHoursProvider)


# Register built-in providers on first import
_init_registry()
