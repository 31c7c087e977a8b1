"""
Working-hours providers: the park's own table, or a remote park service.
Each looks hours up its own way but returns the same WorkingHours shape so template
validation stays source-agnostic.
"""
from parkbook.services.working_hours.base import WorkingHoursProvider
from parkbook.services.working_hours.registry import get_provider, list_providers
from parkbook.services.working_hours.types import WorkingHours

__all__ = [
    "WorkingHours",
    "WorkingHoursProvider",
    "get_provider",
    "list_providers",
]
