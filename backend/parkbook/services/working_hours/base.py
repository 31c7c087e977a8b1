"""Protocol for working-hours providers. All return the same normalized WorkingHours."""
from datetime import date
from typing import Protocol

from parkbook.services.working_hours.types import WorkingHours


class WorkingHoursProvider(Protocol):
    """Park table, remote park service, etc. Same contract; only the lookup differs."""

    def get_working_hours(self, park_id: int, on_date: date) -> WorkingHours | None:
        """
        Hours for park_id on on_date. None means unknown/closed; callers treat it as closed.
        """
        ...
