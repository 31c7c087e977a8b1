"""Working hours read from parks.working_hours (weekday name -> {from, to, closed})."""
from datetime import date

from sqlalchemy.orm import Session

from parkbook.models.park import Park
from parkbook.services.scheduling.recurrence import sunday_weekday, weekday_name
from parkbook.services.working_hours.types import WorkingHours


class ParkTableWorkingHoursProvider:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_working_hours(self, park_id: int, on_date: date) -> WorkingHours | None:
        park = self._db.get(Park, park_id)
        if park is None:
            return None
        day = weekday_name(sunday_weekday(on_date))
        return WorkingHours.from_payload((park.working_hours or {}).get(day))
