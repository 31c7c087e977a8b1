"""
Working-hours validation for a proposed template window.

For each selected weekday we ask the provider for the park's hours on a concrete date with
that weekday (the first one on/after the template's validity start). The window must fit
inside those hours on every day, and every day must share the same hours.
"""
import logging
from datetime import date
from typing import Iterable

from parkbook.core.errors import InconsistentHours, OutsideWorkingHours, ParkClosed, ValidationError
from parkbook.services.scheduling.recurrence import coerce_days, first_date_on_weekday, weekday_name
from parkbook.services.scheduling.times import time_to_minutes, window_minutes
from parkbook.services.working_hours.base import WorkingHoursProvider
from parkbook.services.working_hours.types import WorkingHours

logger = logging.getLogger(__name__)


def validate_working_hours(
    provider: WorkingHoursProvider,
    park_id: int,
    start_time: str,
    end_time: str,
    days_of_week: Iterable[int],
    *,
    anchor: date,
) -> WorkingHours:
    """
    Return the common working hours for the selected days.

    Raises:
        ValidationError: malformed times or days.
        ParkClosed: the park is closed (or hours unknown) on a selected day.
        OutsideWorkingHours: the window is not contained in that day's hours.
        InconsistentHours: the selected days do not share identical hours.
    """
    slot_start, slot_end = window_minutes(start_time, end_time)
    common: WorkingHours | None = None
    for day in coerce_days(days_of_week):
        reference = first_date_on_weekday(day, anchor)
        hours = provider.get_working_hours(park_id, reference)
        if hours is None or hours.closed:
            raise ParkClosed(
                f"Park is closed on {weekday_name(day)}",
                parkId=park_id,
                dayOfWeek=day,
                day=weekday_name(day),
                date=reference.isoformat(),
            )
        work_start = time_to_minutes(hours.open_from)
        work_end = time_to_minutes(hours.open_to, end=True)
        if slot_start < work_start or slot_end > work_end:
            raise OutsideWorkingHours(
                f"Time slot ({start_time}-{end_time}) falls outside working hours "
                f"({hours.open_from}-{hours.open_to}) on {weekday_name(day)}",
                dayOfWeek=day,
                day=weekday_name(day),
                slot=f"{start_time}-{end_time}",
                workingHours=hours.to_dict(),
            )
        if common is None:
            common = hours
        elif not hours.same_hours(common):
            raise InconsistentHours(
                "Selected days have different working hours",
                dayOfWeek=day,
                day=weekday_name(day),
                expected=common.to_dict(),
                found=hours.to_dict(),
            )
    if common is None:
        raise ValidationError("daysOfWeek must not be empty", daysOfWeek=[])
    logger.debug("Park %s hours %s-%s valid for days %s", park_id, common.open_from, common.open_to, days_of_week)
    return common
