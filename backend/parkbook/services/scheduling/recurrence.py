"""
Recurrence expansion: (start, end, days_of_week) -> concrete calendar dates.

Weekdays are Sunday-first (0=Sunday .. 6=Saturday). All dates are UTC calendar dates so a
client in another timezone cannot shift a boundary day in or out of the window.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from parkbook.core.constants import WEEKDAY_NAMES
from parkbook.core.errors import ValidationError


def to_utc_date(value: Any) -> date:
    """Normalize a date, datetime or ISO string to its UTC calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            if len(raw) == 10:
                return date.fromisoformat(raw)
            return to_utc_date(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise ValidationError(f"Invalid date: {value!r}", value=str(value))


def sunday_weekday(d: date) -> int:
    """0=Sunday .. 6=Saturday (date.weekday() is Monday-first)."""
    return (d.weekday() + 1) % 7


def weekday_name(weekday: int) -> str:
    return WEEKDAY_NAMES[weekday]


def coerce_days(days_of_week: Iterable[Any]) -> list[int]:
    """Numbers or numeric strings -> sorted unique ints in 0..6."""
    out: set[int] = set()
    for raw in days_of_week or ():
        try:
            day = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid day of week: {raw!r}", daysOfWeek=list(days_of_week))
        if day < 0 or day > 6:
            raise ValidationError(f"Day of week out of range 0-6: {day}", daysOfWeek=list(days_of_week))
        out.add(day)
    return sorted(out)


def expand(start: Any, end: Any, days_of_week: Iterable[Any]) -> list[date]:
    """
    Every date from start to end inclusive whose weekday is in days_of_week, ascending.
    Empty when end precedes start or no weekday matches.
    """
    current = to_utc_date(start)
    last = to_utc_date(end)
    wanted = set(coerce_days(days_of_week))
    dates: list[date] = []
    if not wanted:
        return dates
    while current <= last:
        if sunday_weekday(current) in wanted:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def first_date_on_weekday(weekday: int, on_or_after: date) -> date:
    """The first date >= on_or_after falling on weekday (Sunday-first)."""
    offset = (weekday - sunday_weekday(on_or_after)) % 7
    return on_or_after + timedelta(days=offset)
