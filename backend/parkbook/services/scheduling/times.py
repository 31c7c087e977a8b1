"""HH:MM parsing and minute arithmetic for time windows."""
from parkbook.core.constants import END_OF_DAY_MINUTE, END_OF_DAY_TIME, TIME_PATTERN
from parkbook.core.errors import ValidationError


def check_time(value: str, field: str = "time") -> str:
    """Return value if it is a 24h HH:MM string, else raise ValidationError."""
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValidationError(f"Invalid time format: {value!r} (expected HH:MM)", field=field, value=value)
    return value


def time_to_minutes(value: str, *, end: bool = False) -> int:
    """
    Minutes since midnight. With end=True, "00:00" is the end of the day (1439), so a
    window like 09:00-00:00 runs until midnight instead of collapsing to zero length.
    """
    check_time(value)
    if end and value == END_OF_DAY_TIME:
        return END_OF_DAY_MINUTE
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    if minutes >= END_OF_DAY_MINUTE:
        return END_OF_DAY_TIME
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def window_minutes(start_time: str, end_time: str) -> tuple[int, int]:
    """(start, end) in minutes; raises ValidationError unless start < end."""
    start = time_to_minutes(check_time(start_time, "startTime"))
    end = time_to_minutes(check_time(end_time, "endTime"), end=True)
    if start >= end:
        raise ValidationError(
            f"startTime {start_time} must be before endTime {end_time}",
            startTime=start_time,
            endTime=end_time,
        )
    return start, end


def windows_intersect(a: tuple[int, int], b: tuple[int, int]) -> bool:
    """Half-open interval intersection; containment is a special case of this."""
    return a[0] < b[1] and b[0] < a[1]
