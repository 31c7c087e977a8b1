"""Normalized working-hours shape returned by every provider."""
from typing import Any


class WorkingHours:
    """Open/close times for one park on one date. `closed` wins over the times."""

    __slots__ = ("closed", "open_from", "open_to")

    def __init__(self, *, closed: bool, open_from: str | None = None, open_to: str | None = None):
        self.closed = closed
        self.open_from = open_from
        self.open_to = open_to

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "WorkingHours | None":
        """Parse {"from", "to", "closed"}; None for a missing or malformed payload."""
        if not isinstance(payload, dict):
            return None
        if payload.get("closed"):
            return cls(closed=True)
        open_from, open_to = payload.get("from"), payload.get("to")
        if not open_from or not open_to:
            return None
        return cls(closed=False, open_from=open_from, open_to=open_to)

    def same_hours(self, other: "WorkingHours") -> bool:
        return self.open_from == other.open_from and self.open_to == other.open_to

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.open_from, "to": self.open_to, "closed": self.closed}
