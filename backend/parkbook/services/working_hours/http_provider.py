"""Working hours from the park service over HTTP: GET {base}/parks/{id}/working-hours?date=YYYY-MM-DD."""
import logging
from datetime import date

import httpx
from sqlalchemy.orm import Session

from parkbook.config import settings
from parkbook.services.working_hours.types import WorkingHours

logger = logging.getLogger(__name__)


class HttpWorkingHoursProvider:
    def __init__(self, db: Session | None = None, *, base_url: str | None = None, timeout: float = 10.0) -> None:
        self._base_url = (base_url or settings.working_hours_api_url).rstrip("/")
        self._timeout = timeout

    def get_working_hours(self, park_id: int, on_date: date) -> WorkingHours | None:
        url = f"{self._base_url}/parks/{park_id}/working-hours"
        try:
            with httpx.Client(timeout=self._timeout) as c:
                r = c.get(url, params={"date": on_date.isoformat()})
        except httpx.HTTPError as e:
            logger.warning("Working hours for park %s on %s unavailable: %s", park_id, on_date, e)
            return None
        if not r.is_success:
            logger.warning(
                "Working hours for park %s on %s: HTTP %s %s", park_id, on_date, r.status_code, r.text[:200]
            )
            return None
        try:
            body = r.json()
        except ValueError:
            return None
        return WorkingHours.from_payload(body.get("workingHours") if isinstance(body, dict) else None)
