"""
Overlap detection between a proposed template and what a park already has.

Two kinds of conflict:
- template: an existing template of the same park sharing a weekday and a pricing entry,
  with intersecting validity and intersecting time windows.
- instance: an already-materialized instance of the park, dated inside the candidate's
  validity on one of its weekdays, whose template shares a pricing entry and whose time
  window intersects.

Conflicts are advisory: callers warn/confirm, creation does not block on them.
"""
import logging
from datetime import date
from typing import Any, Iterable

from sqlalchemy.orm import Session

from parkbook.core.constants import FAR_FUTURE_DATE
from parkbook.models.availability_instance import AvailabilityInstance
from parkbook.models.availability_template import AvailabilityTemplate
from parkbook.services.scheduling.recurrence import coerce_days, sunday_weekday, to_utc_date
from parkbook.services.scheduling.times import window_minutes, windows_intersect

logger = logging.getLogger(__name__)


def validity_intersects(
    a_from: date, a_until: date | None, b_from: date, b_until: date | None
) -> bool:
    """Closed date ranges; None until = open-ended."""
    a_end = a_until or FAR_FUTURE_DATE
    b_end = b_until or FAR_FUTURE_DATE
    return a_from <= b_end and b_from <= a_end


def template_conflicts_with(
    existing: AvailabilityTemplate,
    window: tuple[int, int],
    days: set[int],
    valid_from: date,
    valid_until: date | None,
    pricing_ids: set[int],
) -> bool:
    if not days.intersection(coerce_days(existing.days_of_week)):
        return False
    if not pricing_ids.intersection(existing.pricing_ids):
        return False
    if not validity_intersects(existing.valid_from, existing.valid_until, valid_from, valid_until):
        return False
    return windows_intersect(window_minutes(existing.start_time, existing.end_time), window)


def find_overlaps(
    db: Session,
    park_id: int,
    start_time: str,
    end_time: str,
    days_of_week: Iterable[Any],
    valid_from: Any,
    valid_until: Any,
    pricing_ids: Iterable[int],
    *,
    exclude_template_id: int | None = None,
) -> list[dict[str, Any]]:
    """Typed conflict records; empty list = no overlap."""
    window = window_minutes(start_time, end_time)
    days = set(coerce_days(days_of_week))
    start = to_utc_date(valid_from)
    until = to_utc_date(valid_until) if valid_until else None
    pricing = {int(p) for p in pricing_ids}

    q = db.query(AvailabilityTemplate).filter(AvailabilityTemplate.park_id == park_id)
    if exclude_template_id is not None:
        q = q.filter(AvailabilityTemplate.id != exclude_template_id)
    conflicts: list[dict[str, Any]] = []
    for t in q.order_by(AvailabilityTemplate.id).all():
        if template_conflicts_with(t, window, days, start, until, pricing):
            conflicts.append(
                {
                    "type": "template",
                    "id": t.id,
                    "daysOfWeek": coerce_days(t.days_of_week),
                    "time": f"{t.start_time}-{t.end_time}",
                    "validFrom": t.valid_from.isoformat(),
                    "validUntil": t.valid_until.isoformat() if t.valid_until else None,
                    "pricingIds": t.pricing_ids,
                }
            )

    iq = (
        db.query(AvailabilityInstance)
        .join(AvailabilityTemplate, AvailabilityInstance.template_id == AvailabilityTemplate.id)
        .filter(
            AvailabilityTemplate.park_id == park_id,
            AvailabilityInstance.date >= start,
            AvailabilityInstance.date <= (until or FAR_FUTURE_DATE),
        )
    )
    if exclude_template_id is not None:
        iq = iq.filter(AvailabilityTemplate.id != exclude_template_id)
    for inst in iq.order_by(AvailabilityInstance.date, AvailabilityInstance.id).all():
        t = inst.template
        if sunday_weekday(inst.date) not in days:
            continue
        if not pricing.intersection(t.pricing_ids):
            continue
        if not windows_intersect(window_minutes(t.start_time, t.end_time), window):
            continue
        conflicts.append(
            {
                "type": "instance",
                "id": inst.id,
                "date": inst.date.isoformat(),
                "time": f"{t.start_time}-{t.end_time}",
                "templateId": t.id,
                "pricingIds": t.pricing_ids,
                "priceAdjustment": float(t.price_adjustment or 0),
            }
        )
    logger.debug("Overlap check park=%s %s-%s days=%s: %s conflicts", park_id, start_time, end_time, sorted(days), len(conflicts))
    return conflicts
