"""
Availability templates and their dated instances.

A template is a recurring weekly slot; creating it validates the park's working hours and
materializes one instance per matching date in the same transaction. Open-ended templates
are materialized up to a rolling horizon that the scheduler extends daily.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy.orm import Session

from parkbook.config import settings
from parkbook.core.constants import FAR_FUTURE_DATE
from parkbook.core.errors import NotFound, ValidationError
from parkbook.db.session import transaction
from parkbook.models.availability_instance import AvailabilityInstance
from parkbook.models.availability_template import AvailabilityTemplate
from parkbook.models.booking import Booking
from parkbook.models.cart import CartItem
from parkbook.models.park import Park
from parkbook.models.pricing import Pricing
from parkbook.services.scheduling.hours_validator import validate_working_hours
from parkbook.services.scheduling.recurrence import coerce_days, expand, sunday_weekday, to_utc_date
from parkbook.services.scheduling.times import window_minutes
from parkbook.services.working_hours import WorkingHoursProvider, get_provider

logger = logging.getLogger(__name__)

# Fields an update may patch
TEMPLATE_FIELDS = (
    "start_time",
    "end_time",
    "days_of_week",
    "valid_from",
    "valid_until",
    "ticket_limit",
    "pricing_ids",
    "price_adjustment",
)
# Changing any of these rebuilds the instance set
REGENERATE_FIELDS = ("days_of_week", "valid_from", "valid_until")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Input checks
# ---------------------------------------------------------------------------


def _ticket_limit(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("ticketLimit must be a positive integer", ticketLimit=value)
    return value


def _money(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", **{field: value})


def _days(value: Iterable[Any]) -> list[int]:
    days = coerce_days(value)
    if not days:
        raise ValidationError("daysOfWeek must not be empty", daysOfWeek=list(value or []))
    return days


def _validity(valid_from: Any, valid_until: Any) -> tuple[date, date | None]:
    start = to_utc_date(valid_from)
    until = to_utc_date(valid_until) if valid_until else None
    if until is not None and until < start:
        raise ValidationError(
            "validFrom must be on or before validUntil",
            validFrom=start.isoformat(),
            validUntil=until.isoformat(),
        )
    return start, until


def _load_pricing(db: Session, park_id: int, pricing_ids: Iterable[Any]) -> list[Pricing]:
    ids = sorted({int(p) for p in (pricing_ids or [])})
    if not ids:
        raise ValidationError("pricingIds must not be empty", pricingIds=[])
    rows = db.query(Pricing).filter(Pricing.id.in_(ids)).all()
    found = {p.id for p in rows}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFound("Pricing", missing)
    foreign = [p.id for p in rows if p.park_id != park_id]
    if foreign:
        raise ValidationError("Pricing entries belong to another park", pricingIds=foreign, parkId=park_id)
    return sorted(rows, key=lambda p: p.id)


def _get_park(db: Session, park_id: int) -> Park:
    park = db.get(Park, park_id)
    if park is None:
        raise NotFound("Park", park_id)
    return park


def get_template(db: Session, template_id: int) -> AvailabilityTemplate:
    template = db.get(AvailabilityTemplate, template_id)
    if template is None:
        raise NotFound("Template", template_id)
    return template


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


def materialization_end(template: AvailabilityTemplate, today: date) -> date:
    """Last date to materialize: valid_until, or the rolling horizon for open-ended templates."""
    if template.valid_until is not None:
        return template.valid_until
    horizon = max(template.valid_from, today) + timedelta(days=settings.open_ended_horizon_days)
    return min(horizon, FAR_FUTURE_DATE)


def _materialize(
    db: Session,
    template: AvailabilityTemplate,
    today: date,
    consumed: dict[date, int] | None = None,
) -> list[AvailabilityInstance]:
    """
    Insert instances for every expanded date that has none yet. `consumed` carries tickets
    already sold/held per date over from a previous instance set.
    """
    end = materialization_end(template, today)
    existing = {
        d for (d,) in db.query(AvailabilityInstance.date).filter(AvailabilityInstance.template_id == template.id)
    }
    consumed = consumed or {}
    created = []
    for d in expand(template.valid_from, end, template.days_of_week):
        if d in existing:
            continue
        available = max(0, template.ticket_limit - consumed.get(d, 0))
        created.append(
            AvailabilityInstance(
                template_id=template.id,
                date=d,
                ticket_limit=template.ticket_limit,
                available_tickets=available,
            )
        )
    db.add_all(created)
    template.materialized_until = end
    db.flush()
    return created


def _detach_references(db: Session, instance_ids: list[int]) -> tuple[list[int], list[int]]:
    """Null cart-item/booking references to instances about to be deleted; return their ids."""
    if not instance_ids:
        return [], []
    item_ids = [i for (i,) in db.query(CartItem.id).filter(CartItem.instance_id.in_(instance_ids))]
    booking_ids = [b for (b,) in db.query(Booking.id).filter(Booking.instance_id.in_(instance_ids))]
    if item_ids:
        db.query(CartItem).filter(CartItem.id.in_(item_ids)).update(
            {CartItem.instance_id: None}, synchronize_session=False
        )
    if booking_ids:
        db.query(Booking).filter(Booking.id.in_(booking_ids)).update(
            {Booking.instance_id: None}, synchronize_session=False
        )
    return item_ids, booking_ids


def _regenerate(db: Session, template: AvailabilityTemplate, today: date) -> tuple[int, int]:
    """
    Replace every instance of the template with a fresh expansion. Cart lines and bookings
    whose date survives are re-pointed at the new instance for that date, and tickets
    already consumed on a date stay consumed. Returns (deleted, created).
    """
    old = db.query(AvailabilityInstance).filter(AvailabilityInstance.template_id == template.id).all()
    consumed = {i.date: i.ticket_limit - i.available_tickets for i in old}
    item_ids, booking_ids = _detach_references(db, [i.id for i in old])
    for instance in old:
        db.delete(instance)
    db.flush()
    db.expire_all()
    deleted = len(old)
    created = _materialize(db, template, today, consumed)
    by_date = {i.date: i.id for i in created}
    if item_ids:
        for item in db.query(CartItem).filter(CartItem.id.in_(item_ids)):
            item.instance_id = by_date.get(item.date)
    if booking_ids:
        for booking in db.query(Booking).filter(Booking.id.in_(booking_ids)):
            booking.instance_id = by_date.get(booking.date)
    db.flush()
    return deleted, len(created)


# ---------------------------------------------------------------------------
# Template operations
# ---------------------------------------------------------------------------


def create_template(
    db: Session,
    park_id: int,
    *,
    start_time: str,
    end_time: str,
    days_of_week: Iterable[Any],
    valid_from: Any,
    valid_until: Any = None,
    ticket_limit: int,
    pricing_ids: Iterable[Any],
    price_adjustment: Any = 0,
    provider: WorkingHoursProvider | None = None,
    today: date | None = None,
) -> tuple[AvailabilityTemplate, dict[str, Any]]:
    """
    Validate, persist the template and materialize its instances atomically.
    Returns (template, summary) where summary describes the generated instances and the
    park's common working hours.
    """
    today = today or utc_today()
    window_minutes(start_time, end_time)
    days = _days(days_of_week)
    start, until = _validity(valid_from, valid_until)
    limit = _ticket_limit(ticket_limit)
    adjustment = _money(price_adjustment, "priceAdjustment")

    with transaction(db):
        _get_park(db, park_id)
        pricing = _load_pricing(db, park_id, pricing_ids)
        provider = provider or get_provider(db)
        hours = validate_working_hours(provider, park_id, start_time, end_time, days, anchor=start)

        template = AvailabilityTemplate(
            park_id=park_id,
            start_time=start_time,
            end_time=end_time,
            days_of_week=days,
            valid_from=start,
            valid_until=until,
            ticket_limit=limit,
            price_adjustment=adjustment,
        )
        template.pricing = pricing
        db.add(template)
        db.flush()
        instances = _materialize(db, template, today)

    summary = {
        "instancesCreated": len(instances),
        "firstDate": instances[0].date.isoformat() if instances else None,
        "lastDate": instances[-1].date.isoformat() if instances else None,
        "materializedUntil": template.materialized_until.isoformat() if template.materialized_until else None,
        "workingHours": hours.to_dict(),
    }
    logger.info(
        "Template %s created for park %s %s-%s days=%s: %s instances",
        template.id, park_id, start_time, end_time, days, len(instances),
    )
    return template, summary


def update_template(
    db: Session,
    template_id: int,
    patch: dict[str, Any],
    *,
    provider: WorkingHoursProvider | None = None,
    today: date | None = None,
) -> AvailabilityTemplate:
    """
    Apply a partial patch. A changed weekday set or validity window deletes and regenerates
    all instances in the same transaction. Window/day/validity changes re-run the
    working-hours check.
    """
    unknown = [k for k in patch if k not in TEMPLATE_FIELDS]
    if unknown:
        raise ValidationError(f"Unknown template fields: {', '.join(unknown)}", fields=unknown)
    today = today or utc_today()

    with transaction(db):
        template = (
            db.query(AvailabilityTemplate)
            .filter(AvailabilityTemplate.id == template_id)
            .with_for_update(of=AvailabilityTemplate)
            .first()
        )
        if template is None:
            raise NotFound("Template", template_id)

        start_time = patch.get("start_time", template.start_time)
        end_time = patch.get("end_time", template.end_time)
        window_minutes(start_time, end_time)
        days = _days(patch["days_of_week"]) if "days_of_week" in patch else coerce_days(template.days_of_week)
        start, until = _validity(
            patch.get("valid_from", template.valid_from),
            patch["valid_until"] if "valid_until" in patch else template.valid_until,
        )

        regenerate = (
            days != coerce_days(template.days_of_week)
            or start != template.valid_from
            or until != template.valid_until
        )
        if regenerate or start_time != template.start_time or end_time != template.end_time:
            provider = provider or get_provider(db)
            validate_working_hours(provider, template.park_id, start_time, end_time, days, anchor=start)

        template.start_time = start_time
        template.end_time = end_time
        template.days_of_week = days
        template.valid_from = start
        template.valid_until = until
        if "ticket_limit" in patch:
            template.ticket_limit = _ticket_limit(patch["ticket_limit"])
        if "price_adjustment" in patch:
            template.price_adjustment = _money(patch["price_adjustment"], "priceAdjustment")
        if "pricing_ids" in patch:
            template.pricing = _load_pricing(db, template.park_id, patch["pricing_ids"])
        db.flush()

        if regenerate:
            deleted, created = _regenerate(db, template, today)
            logger.info("Template %s regenerated: %s instances deleted, %s created", template.id, deleted, created)

    db.refresh(template)
    return template


def delete_template(db: Session, template_id: int) -> None:
    """Delete the template and all its instances; bookings keep their snapshot."""
    with transaction(db):
        template = db.get(AvailabilityTemplate, template_id)
        if template is None:
            raise NotFound("Template", template_id)
        instances = db.query(AvailabilityInstance).filter(AvailabilityInstance.template_id == template_id).all()
        _detach_references(db, [i.id for i in instances])
        for instance in instances:
            db.delete(instance)
        db.flush()
        db.delete(template)
        deleted = len(instances)
    logger.info("Template %s deleted with %s instances", template_id, deleted)


def list_templates(
    db: Session,
    park_id: int,
    *,
    on_date: Any = None,
    pricing_id: int | None = None,
    day_of_week: Any = None,
) -> list[AvailabilityTemplate]:
    q = db.query(AvailabilityTemplate).filter(AvailabilityTemplate.park_id == park_id)
    if on_date:
        d = to_utc_date(on_date)
        q = q.filter(AvailabilityTemplate.valid_from <= d).filter(
            (AvailabilityTemplate.valid_until.is_(None)) | (AvailabilityTemplate.valid_until >= d)
        )
    rows = q.order_by(AvailabilityTemplate.start_time, AvailabilityTemplate.id).all()
    if pricing_id is not None:
        rows = [t for t in rows if int(pricing_id) in t.pricing_ids]
    if day_of_week is not None and day_of_week != "":
        day = coerce_days([day_of_week])[0]
        rows = [t for t in rows if day in coerce_days(t.days_of_week)]
    return rows


def extend_open_ended_templates(db: Session, today: date | None = None) -> int:
    """Materialize open-ended templates up to today + horizon. Returns instances created."""
    today = today or utc_today()
    total = 0
    with transaction(db):
        templates = db.query(AvailabilityTemplate).filter(AvailabilityTemplate.valid_until.is_(None)).all()
        for template in templates:
            if template.materialized_until and template.materialized_until >= materialization_end(template, today):
                continue
            total += len(_materialize(db, template, today))
    if total:
        logger.info("Extended %s open-ended templates: %s instances created", len(templates), total)
    return total


# ---------------------------------------------------------------------------
# Instances
# ---------------------------------------------------------------------------


def get_instance(db: Session, instance_id: int) -> AvailabilityInstance:
    instance = db.get(AvailabilityInstance, instance_id)
    if instance is None:
        raise NotFound("Instance", instance_id)
    return instance


def list_instances(
    db: Session,
    *,
    park_id: int | None = None,
    on_date: Any = None,
    pricing_id: int | None = None,
) -> list[AvailabilityInstance]:
    q = db.query(AvailabilityInstance).join(
        AvailabilityTemplate, AvailabilityInstance.template_id == AvailabilityTemplate.id
    )
    if park_id is not None:
        q = q.filter(AvailabilityTemplate.park_id == park_id)
    if on_date:
        q = q.filter(AvailabilityInstance.date == to_utc_date(on_date))
    rows = q.order_by(AvailabilityInstance.date, AvailabilityTemplate.start_time, AvailabilityInstance.id).all()
    if pricing_id is not None:
        rows = [i for i in rows if int(pricing_id) in i.template.pricing_ids]
    return rows


def get_availability(db: Session, park_id: int, on_date: Any) -> list[dict[str, Any]]:
    """Read-only projection of a park's instances on one calendar day, joined to pricing."""
    return [
        {
            "id": i.id,
            "instanceId": i.id,
            "date": serialize_date(i.date),
            "startTime": i.template.start_time,
            "endTime": i.template.end_time,
            "availableTickets": i.available_tickets,
            "ticketLimit": i.ticket_limit,
            "pricing": [serialize_pricing(p) for p in i.template.pricing],
            "priceAdjustment": float(i.template.price_adjustment or 0),
        }
        for i in list_instances(db, park_id=park_id, on_date=on_date)
    ]


def update_instance_availability(db: Session, instance_id: int, available_tickets: Any) -> AvailabilityInstance:
    """Administrative override of the remaining-capacity counter."""
    if isinstance(available_tickets, bool) or not isinstance(available_tickets, int) or available_tickets < 0:
        raise ValidationError("availableTickets must be a non-negative integer", availableTickets=available_tickets)
    with transaction(db):
        instance = (
            db.query(AvailabilityInstance)
            .filter(AvailabilityInstance.id == instance_id)
            .with_for_update(of=AvailabilityInstance)
            .first()
        )
        if instance is None:
            raise NotFound("Instance", instance_id)
        if available_tickets > instance.ticket_limit:
            raise ValidationError(
                "availableTickets cannot exceed ticketLimit",
                availableTickets=available_tickets,
                ticketLimit=instance.ticket_limit,
            )
        previous = instance.available_tickets
        instance.available_tickets = available_tickets
    logger.info("Instance %s availability overridden %s -> %s", instance_id, previous, available_tickets)
    return instance


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def serialize_date(d: date | None) -> str | None:
    """UTC-midnight timestamp, the persisted shape clients expect for instance dates."""
    if d is None:
        return None
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def serialize_pricing(p: Pricing) -> dict[str, Any]:
    return {"id": p.id, "name": p.name, "price": float(p.price), "parkId": p.park_id}


def serialize_template(t: AvailabilityTemplate) -> dict[str, Any]:
    return {
        "id": t.id,
        "parkId": t.park_id,
        "startTime": t.start_time,
        "endTime": t.end_time,
        "daysOfWeek": coerce_days(t.days_of_week),
        "validFrom": t.valid_from.isoformat(),
        "validUntil": t.valid_until.isoformat() if t.valid_until else None,
        "ticketLimit": t.ticket_limit,
        "priceAdjustment": float(t.price_adjustment or 0),
        "pricingIds": t.pricing_ids,
        "pricing": [serialize_pricing(p) for p in t.pricing],
        "materializedUntil": t.materialized_until.isoformat() if t.materialized_until else None,
    }


def serialize_instance(i: AvailabilityInstance) -> dict[str, Any]:
    t = i.template
    return {
        "id": i.id,
        "templateId": i.template_id,
        "date": serialize_date(i.date),
        "dayOfWeek": sunday_weekday(i.date),
        "ticketLimit": i.ticket_limit,
        "availableTickets": i.available_tickets,
        "template": serialize_template(t) if t is not None else None,
    }
