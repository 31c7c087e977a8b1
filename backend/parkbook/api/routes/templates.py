"""
Availability templates API: create (with instance generation), list, patch, delete and
the advisory overlap check. Mutations require an admin for the template's park.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from parkbook.api.deps import Principal, ensure_can_manage_park, get_current_principal
from parkbook.db.session import get_db
from parkbook.services import availability_service
from parkbook.services.scheduling.overlap import find_overlaps

router = APIRouter()
logger = logging.getLogger(__name__)


class TemplateCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(..., alias="startTime", description="HH:MM")
    end_time: str = Field(..., alias="endTime", description="HH:MM; 00:00 = end of day")
    days_of_week: list[int] = Field(..., alias="daysOfWeek", description="0=Sunday .. 6=Saturday")
    valid_from: str = Field(..., alias="validFrom")
    valid_until: str | None = Field(None, alias="validUntil")
    ticket_limit: int = Field(..., alias="ticketLimit")
    pricing_ids: list[int] = Field(..., alias="pricingIds")
    price_adjustment: float = Field(0, alias="priceAdjustment")


class TemplatePatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: str | None = Field(None, alias="startTime")
    end_time: str | None = Field(None, alias="endTime")
    days_of_week: list[int] | None = Field(None, alias="daysOfWeek")
    valid_from: str | None = Field(None, alias="validFrom")
    valid_until: str | None = Field(None, alias="validUntil")
    ticket_limit: int | None = Field(None, alias="ticketLimit")
    pricing_ids: list[int] | None = Field(None, alias="pricingIds")
    price_adjustment: float | None = Field(None, alias="priceAdjustment")


class OverlapCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    park_id: int = Field(..., alias="parkId")
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    days_of_week: list[int] = Field(..., alias="daysOfWeek")
    valid_from: str = Field(..., alias="validFrom")
    valid_until: str | None = Field(None, alias="validUntil")
    pricing_ids: list[int] = Field(..., alias="pricingIds")
    exclude_template_id: int | None = Field(None, alias="excludeTemplateId")


@router.post("/parks/{park_id}/templates", status_code=201)
def create_template(
    park_id: int,
    body: TemplateCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    ensure_can_manage_park(principal, park_id)
    template, summary = availability_service.create_template(db, park_id, **body.model_dump())
    return {"template": availability_service.serialize_template(template), "instances": summary}


@router.get("/parks/{park_id}/templates")
def list_templates(
    park_id: int,
    db: Session = Depends(get_db),
    date: str | None = Query(None, description="Only templates valid on this date"),
    pricing_id: int | None = Query(None, alias="pricingId"),
    day_of_week: int | None = Query(None, alias="dayOfWeek", ge=0, le=6),
) -> dict[str, Any]:
    rows = availability_service.list_templates(
        db, park_id, on_date=date, pricing_id=pricing_id, day_of_week=day_of_week
    )
    return {"templates": [availability_service.serialize_template(t) for t in rows]}


@router.put("/templates/{template_id}")
def update_template(
    template_id: int,
    body: TemplatePatch,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    existing = availability_service.get_template(db, template_id)
    ensure_can_manage_park(principal, existing.park_id)
    # validUntil: null is meaningful (make open-ended); other unset fields are left alone
    patch = body.model_dump(exclude_unset=True)
    template = availability_service.update_template(db, template_id, patch)
    return availability_service.serialize_template(template)


@router.delete("/templates/{template_id}", status_code=204)
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Response:
    existing = availability_service.get_template(db, template_id)
    ensure_can_manage_park(principal, existing.park_id)
    availability_service.delete_template(db, template_id)
    return Response(status_code=204)


@router.post("/templates/check-overlap")
def check_overlap(
    body: OverlapCheck,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    ensure_can_manage_park(principal, body.park_id)
    conflicts = find_overlaps(
        db,
        body.park_id,
        body.start_time,
        body.end_time,
        body.days_of_week,
        body.valid_from,
        body.valid_until,
        body.pricing_ids,
        exclude_template_id=body.exclude_template_id,
    )
    return {"hasOverlap": bool(conflicts), "conflicts": conflicts}
