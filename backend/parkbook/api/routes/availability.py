"""
Availability API: per-day projection for shoppers, instance lookup, and the admin
override of an instance's remaining capacity.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from parkbook.api.deps import Principal, ensure_can_manage_park, get_current_principal
from parkbook.db.session import get_db
from parkbook.services import availability_service

router = APIRouter()
logger = logging.getLogger(__name__)


class InstanceAvailabilityUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available_tickets: int = Field(..., alias="availableTickets")


@router.get("/parks/{park_id}/availability")
def get_availability(
    park_id: int,
    date: str = Query(..., description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return availability_service.get_availability(db, park_id, date)


@router.get("/instances")
def list_instances(
    db: Session = Depends(get_db),
    park_id: int | None = Query(None, alias="parkId"),
    date: str | None = Query(None),
    pricing_id: int | None = Query(None, alias="pricingId"),
) -> dict[str, Any]:
    rows = availability_service.list_instances(db, park_id=park_id, on_date=date, pricing_id=pricing_id)
    return {"instances": [availability_service.serialize_instance(i) for i in rows]}


@router.get("/instances/{instance_id}")
def get_instance(instance_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return availability_service.serialize_instance(availability_service.get_instance(db, instance_id))


@router.put("/instances/{instance_id}")
def update_instance(
    instance_id: int,
    body: InstanceAvailabilityUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    instance = availability_service.get_instance(db, instance_id)
    ensure_can_manage_park(principal, instance.template.park_id)
    instance = availability_service.update_instance_availability(db, instance_id, body.available_tickets)
    return availability_service.serialize_instance(instance)
