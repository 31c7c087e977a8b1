"""Confirmed bookings of the signed-in user."""
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from parkbook.api.deps import Principal, get_current_principal
from parkbook.db.session import get_db
from parkbook.services import checkout_service

router = APIRouter()


@router.get("/bookings")
def list_bookings(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    rows = checkout_service.list_bookings(db, principal.user_id)
    return {"bookings": [checkout_service.serialize_booking(b) for b in rows]}
