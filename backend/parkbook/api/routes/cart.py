"""
Cart API for the signed-in user: add/update/remove lines, read, clear, and checkout.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from parkbook.api.deps import Principal, get_current_principal
from parkbook.db.session import get_db
from parkbook.services import cart_service, checkout_service

router = APIRouter()
logger = logging.getLogger(__name__)


class AddItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pricing_id: int = Field(..., alias="pricingId")
    instance_id: int = Field(..., alias="instanceId")
    quantity: int = Field(1)


class UpdateItemRequest(BaseModel):
    quantity: int


class RemoveItemsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_ids: list[int] = Field(default_factory=list, alias="itemIds")


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_method: str = Field(..., alias="paymentMethod")


@router.post("/items", status_code=201)
def add_item(
    body: AddItemRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    cart = cart_service.add_item(
        db,
        principal.user_id,
        pricing_id=body.pricing_id,
        instance_id=body.instance_id,
        quantity=body.quantity,
    )
    return {"cart": cart_service.serialize_cart(cart)}


@router.put("/items/{item_id}")
def update_item(
    item_id: int,
    body: UpdateItemRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    cart = cart_service.update_item_quantity(db, principal.user_id, item_id, body.quantity)
    return {"cart": cart_service.serialize_cart(cart)}


@router.delete("/items")
def remove_items(
    body: RemoveItemsRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    cart = cart_service.remove_items(db, principal.user_id, body.item_ids)
    return {"cart": cart_service.serialize_cart(cart)}


@router.get("")
def get_cart(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    return {"cart": cart_service.serialize_cart(cart_service.get_cart(db, principal.user_id))}


@router.delete("")
def clear_cart(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    cart = cart_service.clear_cart(db, principal.user_id)
    return {"message": "Cart cleared", "cart": cart_service.serialize_cart(cart)}


@router.post("/checkout")
def checkout(
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    return checkout_service.checkout(db, principal.user_id, body.payment_method)
