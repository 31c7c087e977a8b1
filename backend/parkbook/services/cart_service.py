"""
Cart engine: one pending cart per user, line items bound to availability instances.

Adding or growing a line only checks remaining capacity; tickets are reserved at checkout
(see checkout_service). A cart whose capacity is held by an open payment session is locked.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parkbook.core.constants import CART_PENDING, PAYMENT_PENDING
from parkbook.core.errors import (
    CartLocked,
    InsufficientCapacity,
    InvalidQuantity,
    InvalidSelection,
    NotFound,
)
from parkbook.db.session import transaction
from parkbook.models.availability_instance import AvailabilityInstance
from parkbook.models.cart import Cart, CartItem
from parkbook.models.pricing import Pricing
from parkbook.services.availability_service import serialize_date

logger = logging.getLogger(__name__)


def _quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidQuantity("Quantity must be a positive integer", quantity=value)
    return value


def pending_cart(db: Session, user_id: str, *, lock: bool = False) -> Cart | None:
    q = db.query(Cart).filter(Cart.user_id == user_id, Cart.status == CART_PENDING)
    if lock:
        q = q.with_for_update()
    return q.first()


def lock_or_create_cart(db: Session, user_id: str) -> Cart:
    """
    Lock the user's pending cart inside the caller's transaction, creating it if needed.
    A cart confirmed by a concurrent checkout no longer matches the pending filter. A
    concurrent create loses on the partial unique index at flush time.
    """
    cart = pending_cart(db, user_id, lock=True)
    if cart is not None:
        return cart
    cart = Cart(user_id=user_id, status=CART_PENDING, payment_status=PAYMENT_PENDING, capacity_held=False)
    db.add(cart)
    db.flush()
    logger.debug("Created pending cart %s for user %s", cart.id, user_id)
    return cart


def _touch(cart: Cart) -> None:
    cart.updated_at = datetime.now(timezone.utc)


def ensure_mutable(cart: Cart) -> None:
    if cart.capacity_held:
        raise CartLocked(
            "Cart has an open payment session and cannot be modified",
            cartId=cart.id,
            paymentId=cart.payment_id,
        )


def _lock_instance(db: Session, instance_id: int) -> AvailabilityInstance | None:
    return (
        db.query(AvailabilityInstance)
        .filter(AvailabilityInstance.id == instance_id)
        .with_for_update(of=AvailabilityInstance)
        .first()
    )


def add_item(db: Session, user_id: str, *, pricing_id: int, instance_id: int, quantity: Any) -> Cart:
    """
    Add `quantity` tickets of a pricing entry on an instance. Merges into an existing line for
    the same (pricing, instance) pair. Capacity is checked under a row lock on the instance.
    The pending cart is locked or created in the same transaction, so a failed add leaves
    nothing behind.
    """
    quantity = _quantity(quantity)
    try:
        cart = _add_line(db, user_id, pricing_id, instance_id, quantity)
    except IntegrityError:
        # Another request created the pending cart first; lock that one instead
        cart = _add_line(db, user_id, pricing_id, instance_id, quantity)
    logger.info("User %s added %s x pricing %s on instance %s to cart %s", user_id, quantity, pricing_id, instance_id, cart.id)
    db.refresh(cart)
    return cart


def _add_line(db: Session, user_id: str, pricing_id: int, instance_id: int, quantity: int) -> Cart:
    with transaction(db):
        cart = lock_or_create_cart(db, user_id)
        ensure_mutable(cart)
        pricing = db.get(Pricing, pricing_id)
        instance = _lock_instance(db, instance_id)
        if pricing is None or instance is None:
            raise InvalidSelection(
                "Invalid pricing or instance selection",
                pricingId=pricing_id,
                instanceId=instance_id,
                pricingFound=pricing is not None,
                instanceFound=instance is not None,
            )
        template = instance.template
        if pricing.id not in template.pricing_ids:
            raise InvalidSelection(
                "Pricing is not offered on this instance",
                pricingId=pricing_id,
                instanceId=instance_id,
            )
        if instance.available_tickets < quantity:
            raise InvalidSelection(
                "Not enough tickets available",
                instanceId=instance.id,
                date=instance.date.isoformat(),
                requested=quantity,
                available=instance.available_tickets,
            )

        final_price = Decimal(pricing.price) + Decimal(template.price_adjustment or 0)
        line = next(
            (i for i in cart.items if i.pricing_id == pricing.id and i.instance_id == instance.id),
            None,
        )
        if line is not None:
            line.quantity += quantity
            line.unit_price = final_price
            line.total_price = final_price * line.quantity
        else:
            cart.items.append(
                CartItem(
                    pricing_id=pricing.id,
                    park_id=template.park_id,
                    pricing_name=pricing.name,
                    instance_id=instance.id,
                    quantity=quantity,
                    unit_price=final_price,
                    total_price=final_price * quantity,
                    date=instance.date,
                    start_time=template.start_time,
                    end_time=template.end_time,
                )
            )
        _touch(cart)
        db.flush()
    return cart


def _owned_line(db: Session, cart: Cart, item_id: int) -> CartItem:
    line = db.query(CartItem).filter(CartItem.id == item_id, CartItem.cart_id == cart.id).first()
    if line is None:
        raise NotFound("Cart item", item_id)
    return line


def update_item_quantity(db: Session, user_id: str, item_id: int, quantity: Any) -> Cart:
    """Set a line's quantity; growth is checked against the instance's remaining capacity."""
    quantity = _quantity(quantity)
    with transaction(db):
        cart = pending_cart(db, user_id, lock=True)
        if cart is None:
            raise NotFound("Cart item", item_id)
        ensure_mutable(cart)
        line = _owned_line(db, cart, item_id)
        if line.instance_id is None:
            raise InvalidSelection("Instance is no longer offered", itemId=item_id, date=line.date.isoformat())
        instance = _lock_instance(db, line.instance_id)
        delta = quantity - line.quantity
        if delta > 0 and delta > instance.available_tickets:
            raise InsufficientCapacity(
                "Not enough tickets available",
                instanceId=instance.id,
                date=instance.date.isoformat(),
                requested=delta,
                available=instance.available_tickets,
            )
        line.quantity = quantity
        line.total_price = Decimal(line.unit_price) * quantity
        _touch(cart)
        db.flush()
    logger.info("Cart %s item %s quantity set to %s", cart.id, item_id, quantity)
    db.refresh(cart)
    return cart


def remove_items(db: Session, user_id: str, item_ids: Iterable[int]) -> Cart | None:
    """Drop the given lines from the pending cart. Absent cart or lines are a no-op."""
    ids = {int(i) for i in item_ids or []}
    with transaction(db):
        cart = pending_cart(db, user_id, lock=True)
        if cart is None:
            return None
        ensure_mutable(cart)
        removed = [i for i in cart.items if i.id in ids]
        for line in removed:
            cart.items.remove(line)
        if removed:
            _touch(cart)
        db.flush()
    if removed:
        logger.info("Cart %s: removed items %s", cart.id, sorted(i.id for i in removed))
    db.refresh(cart)
    return cart


def clear_cart(db: Session, user_id: str) -> Cart | None:
    """Empty the pending cart; its status stays pending. Idempotent."""
    with transaction(db):
        cart = pending_cart(db, user_id, lock=True)
        if cart is None:
            return None
        ensure_mutable(cart)
        cart.items.clear()
        _touch(cart)
        db.flush()
    db.refresh(cart)
    return cart


def get_cart(db: Session, user_id: str) -> Cart | None:
    """The pending cart, or None: an absent cart is a normal state."""
    return pending_cart(db, user_id)


def serialize_item(item: CartItem) -> dict[str, Any]:
    instance = item.instance
    return {
        "id": item.id,
        "pricingId": item.pricing_id,
        "parkId": item.park_id,
        "pricingName": item.pricing_name,
        "instanceId": item.instance_id,
        "quantity": item.quantity,
        "unitPrice": float(item.unit_price),
        "totalPrice": float(item.total_price),
        "date": serialize_date(item.date),
        "startTime": item.start_time,
        "endTime": item.end_time,
        "availableTickets": instance.available_tickets if instance is not None else None,
        "templateId": instance.template_id if instance is not None else None,
    }


def serialize_cart(cart: Cart | None) -> dict[str, Any] | None:
    if cart is None:
        return None
    return {
        "id": cart.id,
        "userId": cart.user_id,
        "status": cart.status,
        "paymentStatus": cart.payment_status,
        "paymentMethod": cart.payment_method,
        "paymentId": cart.payment_id,
        "checkoutUrl": cart.checkout_url,
        "capacityHeld": bool(cart.capacity_held),
        "items": [serialize_item(i) for i in cart.items],
        "totalAmount": float(cart.total_amount),
        "updatedAt": cart.updated_at.isoformat() if cart.updated_at else None,
    }
