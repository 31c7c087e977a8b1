"""
Two-phase checkout and payment reconciliation.

Phase 1 (one transaction): lock the pending cart and reserve every line with a
compare-and-swap decrement on its instance; any miss rolls all reservations back.
Phase 2 (no transaction): open a gateway session. Its outcome (synchronous for the mock,
webhook for Chargily) is applied by reconcile_payment, which either turns the holds into
bookings or releases them. Two sweeps close the loop: stale payment sessions are resolved
against the gateway, and abandoned pending carts are reclaimed.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from parkbook.config import settings
from parkbook.core.constants import (
    CART_CANCELLED,
    CART_CONFIRMED,
    CART_PENDING,
    PAYMENT_FAILED,
    PAYMENT_METHODS,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    TICKET_CODE_PREFIX,
)
from parkbook.core.errors import (
    CapacityLost,
    InvalidSignature,
    NoActiveCart,
    NotFound,
    PaymentFailed,
    ValidationError,
)
from parkbook.db.session import transaction
from parkbook.models.availability_instance import AvailabilityInstance
from parkbook.models.booking import Booking
from parkbook.models.cart import Cart
from parkbook.services.availability_service import serialize_date
from parkbook.services.cart_service import ensure_mutable, pending_cart, serialize_cart
from parkbook.services.payments import PaymentGateway, PaymentGatewayError, get_gateway

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Capacity holds
# ---------------------------------------------------------------------------


def _reserve(db: Session, cart: Cart) -> None:
    """Decrement every line's instance, or raise CapacityLost naming the first line that no longer fits."""
    for item in cart.items:
        if item.instance_id is None:
            raise CapacityLost(
                f"Tickets for {item.date.isoformat()} are no longer offered",
                date=item.date.isoformat(),
                itemId=item.id,
                instanceId=None,
            )
        result = db.execute(
            update(AvailabilityInstance)
            .where(
                AvailabilityInstance.id == item.instance_id,
                AvailabilityInstance.available_tickets >= item.quantity,
            )
            .values(available_tickets=AvailabilityInstance.available_tickets - item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = db.query(AvailabilityInstance.available_tickets).filter(
                AvailabilityInstance.id == item.instance_id
            ).scalar()
            raise CapacityLost(
                f"Tickets for {item.date.isoformat()} are no longer available",
                date=item.date.isoformat(),
                itemId=item.id,
                instanceId=item.instance_id,
                requested=item.quantity,
                available=available,
            )


def _release(db: Session, cart: Cart) -> None:
    """Give every held line back to its instance, never above the instance's ticket limit."""
    for item in cart.items:
        if item.instance_id is None:
            continue
        restored = AvailabilityInstance.available_tickets + item.quantity
        db.execute(
            update(AvailabilityInstance)
            .where(AvailabilityInstance.id == item.instance_id)
            .values(
                available_tickets=case(
                    (restored > AvailabilityInstance.ticket_limit, AvailabilityInstance.ticket_limit),
                    else_=restored,
                )
            )
            .execution_options(synchronize_session=False)
        )
    cart.capacity_held = False


def _ticket_code(db: Session, taken: set[str]) -> str:
    while True:
        code = f"{TICKET_CODE_PREFIX}{secrets.token_hex(3).upper()}"
        if code in taken:
            continue
        if db.query(Booking.id).filter(Booking.ticket_code == code).first() is None:
            taken.add(code)
            return code


def _settle_paid(db: Session, cart: Cart, *, payment_method: str | None = None, currency: str | None = None) -> list[Booking]:
    taken: set[str] = set()
    bookings = [
        Booking(
            user_id=cart.user_id,
            cart_id=cart.id,
            instance_id=item.instance_id,
            pricing_id=item.pricing_id,
            park_id=item.park_id,
            quantity=item.quantity,
            total_price=item.total_price,
            date=item.date,
            start_time=item.start_time,
            end_time=item.end_time,
            ticket_code=_ticket_code(db, taken),
            payment_id=cart.payment_id,
            payment_method=cart.payment_method or payment_method,
            status="confirmed",
        )
        for item in cart.items
    ]
    db.add_all(bookings)
    cart.status = CART_CONFIRMED
    cart.payment_status = PAYMENT_PAID
    cart.payment_method = cart.payment_method or payment_method
    if currency:
        cart.currency = currency
    cart.capacity_held = False
    cart.settled_at = utc_now()
    db.flush()
    return bookings


def _settle_failed(db: Session, cart: Cart) -> None:
    if cart.capacity_held:
        _release(db, cart)
    cart.status = CART_CANCELLED
    cart.payment_status = PAYMENT_FAILED
    cart.settled_at = utc_now()
    db.flush()


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


def checkout(
    db: Session,
    user_id: str,
    payment_method: str,
    *,
    gateway: PaymentGateway | None = None,
) -> dict[str, Any]:
    """
    Reserve the cart's capacity and open a payment session.

    Returns {status, message, cart, paymentId, checkoutUrl}. Status is "paid" when the
    gateway settled synchronously and "pending" when the outcome arrives by webhook.

    Raises:
        NoActiveCart: the user has no pending cart.
        ValidationError: empty cart or unknown payment method.
        CartLocked: a payment session is already open for the cart.
        CapacityLost: a line no longer fits its instance; nothing is reserved.
        PaymentFailed: the gateway errored or declined; holds were released, cart cancelled.
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError("Unsupported payment method", paymentMethod=payment_method, allowed=list(PAYMENT_METHODS))
    gateway = gateway or get_gateway()

    with transaction(db):
        cart = pending_cart(db, user_id, lock=True)
        if cart is None:
            raise NoActiveCart()
        ensure_mutable(cart)
        if not cart.items:
            raise ValidationError("Cart is empty", cartId=cart.id)
        _reserve(db, cart)
        cart.capacity_held = True
        cart.payment_status = PAYMENT_PENDING
        cart.payment_method = payment_method
        cart.payment_provider = gateway.provider_id
        cart.currency = settings.payment_currency
        cart.checkout_started_at = utc_now()
        cart.updated_at = cart.checkout_started_at
        cart_id = cart.id
        amount = cart.total_amount
    logger.info("Cart %s: capacity reserved, opening %s payment for %s", cart_id, gateway.provider_id, amount)

    try:
        session = gateway.create_checkout(
            cart_id=cart_id,
            amount=amount,
            currency=settings.payment_currency,
            payment_method=payment_method,
        )
    except PaymentGatewayError as e:
        logger.warning("Cart %s: payment gateway error, releasing holds: %s", cart_id, e)
        with transaction(db):
            cart = db.query(Cart).filter(Cart.id == cart_id).with_for_update().one()
            _settle_failed(db, cart)
        raise PaymentFailed("Payment could not be processed", cartId=cart_id, reason=str(e))

    with transaction(db):
        cart = db.query(Cart).filter(Cart.id == cart_id).with_for_update().one()
        if cart.payment_id is None:
            cart.payment_id = session.payment_id
        cart.checkout_url = session.checkout_url

    if session.settled:
        cart = reconcile_payment(db, session.payment_id, session.status)
        if cart.payment_status == PAYMENT_FAILED:
            raise PaymentFailed("Payment was declined", cartId=cart_id, paymentId=session.payment_id)
        return {
            "status": cart.payment_status,
            "message": "Checkout successful",
            "paymentId": session.payment_id,
            "checkoutUrl": None,
            "cart": serialize_cart(cart),
        }

    db.refresh(cart)
    return {
        "status": PAYMENT_PENDING,
        "message": "Payment session opened",
        "paymentId": session.payment_id,
        "checkoutUrl": session.checkout_url,
        "cart": serialize_cart(cart),
    }


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def _cart_for_payment(db: Session, payment_id: str, cart_id: int | None) -> Cart | None:
    cart = db.query(Cart).filter(Cart.payment_id == payment_id).with_for_update().first()
    if cart is not None or cart_id is None:
        return cart
    # Webhook may beat phase 2 storing the payment id; fall back to the cart in metadata
    cart = db.query(Cart).filter(Cart.id == cart_id).with_for_update().first()
    if cart is None or cart.payment_id not in (None, payment_id):
        return None
    cart.payment_id = payment_id
    return cart


def reconcile_payment(
    db: Session,
    payment_id: str,
    outcome: str,
    *,
    cart_id: int | None = None,
    payment_method: str | None = None,
    currency: str | None = None,
) -> Cart:
    """
    Apply a terminal payment outcome to the cart holding `payment_id`. Idempotent: a cart
    already settled is returned unchanged. A pending outcome is a no-op.
    """
    with transaction(db):
        cart = _cart_for_payment(db, payment_id, cart_id)
        if cart is None:
            raise NotFound("Payment", payment_id)
        if cart.status != CART_PENDING:
            if outcome == PAYMENT_PAID and cart.status == CART_CANCELLED:
                logger.warning(
                    "Payment %s reported paid but cart %s was already cancelled; needs refund",
                    payment_id, cart.id,
                )
            return cart
        if not cart.capacity_held:
            logger.warning("Payment %s for cart %s has no capacity held; ignoring %s", payment_id, cart.id, outcome)
            return cart
        if outcome == PAYMENT_PAID:
            bookings = _settle_paid(db, cart, payment_method=payment_method, currency=currency)
            logger.info("Payment %s paid: cart %s confirmed, %s bookings", payment_id, cart.id, len(bookings))
        elif outcome == PAYMENT_FAILED:
            _settle_failed(db, cart)
            logger.info("Payment %s failed: cart %s cancelled, holds released", payment_id, cart.id)
    db.refresh(cart)
    return cart


def handle_webhook_event(
    db: Session,
    raw_body: bytes,
    signature: str | None,
    *,
    gateway: PaymentGateway | None = None,
) -> dict[str, Any]:
    """Verify and apply one gateway webhook delivery."""
    gateway = gateway or get_gateway()
    if not gateway.verify_signature(raw_body, signature):
        raise InvalidSignature()
    event = gateway.parse_event(raw_body)
    if event.outcome is None:
        logger.info("Webhook %s for payment %s ignored", event.event_type, event.payment_id)
        return {"message": "Event ignored", "type": event.event_type}
    cart = reconcile_payment(
        db,
        event.payment_id,
        event.outcome,
        cart_id=event.cart_id,
        payment_method=event.payment_method,
        currency=event.currency,
    )
    return {
        "message": "Webhook processed",
        "cartId": cart.id,
        "status": cart.status,
        "paymentStatus": cart.payment_status,
    }


# ---------------------------------------------------------------------------
# Sweeps
# ---------------------------------------------------------------------------


def recover_stale_payment_sessions(
    db: Session,
    *,
    gateway: PaymentGateway | None = None,
    now: datetime | None = None,
) -> int:
    """
    Resolve carts whose payment session has been open longer than the timeout. The
    gateway is asked for the final status; anything but paid releases the holds.
    """
    now = now or utc_now()
    cutoff = now - timedelta(minutes=settings.payment_session_timeout_minutes)
    stale = (
        db.query(Cart.id, Cart.payment_id, Cart.payment_provider)
        .filter(
            Cart.status == CART_PENDING,
            Cart.capacity_held.is_(True),
            Cart.checkout_started_at < cutoff,
        )
        .all()
    )
    resolved = 0
    for cart_id, payment_id, provider in stale:
        outcome = PAYMENT_FAILED
        if payment_id:
            try:
                outcome = (gateway or get_gateway(provider)).fetch_status(payment_id)
            except (PaymentGatewayError, KeyError) as e:
                logger.warning("Cart %s: could not fetch status of payment %s: %s", cart_id, payment_id, e)
            if outcome != PAYMENT_PAID:
                outcome = PAYMENT_FAILED
            reconcile_payment(db, payment_id, outcome, cart_id=cart_id)
        else:
            with transaction(db):
                cart = db.query(Cart).filter(Cart.id == cart_id).with_for_update().one()
                if cart.status == CART_PENDING and cart.capacity_held:
                    _settle_failed(db, cart)
        resolved += 1
        logger.info("Recovered stale payment session for cart %s as %s", cart_id, outcome)
    return resolved


def expire_stale_carts(db: Session, *, now: datetime | None = None) -> int:
    """
    Cancel pending, unpaid carts idle for longer than CART_EXPIRY_DAYS, releasing any
    capacity they still hold. A paid cart is never reclaimed.
    """
    now = now or utc_now()
    cutoff = now - timedelta(days=settings.cart_expiry_days)
    with transaction(db):
        carts = (
            db.query(Cart)
            .filter(
                Cart.status == CART_PENDING,
                Cart.payment_status != PAYMENT_PAID,
                Cart.updated_at < cutoff,
            )
            .with_for_update()
            .all()
        )
        for cart in carts:
            if cart.capacity_held:
                _release(db, cart)
                cart.payment_status = PAYMENT_FAILED
            cart.status = CART_CANCELLED
        db.flush()
    if carts:
        logger.info("Expired %s stale carts", len(carts))
    return len(carts)


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


def list_bookings(db: Session, user_id: str) -> list[Booking]:
    return (
        db.query(Booking)
        .filter(Booking.user_id == user_id)
        .order_by(Booking.date, Booking.start_time, Booking.id)
        .all()
    )


def serialize_booking(b: Booking) -> dict[str, Any]:
    return {
        "id": b.id,
        "cartId": b.cart_id,
        "instanceId": b.instance_id,
        "pricingId": b.pricing_id,
        "parkId": b.park_id,
        "quantity": b.quantity,
        "totalPrice": float(b.total_price),
        "date": serialize_date(b.date),
        "startTime": b.start_time,
        "endTime": b.end_time,
        "ticketCode": b.ticket_code,
        "paymentId": b.payment_id,
        "paymentMethod": b.payment_method,
        "status": b.status,
        "used": bool(b.used),
    }
