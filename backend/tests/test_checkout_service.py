"""Two-phase checkout, payment reconciliation and booking creation."""
import logging

import pytest

from conftest import FakeGateway
from parkbook.core.errors import CapacityLost, CartLocked, NoActiveCart, NotFound, PaymentFailed, ValidationError
from parkbook.models import Booking, Cart
from parkbook.services import availability_service, cart_service, checkout_service

USER = "user-1"


@pytest.fixture
def slots(make_template, instance_on):
    """(monday, wednesday) instances of one 10-ticket template."""
    template = make_template(ticket_limit=10)
    return instance_on(template, "2030-01-07"), instance_on(template, "2030-01-09")


@pytest.fixture
def filled_cart(db, pricing, slots):
    """Two lines: 2 tickets on Monday, 3 on Wednesday."""
    monday, wednesday = slots
    cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=monday.id, quantity=2)
    return cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=wednesday.id, quantity=3)


def _available(db, *instances):
    db.expire_all()
    return [availability_service.get_instance(db, i.id).available_tickets for i in instances]


class TestCheckoutPaid:
    def test_paid_checkout_creates_bookings(self, db, slots, filled_cart):
        """A synchronously paid checkout confirms the cart and books every line."""
        gateway = FakeGateway("paid")
        result = checkout_service.checkout(db, USER, "credit_card", gateway=gateway)

        assert result["status"] == "paid"
        assert result["paymentId"] == "fake_1"
        assert result["checkoutUrl"] is None
        assert result["cart"]["status"] == "confirmed"
        assert result["cart"]["paymentStatus"] == "paid"
        assert result["cart"]["capacityHeld"] is False
        assert gateway.checkouts[0]["amount"] == filled_cart.total_amount

        bookings = checkout_service.list_bookings(db, USER)
        assert [b.quantity for b in bookings] == [2, 3]
        assert all(b.ticket_code.startswith("FA-") and len(b.ticket_code) == 9 for b in bookings)
        assert len({b.ticket_code for b in bookings}) == 2
        assert all(b.payment_method == "credit_card" and b.payment_id == "fake_1" for b in bookings)
        assert _available(db, *slots) == [8, 7]
        assert cart_service.get_cart(db, USER) is None

    def test_default_gateway_is_mock(self, db, filled_cart):
        result = checkout_service.checkout(db, USER, "edahabia")
        assert result["status"] == "paid"
        assert result["paymentId"].startswith("mock_")

    def test_next_add_starts_a_fresh_cart(self, db, pricing, slots, filled_cart):
        checkout_service.checkout(db, USER, "paypal", gateway=FakeGateway("paid"))
        cart = cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=slots[0].id, quantity=1)
        assert cart.id != filled_cart.id
        assert len(cart.items) == 1


class TestCheckoutFailures:
    def test_declined_payment_releases_capacity(self, db, slots, filled_cart):
        with pytest.raises(PaymentFailed):
            checkout_service.checkout(db, USER, "credit_card", gateway=FakeGateway("failed"))
        assert _available(db, *slots) == [10, 10]
        assert db.query(Booking).count() == 0
        cart = db.get(Cart, filled_cart.id)
        assert (cart.status, cart.payment_status, cart.capacity_held) == ("cancelled", "failed", False)

    def test_gateway_error_releases_capacity(self, db, slots, filled_cart):
        with pytest.raises(PaymentFailed) as exc:
            checkout_service.checkout(db, USER, "cib", gateway=FakeGateway(error="connection reset"))
        assert "connection reset" in exc.value.details["reason"]
        assert _available(db, *slots) == [10, 10]
        assert db.get(Cart, filled_cart.id).status == "cancelled"

    def test_capacity_lost_rolls_back_every_line(self, db, slots, filled_cart):
        """The Monday decrement is undone when Wednesday no longer fits."""
        monday, wednesday = slots
        availability_service.update_instance_availability(db, wednesday.id, 1)
        gateway = FakeGateway("paid")
        with pytest.raises(CapacityLost) as exc:
            checkout_service.checkout(db, USER, "credit_card", gateway=gateway)
        assert exc.value.details["date"] == "2030-01-09"
        assert exc.value.details["available"] == 1
        assert _available(db, monday, wednesday) == [10, 1]
        assert gateway.checkouts == []
        cart = cart_service.get_cart(db, USER)
        assert cart.id == filled_cart.id and cart.capacity_held is False

    def test_line_whose_instance_vanished(self, db, filled_cart):
        filled_cart.items[0].instance_id = None
        db.commit()
        with pytest.raises(CapacityLost):
            checkout_service.checkout(db, USER, "credit_card", gateway=FakeGateway("paid"))

    def test_no_cart_empty_cart_and_bad_method(self, db, pricing, slots):
        with pytest.raises(NoActiveCart):
            checkout_service.checkout(db, USER, "credit_card", gateway=FakeGateway())
        cart = cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=slots[0].id, quantity=1)
        cart_service.remove_items(db, USER, [cart.items[0].id])
        with pytest.raises(ValidationError):
            checkout_service.checkout(db, USER, "credit_card", gateway=FakeGateway())
        with pytest.raises(ValidationError):
            checkout_service.checkout(db, USER, "cash", gateway=FakeGateway())


class TestNoOversell:
    def test_two_shoppers_race_for_the_last_tickets(self, db, pricing, make_template, instance_on):
        """Both carts pass the add-time check; only the first checkout gets the tickets."""
        monday = instance_on(make_template(ticket_limit=5), "2030-01-07")
        cart_service.add_item(db, "user-1", pricing_id=pricing[0].id, instance_id=monday.id, quantity=4)
        cart_service.add_item(db, "user-2", pricing_id=pricing[0].id, instance_id=monday.id, quantity=3)

        assert checkout_service.checkout(db, "user-1", "credit_card", gateway=FakeGateway("paid"))["status"] == "paid"
        with pytest.raises(CapacityLost) as exc:
            checkout_service.checkout(db, "user-2", "credit_card", gateway=FakeGateway("paid"))
        assert exc.value.details["available"] == 1

        booked = sum(b.quantity for b in db.query(Booking).filter(Booking.instance_id == monday.id))
        assert booked == 4
        assert _available(db, monday) == [1]
        assert checkout_service.list_bookings(db, "user-2") == []
        assert cart_service.get_cart(db, "user-2").capacity_held is False


class TestPendingPayment:
    @pytest.fixture
    def pending(self, db, filled_cart):
        gateway = FakeGateway("pending")
        result = checkout_service.checkout(db, USER, "edahabia", gateway=gateway)
        return result, gateway

    def test_pending_checkout_holds_capacity(self, db, slots, pending, pricing):
        result, _ = pending
        assert result["status"] == "pending"
        assert result["checkoutUrl"] == "https://pay.example/checkout/fake_1"
        assert result["cart"]["capacityHeld"] is True
        assert _available(db, *slots) == [8, 7]
        with pytest.raises(CartLocked):
            cart_service.add_item(db, USER, pricing_id=pricing[0].id, instance_id=slots[0].id, quantity=1)
        with pytest.raises(CartLocked):
            checkout_service.checkout(db, USER, "edahabia", gateway=FakeGateway("pending"))

    def test_reconcile_paid_is_idempotent(self, db, slots, pending):
        cart = checkout_service.reconcile_payment(db, "fake_1", "paid")
        assert cart.status == "confirmed"
        again = checkout_service.reconcile_payment(db, "fake_1", "paid")
        assert again.id == cart.id
        assert db.query(Booking).count() == 2
        assert _available(db, *slots) == [8, 7]

    def test_reconcile_failed_releases(self, db, slots, pending):
        cart = checkout_service.reconcile_payment(db, "fake_1", "failed")
        assert (cart.status, cart.payment_status) == ("cancelled", "failed")
        assert _available(db, *slots) == [10, 10]
        checkout_service.reconcile_payment(db, "fake_1", "failed")
        assert _available(db, *slots) == [10, 10]

    def test_pending_outcome_changes_nothing(self, db, pending):
        cart = checkout_service.reconcile_payment(db, "fake_1", "pending")
        assert cart.status == "pending" and cart.capacity_held is True

    def test_late_paid_after_cancel_books_nothing(self, db, slots, pending, caplog):
        checkout_service.reconcile_payment(db, "fake_1", "failed")
        with caplog.at_level(logging.WARNING):
            cart = checkout_service.reconcile_payment(db, "fake_1", "paid")
        assert cart.status == "cancelled"
        assert db.query(Booking).count() == 0
        assert "needs refund" in caplog.text

    def test_unknown_payment(self, db, pending):
        with pytest.raises(NotFound):
            checkout_service.reconcile_payment(db, "nope", "paid")

    def test_release_never_exceeds_ticket_limit(self, db, slots, pending):
        """An admin raising availability during the hold cannot push the counter past the limit."""
        monday, _ = slots
        availability_service.update_instance_availability(db, monday.id, 10)
        checkout_service.reconcile_payment(db, "fake_1", "failed")
        assert _available(db, monday) == [10]
