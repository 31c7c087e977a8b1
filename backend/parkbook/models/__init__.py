from parkbook.models.availability_instance import AvailabilityInstance
from parkbook.models.availability_template import AvailabilityTemplate, template_pricing
from parkbook.models.booking import Booking
from parkbook.models.cart import Cart, CartItem
from parkbook.models.park import Park
from parkbook.models.pricing import Pricing

__all__ = [
    "AvailabilityInstance",
    "AvailabilityTemplate",
    "Booking",
    "Cart",
    "CartItem",
    "Park",
    "Pricing",
    "template_pricing",
]
