"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE in scripts). Alembic env asserts the
registered models match this list.
"""
ALL_TABLE_NAMES = (
    "parks",
    "pricing",
    "availability_templates",
    "template_pricing",
    "availability_instances",
    "carts",
    "cart_items",
    "bookings",
)

# Tables cleared when resetting transactional state (keeps parks, pricing, templates).
# Order matters for FK.
BOOKING_STATE_TABLE_NAMES = (
    "bookings",
    "cart_items",
    "carts",
)
