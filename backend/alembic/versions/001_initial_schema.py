"""Initial schema: parks, pricing, availability templates/instances, carts, bookings

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "parks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("working_hours", sa.JSON(), nullable=False),
        sa.Column("max_booking_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_parks_id", "parks", ["id"])

    op.create_table(
        "pricing",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("park_id", sa.Integer(), sa.ForeignKey("parks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_pricing_id", "pricing", ["id"])
    op.create_index("ix_pricing_park_id", "pricing", ["park_id"])

    op.create_table(
        "availability_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("park_id", sa.Integer(), sa.ForeignKey("parks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("days_of_week", sa.JSON(), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("ticket_limit", sa.Integer(), nullable=False),
        sa.Column("price_adjustment", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("materialized_until", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("ticket_limit > 0", name="ck_availability_templates_ticket_limit"),
    )
    op.create_index("ix_availability_templates_id", "availability_templates", ["id"])
    op.create_index("ix_availability_templates_park_id", "availability_templates", ["park_id"])

    op.create_table(
        "template_pricing",
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("availability_templates.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("pricing_id", sa.Integer(), sa.ForeignKey("pricing.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "availability_instances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("availability_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("ticket_limit", sa.Integer(), nullable=False),
        sa.Column("available_tickets", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("template_id", "date", name="uq_availability_instances_template_date"),
        sa.CheckConstraint(
            "available_tickets >= 0 AND available_tickets <= ticket_limit",
            name="ck_availability_instances_capacity",
        ),
    )
    op.create_index("ix_availability_instances_id", "availability_instances", ["id"])
    op.create_index("ix_availability_instances_template_id", "availability_instances", ["template_id"])
    op.create_index("ix_availability_instances_date", "availability_instances", ["date"])

    op.create_table(
        "carts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("payment_provider", sa.String(32), nullable=True),
        sa.Column("payment_id", sa.String(128), nullable=True),
        sa.Column("checkout_url", sa.String(1024), nullable=True),
        sa.Column("currency", sa.String(8), nullable=True),
        sa.Column("capacity_held", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("checkout_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "payment_status != 'paid' OR payment_method IS NOT NULL",
            name="ck_carts_paid_has_method",
        ),
    )
    op.create_index("ix_carts_id", "carts", ["id"])
    op.create_index("ix_carts_user_id", "carts", ["user_id"])
    op.create_index("ix_carts_payment_id", "carts", ["payment_id"], unique=True)
    op.create_index(
        "uq_carts_user_pending",
        "carts",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("cart_id", sa.Integer(), sa.ForeignKey("carts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pricing_id", sa.Integer(), sa.ForeignKey("pricing.id"), nullable=False),
        sa.Column("park_id", sa.Integer(), sa.ForeignKey("parks.id"), nullable=False),
        sa.Column("pricing_name", sa.String(255), nullable=False),
        sa.Column(
            "instance_id",
            sa.Integer(),
            sa.ForeignKey("availability_instances.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_cart_items_quantity"),
        sa.CheckConstraint("total_price >= 0", name="ck_cart_items_total_price"),
    )
    op.create_index("ix_cart_items_id", "cart_items", ["id"])
    op.create_index("ix_cart_items_cart_id", "cart_items", ["cart_id"])
    op.create_index("ix_cart_items_instance_id", "cart_items", ["instance_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("cart_id", sa.Integer(), sa.ForeignKey("carts.id"), nullable=False),
        sa.Column(
            "instance_id",
            sa.Integer(),
            sa.ForeignKey("availability_instances.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("pricing_id", sa.Integer(), sa.ForeignKey("pricing.id"), nullable=False),
        sa.Column("park_id", sa.Integer(), sa.ForeignKey("parks.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("ticket_code", sa.String(16), nullable=False, unique=True),
        sa.Column("payment_id", sa.String(128), nullable=True),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="confirmed"),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_cart_id", "bookings", ["cart_id"])
    op.create_index("ix_bookings_instance_id", "bookings", ["instance_id"])
    op.create_index("ix_bookings_payment_id", "bookings", ["payment_id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("cart_items")
    op.drop_index("uq_carts_user_pending", table_name="carts")
    op.drop_table("carts")
    op.drop_table("availability_instances")
    op.drop_table("template_pricing")
    op.drop_table("availability_templates")
    op.drop_table("pricing")
    op.drop_table("parks")
