"""Shopping cart (one pending cart per user) and its line items."""
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from parkbook.db.base import Base


class Cart(Base):
    __tablename__ = "carts"
    __table_args__ = (
        # At most one pending cart per user
        Index(
            "uq_carts_user_pending",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        CheckConstraint(
            "payment_status != 'paid' OR payment_method IS NOT NULL",
            name="ck_carts_paid_has_method",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="pending")  # pending | confirmed | cancelled
    payment_status = Column(String(16), nullable=False, default="pending")  # pending | paid | failed | refunded
    payment_method = Column(String(32), nullable=True)
    payment_provider = Column(String(32), nullable=True)
    payment_id = Column(String(128), nullable=True, unique=True, index=True)
    checkout_url = Column(String(1024), nullable=True)
    currency = Column(String(8), nullable=True)
    # True while checkout has decremented instance counters for this cart's lines
    capacity_held = Column(Boolean, nullable=False, default=False)
    checkout_started_at = Column(DateTime(timezone=True), nullable=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
        lazy="selectin",
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((Decimal(i.total_price) for i in self.items), Decimal("0"))


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity"),
        CheckConstraint("total_price >= 0", name="ck_cart_items_total_price"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    pricing_id = Column(Integer, ForeignKey("pricing.id"), nullable=False)
    park_id = Column(Integer, ForeignKey("parks.id"), nullable=False)
    pricing_name = Column(String(255), nullable=False)
    # Null once the instance is deleted by a template regeneration; checkout then rejects the line
    instance_id = Column(
        Integer, ForeignKey("availability_instances.id", ondelete="SET NULL"), nullable=True, index=True
    )
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    # Snapshot at add time
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)

    cart = relationship("Cart", back_populates="items")
    pricing = relationship("Pricing", lazy="joined")
    instance = relationship("AvailabilityInstance", lazy="joined")
