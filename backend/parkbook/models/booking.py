"""Durable booking, one per cart line, created only when payment settles as paid."""
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from parkbook.db.base import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False, index=True)
    instance_id = Column(
        Integer, ForeignKey("availability_instances.id", ondelete="SET NULL"), nullable=True, index=True
    )
    pricing_id = Column(Integer, ForeignKey("pricing.id"), nullable=False)
    park_id = Column(Integer, ForeignKey("parks.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    ticket_code = Column(String(16), nullable=False, unique=True)
    payment_id = Column(String(128), nullable=True, index=True)
    payment_method = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default="confirmed")
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
