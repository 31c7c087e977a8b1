"""Recurring weekly availability: a time window on a weekday set, valid over a date range."""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from parkbook.db.base import Base

template_pricing = Table(
    "template_pricing",
    Base.metadata,
    Column("template_id", Integer, ForeignKey("availability_templates.id", ondelete="CASCADE"), primary_key=True),
    Column("pricing_id", Integer, ForeignKey("pricing.id", ondelete="CASCADE"), primary_key=True),
)


class AvailabilityTemplate(Base):
    __tablename__ = "availability_templates"
    __table_args__ = (
        CheckConstraint("ticket_limit > 0", name="ck_availability_templates_ticket_limit"),
    )

    id = Column(Integer, primary_key=True, index=True)
    park_id = Column(Integer, ForeignKey("parks.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM, "00:00" = end of day
    days_of_week = Column(JSON, nullable=False)  # [0..6], 0 = Sunday
    valid_from = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=True)  # null = open-ended
    ticket_limit = Column(Integer, nullable=False)
    price_adjustment = Column(Numeric(10, 2), nullable=False, default=0)
    # Last date instances exist for; open-ended templates are extended by the horizon job
    materialized_until = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    pricing = relationship("Pricing", secondary=template_pricing, lazy="selectin", order_by="Pricing.id")
    instances = relationship("AvailabilityInstance", back_populates="template", passive_deletes=True)

    @property
    def pricing_ids(self) -> list[int]:
        return [p.id for p in self.pricing]
