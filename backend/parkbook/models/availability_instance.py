"""One dated occurrence of a template. `available_tickets` is the authoritative remaining capacity."""
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from parkbook.db.base import Base


class AvailabilityInstance(Base):
    __tablename__ = "availability_instances"
    __table_args__ = (
        UniqueConstraint("template_id", "date", name="uq_availability_instances_template_date"),
        CheckConstraint(
            "available_tickets >= 0 AND available_tickets <= ticket_limit",
            name="ck_availability_instances_capacity",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(
        Integer, ForeignKey("availability_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(Date, nullable=False, index=True)
    ticket_limit = Column(Integer, nullable=False)
    available_tickets = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    template = relationship("AvailabilityTemplate", back_populates="instances", lazy="joined")
