"""Parks: the working-hours collaborator reads `working_hours` (weekday name -> {from, to, closed})."""
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from parkbook.db.base import Base


class Park(Base):
    __tablename__ = "parks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    location = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    # {"Monday": {"from": "09:00", "to": "18:00", "closed": false}, ...}; missing day = closed
    working_hours = Column(JSON, nullable=False, default=dict)
    max_booking_days = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
