"""Slot model definitions."""

from sqlalchemy import Boolean, Column, Date, Index, Integer, Time
from petcare.database import Base


class Slot(Base):
    """Represents a bookable date and start time."""
    __tablename__ = "available_slots"
    __table_args__ = (
        Index("idx_available_slots_open_start", "is_available", "date", "start_time"),
    )

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
