"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from petcare.database import Base


class Appointment(Base):
    """Represents a booked appointment.

    ``slot_id`` is not unique. One appointment per slot is enforced through
    ``Slot.is_available``.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    pets_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    services_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    slot_id = Column(Integer, ForeignKey("available_slots.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
