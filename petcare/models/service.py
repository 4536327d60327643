"""Service model definitions."""

from sqlalchemy import Column, Integer, String
from petcare.database import Base


class Service(Base):
    """Represents a service offered by the clinic."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    description = Column(String, nullable=False)
