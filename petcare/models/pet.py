"""Pet model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from petcare.database import Base


class Pet(Base):
    """Represents a pet owned by a user."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    species = Column(String)

    owner = relationship("User", back_populates="pets")
