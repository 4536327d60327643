"""User model definitions."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from petcare.database import Base


class User(Base):
    """Represents an account known to the session authority and its profile."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String)  # owner/staff/admin, assigned during onboarding
    name = Column(String)

    pets = relationship("Pet", back_populates="owner", order_by="Pet.id")
