"""Revoked session model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from petcare.database import Base


class RevokedSession(Base):
    """Access token ids that were signed out before they expired."""
    __tablename__ = "revoked_sessions"

    jti = Column(String, primary_key=True)
    user_id = Column(Integer, index=True)
    revoked_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
