"""Profile model: one row per authenticated identity."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from bitacora.db.base import Base


class Profile(Base):
    __tablename__ = "profiles"

    # Matches the session subject issued by the auth provider
    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=True, unique=True, index=True)
    role = Column(String(16), nullable=False, default="user")  # "admin" | "user"

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
