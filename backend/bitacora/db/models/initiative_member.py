"""InitiativeMember model: join table granting a profile access to an initiative."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from bitacora.db.base import Base


class InitiativeMember(Base):
    __tablename__ = "initiative_members"
    __table_args__ = (
        UniqueConstraint("iniciativa_id", "user_id", name="uq_initiative_members_iniciativa_user"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    iniciativa_id = Column(String(36), ForeignKey("iniciativas.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)

    added_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
