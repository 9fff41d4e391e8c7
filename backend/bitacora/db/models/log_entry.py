"""LogEntry model: dated notes attached to an initiative."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from bitacora.db.base import Base


class LogEntry(Base):
    __tablename__ = "bitacora_registros"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    iniciativa_id = Column(String(36), ForeignKey("iniciativas.id", ondelete="CASCADE"), nullable=False, index=True)

    fecha = Column(DateTime(timezone=True), nullable=True, default=lambda: datetime.now(timezone.utc))
    descripcion = Column(Text, nullable=False)
    adjunto_url = Column(String(1024), nullable=True)

    # Tiebreaker for entries sharing a fecha: newest insert first
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
