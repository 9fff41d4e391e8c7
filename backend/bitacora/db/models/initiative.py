"""Initiative model: root aggregate of the logbook."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from bitacora.db.base import Base
from bitacora.domain.stages import Stage


class Initiative(Base):
    __tablename__ = "iniciativas"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    codigo = Column(String(64), unique=True, nullable=False)
    nombre = Column(String(255), nullable=False)
    etapa = Column(String(64), nullable=True, default=Stage.default().value)
    owner_id = Column(String(36), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
