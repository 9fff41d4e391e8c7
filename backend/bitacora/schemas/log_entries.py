"""Pydantic schemas for log entries (``bitacora_registros``)."""

from datetime import date

from pydantic import BaseModel, ConfigDict

from bitacora.schemas._types import UtcDatetime


class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    iniciativa_id: str
    fecha: UtcDatetime | None = None
    descripcion: str
    adjunto_url: str | None = None
    created_at: UtcDatetime | None = None


class LogEntryForm(BaseModel):
    """Create/edit form for a log entry.

    A blank ``fecha`` means "now" at submission time.
    """

    fecha: date | None = None
    descripcion: str = ""
    adjunto_url: str | None = None


class AttachmentResponse(BaseModel):
    adjunto_url: str
