"""Pydantic schemas for initiatives and their create/edit forms."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bitacora.domain.stages import Stage
from bitacora.schemas._types import UtcDatetime
from bitacora.schemas.log_entries import LogEntry
from bitacora.schemas.members import MemberView


class Initiative(BaseModel):
    """An ``iniciativas`` row."""

    model_config = ConfigDict(frozen=True)

    id: str
    codigo: str
    nombre: str
    etapa: Stage = Stage.default()
    created_at: UtcDatetime | None = None
    owner_id: str

    @field_validator("etapa", mode="before")
    @classmethod
    def _default_stage(cls, value):
        return Stage.coerce(value)


class InitiativeCreate(BaseModel):
    """New-initiative form. Normalization happens at submit time."""

    codigo: str = ""
    nombre: str = ""
    etapa: Stage = Stage.default()


class InitiativeUpdate(BaseModel):
    """Staged metadata edit (code/name/stage)."""

    codigo: str
    nombre: str
    etapa: Stage


class InitiativePatch(BaseModel):
    """Partial metadata edit accepted by the API."""

    codigo: str | None = None
    nombre: str | None = None
    etapa: Stage | None = None


class InitiativeStatsResponse(BaseModel):
    total: int = 0
    in_progress: int = 0
    finalized: int = 0


class InitiativeListResponse(BaseModel):
    """Filtered list view. ``items`` defaults to empty array, never null."""

    items: list[Initiative] = Field(default_factory=list)
    stats: InitiativeStatsResponse = Field(default_factory=InitiativeStatsResponse)
    search: str = ""
    stage: str = "all"


class InitiativeDetailResponse(BaseModel):
    """Detail view. ``members`` is only populated for admins."""

    initiative: Initiative
    entries: list[LogEntry] = Field(default_factory=list)
    members: list[MemberView] = Field(default_factory=list)
    can_edit: bool = False
