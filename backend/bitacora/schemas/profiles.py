"""Pydantic schemas for profiles and the resolved role state."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from bitacora.schemas._types import UtcDatetime

Role = Literal["admin", "user"]


class Profile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    role: Role = "user"
    created_at: UtcDatetime | None = None


class ProfileStateResponse(BaseModel):
    profile: Profile | None = None
    loading: bool = False
    is_admin: bool = False
    is_user: bool = False
