"""Pydantic schemas for initiative memberships."""

from pydantic import BaseModel, ConfigDict, Field

from bitacora.schemas._types import UtcDatetime


class Membership(BaseModel):
    """An ``initiative_members`` row."""

    model_config = ConfigDict(frozen=True)

    id: str
    iniciativa_id: str
    user_id: str
    added_at: UtcDatetime | None = None


class MemberView(Membership):
    """Membership joined with the member's profile email for display."""

    email: str | None = None


class InviteRequest(BaseModel):
    email: str = Field(default="", description="Email of a registered profile")


class InviteResponse(BaseModel):
    member: MemberView
    message: str
