"""Team membership routes for one initiative (admin only)."""

from fastapi import APIRouter, Depends

from bitacora.api.deps import get_detail_controller
from bitacora.core.auth import SessionUser, require_auth
from bitacora.schemas.members import InviteRequest, InviteResponse, MemberView
from bitacora.services.initiative_detail_service import InitiativeDetailController

router = APIRouter()


@router.get("/{initiative_id}/members", response_model=list[MemberView])
async def list_members(
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    controller.profile.require_admin()
    return list(controller.members)


@router.post("/{initiative_id}/members", response_model=InviteResponse, status_code=201)
async def invite_member(
    request: InviteRequest,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Add the registered user with this email to the team.

    404 when no profile has the email, 409 when the user is already a member.
    """
    member = await controller.invite(request.email)
    return InviteResponse(member=member, message=controller.member_state.message or "")


@router.delete("/{initiative_id}/members/{member_id}")
async def remove_member(
    member_id: str,
    confirm: bool = False,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    await controller.remove_member(member_id, confirmed=confirm)
    return {"status": "removed", "id": member_id}
