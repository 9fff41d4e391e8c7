"""Initiative list, create/delete, and the detail metadata routes."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from bitacora.api.deps import get_detail_controller, get_gateway, get_profile_state
from bitacora.core.auth import SessionUser, require_auth
from bitacora.core.exceptions import ConfirmationRequiredError, ValidationError
from bitacora.domain.stages import ALL_STAGES
from bitacora.gateway.base import Gateway
from bitacora.schemas.initiatives import (
    Initiative,
    InitiativeCreate,
    InitiativeDetailResponse,
    InitiativeListResponse,
    InitiativePatch,
    InitiativeStatsResponse,
)
from bitacora.services.initiative_detail_service import InitiativeDetailController
from bitacora.services.initiative_list_service import InitiativeListController
from bitacora.services.profile_service import ProfileState

router = APIRouter()


@router.get("", response_model=InitiativeListResponse)
async def list_initiatives(
    search: str = "",
    stage: str = Query(ALL_STAGES, description="A stage value, or 'all'"),
    user: SessionUser = Depends(require_auth),
    gateway: Gateway = Depends(get_gateway),
    profile: ProfileState = Depends(get_profile_state),
):
    """All initiatives, newest first, filtered by stage and free-text search."""
    controller = InitiativeListController(gateway, profile)
    await controller.load()

    controller.set_search(search)
    try:
        controller.set_stage_filter(stage)
    except ValueError:
        raise ValidationError("stage", f"Unknown stage: {stage}")

    return InitiativeListResponse(
        items=controller.filtered,
        stats=InitiativeStatsResponse(**asdict(controller.stats())),
        search=controller.search,
        stage=controller.stage_filter,
    )


@router.post("", response_model=Initiative, status_code=201)
async def create_initiative(
    request: InitiativeCreate,
    user: SessionUser = Depends(require_auth),
    gateway: Gateway = Depends(get_gateway),
    profile: ProfileState = Depends(get_profile_state),
):
    """Create an initiative owned by the caller."""
    controller = InitiativeListController(gateway, profile)
    return await controller.create(request)


@router.delete("/{initiative_id}")
async def delete_initiative(
    initiative_id: str,
    confirm: bool = False,
    user: SessionUser = Depends(require_auth),
    gateway: Gateway = Depends(get_gateway),
    profile: ProfileState = Depends(get_profile_state),
):
    """Delete an initiative with its log entries and memberships (admin only).

    Without ``confirm=true`` nothing is deleted and the prompt is returned (428).
    """
    controller = InitiativeListController(gateway, profile)
    await controller.load()

    prompt = controller.request_delete(initiative_id)
    if not confirm:
        raise ConfirmationRequiredError(prompt)

    await controller.confirm_delete()
    return {"status": "deleted", "id": initiative_id}


@router.get("/{initiative_id}", response_model=InitiativeDetailResponse)
async def get_initiative(
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    return InitiativeDetailResponse(
        initiative=controller.initiative,
        entries=list(controller.entries),
        members=list(controller.members),
        can_edit=controller.profile.is_admin,
    )


@router.patch("/{initiative_id}", response_model=Initiative)
async def update_initiative(
    request: InitiativePatch,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Save code/name/stage edits (admin only). Returns the stored row."""
    controller.begin_edit()
    controller.stage_edit(**request.model_dump(exclude_none=True))
    return await controller.save_edit()


@router.post("/{initiative_id}/finalize", response_model=Initiative)
async def finalize_initiative(
    confirm: bool = False,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Jump straight to the terminal stage (admin only, needs ``confirm=true``)."""
    prompt = controller.request_finalize()
    if not confirm:
        raise ConfirmationRequiredError(prompt)
    return await controller.confirm_finalize()
