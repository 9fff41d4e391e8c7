"""Current user's profile and role flags."""

from fastapi import APIRouter, Depends

from bitacora.api.deps import get_profile_state
from bitacora.schemas.profiles import ProfileStateResponse
from bitacora.services.profile_service import ProfileState

router = APIRouter()


@router.get("/me", response_model=ProfileStateResponse)
async def get_me(state: ProfileState = Depends(get_profile_state)):
    """Resolved profile. Anonymous callers get a null profile with every flag false."""
    return ProfileStateResponse(
        profile=state.profile,
        loading=state.loading,
        is_admin=state.is_admin,
        is_user=state.is_user,
    )
