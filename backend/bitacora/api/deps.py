"""FastAPI dependencies wiring the session, the gateway and the controllers.

The gateway is built per request and bound to the caller's identity, so no
controller ever reaches for a global client or session.
"""

from fastapi import Depends, Request

from bitacora.core.auth import SessionUser, get_session_user
from bitacora.core.config import Settings, get_settings
from bitacora.db.base import get_session_factory
from bitacora.domain.stages import TransitionPolicy
from bitacora.gateway.base import Gateway
from bitacora.gateway.memory import InMemoryGateway
from bitacora.gateway.sql import SqlGateway
from bitacora.gateway.storage import S3ObjectStorage
from bitacora.services.initiative_detail_service import InitiativeDetailController
from bitacora.services.profile_service import ProfileResolver, ProfileState, provision_profile_on_first_login


def build_storage(settings: Settings) -> S3ObjectStorage:
    return S3ObjectStorage(
        bucket=settings.storage_bucket,
        region=settings.storage_region,
        endpoint_url=settings.storage_endpoint_url,
        public_base_url=settings.storage_public_base_url,
    )


async def get_gateway(
    request: Request,
    user: SessionUser | None = Depends(get_session_user),
) -> Gateway:
    """Gateway bound to the caller. Provisions the caller's profile on first use."""
    settings = get_settings()
    identity = user.user_id if user else None

    if settings.gateway_backend == "memory":
        gateway: Gateway = InMemoryGateway(
            request.app.state.memory_store,
            identity=identity,
            storage=request.app.state.memory_storage,
        )
    else:
        gateway = SqlGateway(get_session_factory(), storage=build_storage(settings), identity=identity)

    if user is not None:
        await provision_profile_on_first_login(gateway, user.email, settings.admin_emails)
    return gateway


async def get_profile_state(gateway: Gateway = Depends(get_gateway)) -> ProfileState:
    return await ProfileResolver(gateway).resolve()


def get_transition_policy() -> TransitionPolicy:
    return TransitionPolicy(get_settings().stage_transition_policy)


async def get_detail_controller(
    initiative_id: str,
    gateway: Gateway = Depends(get_gateway),
    profile: ProfileState = Depends(get_profile_state),
    policy: TransitionPolicy = Depends(get_transition_policy),
) -> InitiativeDetailController:
    """Detail controller for the ``initiative_id`` path parameter, already loaded."""
    controller = InitiativeDetailController(gateway, profile, initiative_id, transition_policy=policy)
    await controller.load()
    return controller
