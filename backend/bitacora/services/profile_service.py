"""ProfileResolver: derives the caller's role from the session identity.

The resolved state only drives which affordances are offered. It fails
closed: no session, no profile row, or a failed fetch all resolve to a
state where ``is_admin`` and ``is_user`` are False.
"""

from dataclasses import dataclass

import structlog

from bitacora.core.exceptions import AuthenticationRequiredError, GatewayError, PermissionDeniedError
from bitacora.gateway.base import PROFILES, Gateway
from bitacora.schemas.profiles import Profile

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProfileState:
    profile: Profile | None = None
    loading: bool = True

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role == "admin"

    @property
    def is_user(self) -> bool:
        return self.profile is not None and self.profile.role == "user"

    def require_admin(self) -> None:
        """Raise unless the resolved profile is an admin."""
        if self.profile is None:
            raise AuthenticationRequiredError()
        if not self.is_admin:
            raise PermissionDeniedError()


# Resolved state for callers without a session
ANONYMOUS = ProfileState(profile=None, loading=False)


class ProfileResolver:
    def __init__(self, gateway: Gateway):
        self.gateway = gateway
        self.state = ProfileState()

    async def resolve(self) -> ProfileState:
        profile = None
        try:
            identity = await self.gateway.current_identity()
            if identity:
                row = await self.gateway.select_one(PROFILES, {"id": identity})
                if row is not None:
                    profile = Profile.model_validate(row)
        except GatewayError as exc:
            logger.warning("profile_fetch_failed", error=str(exc), error_type=type(exc).__name__)

        self.state = ProfileState(profile=profile, loading=False)
        return self.state


async def provision_profile_on_first_login(
    gateway: Gateway,
    email: str,
    admin_emails: list[str] | None = None,
) -> Profile | None:
    """Create the caller's profile row if it does not exist yet.

    Idempotent: an existing row is returned untouched, and a concurrent insert
    losing the race is treated as success. ``role`` is "admin" only for
    addresses listed in ``admin_emails``.
    """
    identity = await gateway.current_identity()
    if not identity:
        return None

    existing = await gateway.select_one(PROFILES, {"id": identity})
    if existing is not None:
        return Profile.model_validate(existing)

    admins = {e.strip().lower() for e in (admin_emails or [])}
    role = "admin" if email and email.strip().lower() in admins else "user"
    try:
        row = await gateway.insert(PROFILES, {"id": identity, "email": email or None, "role": role})
    except GatewayError as exc:
        if exc.code != "23505":
            raise
        row = await gateway.select_one(PROFILES, {"id": identity})
        if row is None:
            raise
    else:
        logger.info("profile_provisioned", user_id=identity, role=role)

    return Profile.model_validate(row)
