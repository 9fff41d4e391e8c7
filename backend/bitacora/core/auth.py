"""Session JWT authentication for FastAPI.

Tokens are issued by the external auth provider and signed with a shared
HS256 secret. Only verification happens here.
"""

from dataclasses import dataclass

import jwt as pyjwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bitacora.core.config import get_settings

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionUser:
    """Authenticated identity extracted from a session JWT."""

    user_id: str
    email: str
    claims: dict


def decode_session_jwt(token: str) -> SessionUser:
    """Verify and decode a session JWT.

    Raises ``HTTPException(401)`` on any validation failure.
    """
    settings = get_settings()
    if not settings.auth_jwt_secret:
        raise HTTPException(status_code=500, detail="Authentication is misconfigured")

    options = {
        "verify_exp": True,
        "require": ["sub", "exp"],
    }
    try:
        payload = pyjwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=["HS256"],
            audience=settings.auth_jwt_audience or None,
            issuer=settings.auth_jwt_issuer or None,
            options=options,
        )
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except pyjwt.MissingRequiredClaimError as exc:
        raise HTTPException(status_code=401, detail=f"Missing required claim: {exc}")
    except pyjwt.InvalidAudienceError:
        raise HTTPException(status_code=401, detail="Unauthorized audience (aud mismatch)")
    except pyjwt.InvalidIssuerError:
        raise HTTPException(status_code=401, detail="Invalid issuer (iss mismatch)")
    except pyjwt.InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid token: {exc}")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub claim")

    return SessionUser(user_id=sub, email=payload.get("email") or "", claims=payload)


async def get_session_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> SessionUser | None:
    """FastAPI dependency returning the session identity, or None without a token.

    An invalid token is still a 401; only a missing header resolves to None.
    """
    if credentials is None:
        return None

    user = decode_session_jwt(credentials.credentials)

    # Set user_id on request state for downstream use (error handlers, logging)
    request.state.user_id = user.user_id
    return user


async def require_auth(user: SessionUser | None = Depends(get_session_user)) -> SessionUser:
    """FastAPI dependency that requires a valid session JWT.

    Usage::

        @router.get("/protected")
        async def protected(user: SessionUser = Depends(require_auth)):
            ...
    """
    if user is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    return user
