"""API-specific test fixtures.

The app runs on the in-memory gateway; each test gets a fresh application
(and so a fresh store). Tokens are HS256 session JWTs signed with the
secret set in the top-level conftest.
"""

import time

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient

from bitacora.core.config import get_settings
from bitacora.domain.stages import Stage
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES


def _make_token(sub: str, email: str = "", **overrides) -> str:
    settings = get_settings()
    payload = {
        "sub": sub,
        "email": email,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **overrides,
    }
    return pyjwt.encode(payload, settings.auth_jwt_secret, algorithm="HS256")


def auth_headers(sub: str, email: str = "") -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(sub, email)}"}


@pytest.fixture
def make_token():
    """Factory for signed session tokens: ``make_token(sub, email, **claims)``."""
    return _make_token


@pytest.fixture
def app():
    from bitacora.main import create_app

    return create_app()


@pytest.fixture
def api_client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def api_store(app):
    return app.state.memory_store


@pytest.fixture
def admin_headers() -> dict[str, str]:
    # admin@example.com is listed in ADMIN_EMAILS, so first login provisions an admin
    return auth_headers("api-admin", "admin@example.com")


@pytest.fixture
def user_headers() -> dict[str, str]:
    return auth_headers("api-user", "user@example.com")


@pytest.fixture
def api_initiative(api_store) -> dict:
    """Stage-1 initiative with one log entry and the plain user as a member."""
    api_store.seed(PROFILES, id="api-user", email="user@example.com", role="user")
    api_store.seed(PROFILES, id="api-other", email="other@example.com", role="user")
    initiative = api_store.seed(
        INITIATIVES,
        codigo="PRJ-1",
        nombre="Digital onboarding",
        etapa=Stage.IDENTIFICATION.value,
        owner_id="api-user",
    )
    api_store.seed(LOG_ENTRIES, iniciativa_id=initiative["id"], descripcion="Kickoff")
    api_store.seed(MEMBERS, iniciativa_id=initiative["id"], user_id="api-user")
    return initiative
