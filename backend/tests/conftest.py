"""Shared test fixtures for all test groups."""

import os

# Settings are read once per process; the API tests need the in-memory
# gateway and a known signing secret before bitacora.main is imported.
os.environ.setdefault("GATEWAY_BACKEND", "memory")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-with-at-least-32-bytes!!")
os.environ.setdefault("ADMIN_EMAILS", '["admin@example.com"]')
os.environ.setdefault("DEBUG", "false")

import pytest

from bitacora.domain.stages import Stage
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES
from bitacora.gateway.memory import InMemoryGateway, InMemoryStore
from bitacora.gateway.storage import InMemoryObjectStorage
from bitacora.schemas.profiles import Profile
from bitacora.services.profile_service import ProfileState

ADMIN_ID = "admin-user-001"
USER_ID = "plain-user-001"
OTHER_ID = "plain-user-002"


@pytest.fixture
def store() -> InMemoryStore:
    """Fresh store seeded with an admin, two plain users and nothing else."""
    s = InMemoryStore()
    s.seed(PROFILES, id=ADMIN_ID, email="admin@example.com", role="admin")
    s.seed(PROFILES, id=USER_ID, email="user@example.com", role="user")
    s.seed(PROFILES, id=OTHER_ID, email="other@example.com", role="user")
    return s


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def admin_gateway(store, storage) -> InMemoryGateway:
    return InMemoryGateway(store, identity=ADMIN_ID, storage=storage)


@pytest.fixture
def user_gateway(store, storage) -> InMemoryGateway:
    return InMemoryGateway(store, identity=USER_ID, storage=storage)


@pytest.fixture
def anonymous_gateway(store, storage) -> InMemoryGateway:
    return InMemoryGateway(store, identity=None, storage=storage)


@pytest.fixture
def admin_profile() -> ProfileState:
    return ProfileState(
        profile=Profile(id=ADMIN_ID, email="admin@example.com", role="admin"), loading=False
    )


@pytest.fixture
def user_profile() -> ProfileState:
    return ProfileState(
        profile=Profile(id=USER_ID, email="user@example.com", role="user"), loading=False
    )


@pytest.fixture
def seeded_initiative(store) -> dict:
    """One stage-1 initiative with two log entries and one member."""
    initiative = store.seed(
        INITIATIVES,
        codigo="PRJ-1",
        nombre="Digital onboarding",
        etapa=Stage.IDENTIFICATION.value,
        owner_id=ADMIN_ID,
    )
    store.seed(LOG_ENTRIES, iniciativa_id=initiative["id"], descripcion="Kickoff")
    store.seed(LOG_ENTRIES, iniciativa_id=initiative["id"], descripcion="First review")
    store.seed(MEMBERS, iniciativa_id=initiative["id"], user_id=USER_ID)
    return initiative
