"""Tests for InMemoryGateway: filters, ordering, uniqueness and write policies."""
from datetime import datetime, timedelta, timezone

import pytest

from bitacora.core.exceptions import GatewayError, PolicyViolationError, UniqueViolationError
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES, Gateway
from bitacora.gateway.memory import InMemoryGateway

pytestmark = pytest.mark.unit


def test_satisfies_gateway_protocol(admin_gateway):
    assert isinstance(admin_gateway, Gateway)


class TestReads:
    async def test_list_filter_means_any_of(self, admin_gateway):
        rows = await admin_gateway.select(PROFILES, {"id": ["admin-user-001", "plain-user-002"]})
        assert {r["email"] for r in rows} == {"admin@example.com", "other@example.com"}

    async def test_ordering(self, store, admin_gateway):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for n in (2, 0, 1):
            store.seed(LOG_ENTRIES, iniciativa_id="i", descripcion=str(n), fecha=base + timedelta(days=n))

        rows = await admin_gateway.select(LOG_ENTRIES, {"iniciativa_id": "i"}, order_by="fecha", descending=True)
        assert [r["descripcion"] for r in rows] == ["2", "1", "0"]

    async def test_ordering_on_several_columns(self, store, admin_gateway):
        day = datetime(2030, 1, 1, tzinfo=timezone.utc)
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        store.seed(LOG_ENTRIES, iniciativa_id="i", descripcion="older", fecha=day, created_at=created)
        store.seed(LOG_ENTRIES, iniciativa_id="i", descripcion="latest", fecha=day + timedelta(days=1))
        store.seed(
            LOG_ENTRIES, iniciativa_id="i", descripcion="newer", fecha=day, created_at=created + timedelta(hours=1)
        )

        rows = await admin_gateway.select(
            LOG_ENTRIES, {"iniciativa_id": "i"}, order_by=["fecha", "created_at"], descending=True
        )
        assert [r["descripcion"] for r in rows] == ["latest", "newer", "older"]

    async def test_select_one_returns_none(self, admin_gateway):
        assert await admin_gateway.select_one(PROFILES, {"email": "ghost@example.com"}) is None

    async def test_rows_are_copies(self, store, admin_gateway):
        row = await admin_gateway.select_one(PROFILES, {"id": "admin-user-001"})
        row["role"] = "user"
        assert (await admin_gateway.select_one(PROFILES, {"id": "admin-user-001"}))["role"] == "admin"

    async def test_anonymous_reads_rejected(self, anonymous_gateway):
        with pytest.raises(PolicyViolationError):
            await anonymous_gateway.select(INITIATIVES)

    async def test_unknown_table(self, admin_gateway):
        with pytest.raises(GatewayError) as exc_info:
            await admin_gateway.select("nope")
        assert exc_info.value.code == "42P01"


class TestWritePolicies:
    async def test_insert_initiative_must_own_it(self, user_gateway):
        with pytest.raises(PolicyViolationError):
            await user_gateway.insert(INITIATIVES, {"codigo": "X", "nombre": "X", "owner_id": "someone-else"})

        row = await user_gateway.insert(INITIATIVES, {"codigo": "X", "nombre": "X", "owner_id": "plain-user-001"})
        assert row["created_at"] is not None

    async def test_plain_user_cannot_update_or_delete_initiatives(self, user_gateway, seeded_initiative):
        with pytest.raises(PolicyViolationError) as exc_info:
            await user_gateway.update(INITIATIVES, {"id": seeded_initiative["id"]}, {"nombre": "X"})
        assert exc_info.value.code == "42501"
        with pytest.raises(PolicyViolationError):
            await user_gateway.delete(INITIATIVES, {"id": seeded_initiative["id"]})

    async def test_plain_user_can_add_log_entries(self, user_gateway, seeded_initiative):
        row = await user_gateway.insert(LOG_ENTRIES, {"iniciativa_id": seeded_initiative["id"], "descripcion": "ok"})
        assert row["fecha"] is not None

    async def test_memberships_are_admin_only(self, user_gateway, admin_gateway, seeded_initiative):
        values = {"iniciativa_id": seeded_initiative["id"], "user_id": "plain-user-002"}
        with pytest.raises(PolicyViolationError):
            await user_gateway.insert(MEMBERS, values)
        assert (await admin_gateway.insert(MEMBERS, values))["user_id"] == "plain-user-002"

    async def test_profiles_only_self_insert(self, store):
        gateway = InMemoryGateway(store, identity="new-user")
        with pytest.raises(PolicyViolationError):
            await gateway.insert(PROFILES, {"id": "someone-else", "email": "x@example.com"})
        await gateway.insert(PROFILES, {"id": "new-user", "email": "new@example.com"})

    async def test_unregistered_write_denied(self, admin_gateway, seeded_initiative):
        with pytest.raises(PolicyViolationError):
            await admin_gateway.update(MEMBERS, {"iniciativa_id": seeded_initiative["id"]}, {"user_id": "x"})

    async def test_anonymous_upload_rejected(self, anonymous_gateway):
        with pytest.raises(PolicyViolationError):
            await anonymous_gateway.upload("a/b.pdf", b"x")


class TestUniqueness:
    async def test_duplicate_membership(self, admin_gateway, seeded_initiative):
        with pytest.raises(UniqueViolationError) as exc_info:
            await admin_gateway.insert(
                MEMBERS, {"iniciativa_id": seeded_initiative["id"], "user_id": "plain-user-001"}
            )
        assert exc_info.value.code == "23505"

    async def test_failed_update_changes_nothing(self, store, admin_gateway, seeded_initiative):
        store.seed(INITIATIVES, codigo="PRJ-2", nombre="Other", owner_id="x")
        with pytest.raises(UniqueViolationError):
            await admin_gateway.update(INITIATIVES, {}, {"codigo": "SAME"})
        assert {r["codigo"] for r in store.tables[INITIATIVES]} == {"PRJ-1", "PRJ-2"}


class TestFailureInjection:
    async def test_fail_next_is_one_shot(self, store, admin_gateway):
        store.fail_next(PROFILES, "select")
        with pytest.raises(GatewayError):
            await admin_gateway.select(PROFILES)
        assert len(await admin_gateway.select(PROFILES)) == 3

    async def test_calls_are_recorded(self, store, admin_gateway):
        await admin_gateway.select(PROFILES)
        await admin_gateway.delete(LOG_ENTRIES, {"iniciativa_id": "none"})
        assert store.count_calls("select", PROFILES) == 1
        assert store.count_calls("delete") == 1
