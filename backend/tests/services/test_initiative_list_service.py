"""Tests for InitiativeListController: load, filter, create, two-step delete."""
from datetime import datetime, timedelta, timezone

import pytest

from bitacora.core.exceptions import (
    AuthenticationRequiredError,
    ConfirmationRequiredError,
    GatewayError,
    NotFoundError,
    OperationInProgressError,
    PermissionDeniedError,
    UniqueViolationError,
    ValidationError,
)
from bitacora.domain.stages import ALL_STAGES, Stage
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS
from bitacora.schemas.initiatives import InitiativeCreate
from bitacora.services.initiative_detail_service import InitiativeDetailController
from bitacora.services.initiative_list_service import InitiativeListController

pytestmark = pytest.mark.unit


@pytest.fixture
async def admin_list(admin_gateway, admin_profile, seeded_initiative):
    controller = InitiativeListController(admin_gateway, admin_profile)
    await controller.load()
    return controller


class TestLoad:
    async def test_loads_newest_first(self, store, admin_gateway, admin_profile, seeded_initiative):
        store.seed(
            INITIATIVES,
            codigo="NEW-1",
            nombre="Newer",
            owner_id="x",
            created_at=datetime.now(timezone.utc) + timedelta(days=1),
        )
        controller = InitiativeListController(admin_gateway, admin_profile)
        items = await controller.load()

        assert [i.codigo for i in items] == ["NEW-1", "PRJ-1"]
        assert controller.load_error is None

    async def test_absent_stage_reads_as_first_stage(self, store, admin_gateway, admin_profile):
        store.seed(INITIATIVES, codigo="OLD-1", nombre="Legacy", etapa=None, owner_id="x")
        controller = InitiativeListController(admin_gateway, admin_profile)
        await controller.load()
        assert controller.items[0].etapa == Stage.IDENTIFICATION

    async def test_failure_yields_empty_list(self, store, admin_gateway, admin_profile, seeded_initiative):
        store.fail_next(INITIATIVES, "select")
        controller = InitiativeListController(admin_gateway, admin_profile)

        assert await controller.load() == ()
        assert controller.items == ()
        assert controller.load_error

    async def test_result_after_close_is_discarded(self, admin_gateway, admin_profile, seeded_initiative):
        controller = InitiativeListController(admin_gateway, admin_profile)
        controller.close()
        await controller.load()
        assert controller.items == ()


class TestFilters:
    async def test_stage_filter(self, store, admin_list):
        store.seed(INITIATIVES, codigo="OPS-1", nombre="Robots", etapa=Stage.PILOT.value, owner_id="x")
        await admin_list.load()

        result = admin_list.set_stage_filter(Stage.PILOT.value)
        assert [i.codigo for i in result] == ["OPS-1"]

        assert len(admin_list.set_stage_filter(ALL_STAGES)) == 2

    async def test_search_does_not_hit_gateway(self, store, admin_list):
        selects = store.count_calls("select", INITIATIVES)
        assert [i.codigo for i in admin_list.set_search("onboard")] == ["PRJ-1"]
        assert admin_list.set_search("zzz") == []
        assert store.count_calls("select", INITIATIVES) == selects

    async def test_unknown_stage_rejected(self, admin_list):
        with pytest.raises(ValueError):
            admin_list.set_stage_filter("Archived")
        assert admin_list.stage_filter == ALL_STAGES

    async def test_stats(self, store, admin_list):
        store.seed(INITIATIVES, codigo="DONE-1", nombre="Done", etapa=Stage.SCALE.value, owner_id="x")
        await admin_list.load()
        stats = admin_list.stats()
        assert (stats.total, stats.in_progress, stats.finalized) == (2, 1, 1)


class TestCreate:
    async def test_normalizes_and_prepends(self, user_gateway, user_profile, seeded_initiative):
        controller = InitiativeListController(user_gateway, user_profile)
        await controller.load()
        controller.open_create()

        created = await controller.create(InitiativeCreate(codigo="  prj-9 ", nombre="  Data lake  "))

        assert created.codigo == "PRJ-9"
        assert created.nombre == "Data lake"
        assert created.owner_id == "plain-user-001"
        assert created.etapa == Stage.IDENTIFICATION
        assert controller.items[0].id == created.id
        assert controller.create_form is None
        assert controller.create_state.busy is False

    async def test_blank_code_rejected_without_insert(self, store, admin_list):
        with pytest.raises(ValidationError) as exc_info:
            await admin_list.create(InitiativeCreate(codigo="   ", nombre="Name"))

        assert exc_info.value.field == "codigo"
        assert store.count_calls("insert", INITIATIVES) == 0
        assert admin_list.create_state.error == "Code is required"
        assert admin_list.create_form.nombre == "Name"

    async def test_blank_name_rejected(self, store, admin_list):
        with pytest.raises(ValidationError):
            await admin_list.create(InitiativeCreate(codigo="X-1", nombre=""))
        assert store.count_calls("insert", INITIATIVES) == 0

    async def test_requires_identity(self, store, anonymous_gateway, admin_profile):
        controller = InitiativeListController(anonymous_gateway, admin_profile)
        with pytest.raises(AuthenticationRequiredError):
            await controller.create(InitiativeCreate(codigo="X-1", nombre="Name"))
        assert store.count_calls("insert", INITIATIVES) == 0

    async def test_duplicate_code_keeps_form_open(self, admin_list):
        before = admin_list.items
        with pytest.raises(UniqueViolationError):
            await admin_list.create(InitiativeCreate(codigo="prj-1", nombre="Again"))

        assert admin_list.items == before
        assert admin_list.create_form.codigo == "prj-1"
        assert admin_list.create_state.error
        assert admin_list.create_state.busy is False

    async def test_second_submit_while_busy_refused(self, admin_list):
        admin_list.create_state.busy = True
        with pytest.raises(OperationInProgressError):
            await admin_list.create(InitiativeCreate(codigo="X-1", nombre="Name"))


class TestDelete:
    async def test_two_step_delete_cascades(self, store, admin_list, seeded_initiative, admin_gateway, admin_profile):
        initiative_id = seeded_initiative["id"]

        prompt = admin_list.request_delete(initiative_id)
        assert "Digital onboarding" in prompt
        assert store.count_calls("delete") == 0

        await admin_list.confirm_delete()

        assert admin_list.items == ()
        assert admin_list.pending_delete is None
        assert [r for r in store.tables[LOG_ENTRIES] if r["iniciativa_id"] == initiative_id] == []
        assert [r for r in store.tables[MEMBERS] if r["iniciativa_id"] == initiative_id] == []

        detail = InitiativeDetailController(admin_gateway, admin_profile, initiative_id)
        with pytest.raises(NotFoundError):
            await detail.load()
        rows = await admin_gateway.select(LOG_ENTRIES, {"iniciativa_id": initiative_id})
        assert rows == []

    async def test_cancel_clears_pending(self, store, admin_list, seeded_initiative):
        admin_list.request_delete(seeded_initiative["id"])
        admin_list.cancel_delete()
        assert admin_list.pending_delete is None
        with pytest.raises(ConfirmationRequiredError):
            await admin_list.confirm_delete()
        assert store.count_calls("delete") == 0

    async def test_failed_delete_leaves_list_unchanged(self, store, admin_list, seeded_initiative):
        before = admin_list.items
        admin_list.request_delete(seeded_initiative["id"])
        store.fail_next(INITIATIVES, "delete")

        with pytest.raises(GatewayError):
            await admin_list.confirm_delete()

        assert admin_list.items == before
        assert admin_list.pending_delete is not None
        assert admin_list.delete_state.error
        assert admin_list.delete_state.busy is False

    async def test_failure_on_first_step_stops_cascade(self, store, admin_list, seeded_initiative):
        admin_list.request_delete(seeded_initiative["id"])
        store.fail_next(LOG_ENTRIES, "delete")

        with pytest.raises(GatewayError):
            await admin_list.confirm_delete()

        assert store.count_calls("delete", MEMBERS) == 0
        assert store.count_calls("delete", INITIATIVES) == 0

    async def test_non_admin_cannot_request(self, user_gateway, user_profile, seeded_initiative):
        controller = InitiativeListController(user_gateway, user_profile)
        await controller.load()
        with pytest.raises(PermissionDeniedError):
            controller.request_delete(seeded_initiative["id"])

    async def test_unknown_id(self, admin_list):
        with pytest.raises(NotFoundError):
            admin_list.request_delete("missing")
