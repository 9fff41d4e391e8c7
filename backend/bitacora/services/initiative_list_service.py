"""InitiativeListController: owns the in-memory initiative collection.

Loads every initiative once, then filters and searches locally. Writes merge
the row returned by the gateway into the collection instead of re-fetching.
The collection is a tuple that is replaced, never mutated in place.
"""

import structlog

from bitacora.core.exceptions import (
    AuthenticationRequiredError,
    ConfirmationRequiredError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from bitacora.domain.filters import InitiativeStats, compute_stats, filter_initiatives
from bitacora.domain.stages import ALL_STAGES, Stage
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, Gateway
from bitacora.schemas.initiatives import Initiative, InitiativeCreate
from bitacora.services.forms import FormState, busy
from bitacora.services.profile_service import ProfileState

logger = structlog.get_logger(__name__)


async def delete_initiative_cascade(gateway: Gateway, initiative_id: str) -> None:
    """Delete an initiative with everything lifetime-bound to it.

    Order: log entries, memberships, then the initiative row. The first
    failing step raises and the remaining steps are not attempted.
    """
    entries = await gateway.delete(LOG_ENTRIES, {"iniciativa_id": initiative_id})
    members = await gateway.delete(MEMBERS, {"iniciativa_id": initiative_id})
    removed = await gateway.delete(INITIATIVES, {"id": initiative_id})
    if removed == 0:
        raise NotFoundError("Initiative not found")

    logger.info(
        "initiative_deleted",
        initiative_id=initiative_id,
        log_entries_deleted=entries,
        members_deleted=members,
    )


class InitiativeListController:
    def __init__(self, gateway: Gateway, profile: ProfileState):
        self.gateway = gateway
        self.profile = profile

        self.items: tuple[Initiative, ...] = ()
        self.load_error: str | None = None
        self.search = ""
        self.stage_filter: str = ALL_STAGES

        self.create_form: InitiativeCreate | None = None
        self.create_state = FormState()

        self.pending_delete: Initiative | None = None
        self.delete_state = FormState()

        self.closed = False

    # ------------------------------------------------------------------
    # Load / filter
    # ------------------------------------------------------------------

    async def load(self) -> tuple[Initiative, ...]:
        """Fetch all initiatives, newest first. A failure yields an empty list."""
        try:
            rows = await self.gateway.select(INITIATIVES, order_by="created_at", descending=True)
            items = tuple(Initiative.model_validate(row) for row in rows)
            self.load_error = None
        except GatewayError as exc:
            logger.warning("initiatives_load_failed", error=str(exc))
            items = ()
            self.load_error = str(exc)

        if not self.closed:
            self.items = items
        return items

    def set_search(self, text: str) -> list[Initiative]:
        self.search = text or ""
        return self.filtered

    def set_stage_filter(self, stage: str | Stage) -> list[Initiative]:
        value = stage.value if isinstance(stage, Stage) else (stage or ALL_STAGES)
        if value != ALL_STAGES:
            value = Stage(value).value
        self.stage_filter = value
        return self.filtered

    @property
    def filtered(self) -> list[Initiative]:
        return filter_initiatives(self.items, self.search, self.stage_filter)

    def stats(self) -> InitiativeStats:
        return compute_stats(self.items)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def open_create(self) -> InitiativeCreate:
        self.create_form = InitiativeCreate()
        self.create_state.reset()
        return self.create_form

    def close_create(self) -> None:
        self.create_form = None

    async def create(self, form: InitiativeCreate | None = None) -> Initiative:
        """Submit the create form and prepend the stored initiative.

        The code is trimmed and uppercased, the name trimmed. On failure the
        form stays open with its contents so it can be corrected.
        """
        if form is not None:
            self.create_form = form
        form = self.create_form or InitiativeCreate()

        codigo = form.codigo.strip().upper()
        nombre = form.nombre.strip()

        async with busy(self.create_state, "create"):
            if not codigo:
                raise ValidationError("codigo", "Code is required")
            if not nombre:
                raise ValidationError("nombre", "Name is required")

            identity = await self.gateway.current_identity()
            if not identity:
                raise AuthenticationRequiredError()

            row = await self.gateway.insert(
                INITIATIVES,
                {"codigo": codigo, "nombre": nombre, "etapa": form.etapa.value, "owner_id": identity},
            )
            initiative = Initiative.model_validate(row)

        logger.info("initiative_created", initiative_id=initiative.id, codigo=initiative.codigo)
        if self.closed:
            return initiative

        self.items = (initiative, *self.items)
        self.create_form = None
        return initiative

    # ------------------------------------------------------------------
    # Delete (two-step)
    # ------------------------------------------------------------------

    def request_delete(self, initiative_id: str) -> str:
        """First step: remember the target and return the confirmation prompt."""
        self.profile.require_admin()
        target = next((i for i in self.items if i.id == initiative_id), None)
        if target is None:
            raise NotFoundError("Initiative not found")

        self.pending_delete = target
        self.delete_state.reset()
        return self.delete_prompt(target)

    @staticmethod
    def delete_prompt(target: Initiative) -> str:
        return (
            f"Delete initiative '{target.nombre}' ({target.codigo})? "
            "All of its log entries and memberships will be deleted too."
        )

    def cancel_delete(self) -> None:
        if not self.delete_state.busy:
            self.pending_delete = None

    async def confirm_delete(self) -> Initiative:
        """Second step: run the cascade, then drop the row locally.

        On failure the error is recorded, the row stays in the list and the
        dialog stays open for another attempt.
        """
        self.profile.require_admin()
        target = self.pending_delete
        if target is None:
            raise ConfirmationRequiredError("No deletion is awaiting confirmation")

        try:
            async with busy(self.delete_state, "delete"):
                await delete_initiative_cascade(self.gateway, target.id)
        except GatewayError as exc:
            logger.warning("initiative_delete_failed", initiative_id=target.id, error=str(exc))
            raise

        if not self.closed:
            self.items = tuple(i for i in self.items if i.id != target.id)
            self.pending_delete = None
        return target

    def close(self) -> None:
        """Detach the view. Results of calls still in flight are discarded."""
        self.closed = True
