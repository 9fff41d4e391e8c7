"""InitiativeDetailController: one initiative with its log entries and team.

Three editable regions share this controller: the initiative metadata (with
the finalize shortcut), the log entries, and the membership list. Each region
has its own FormState so a pending save in one never blocks the others.

Every successful write replaces local state with the row the gateway
returned. Failed writes leave local state and the staged form untouched.
"""

import asyncio
import time
from datetime import date, datetime, timezone
from pathlib import PurePosixPath
from typing import Literal

import structlog

from bitacora.core.exceptions import (
    AlreadyMemberError,
    AuthenticationRequiredError,
    ConfirmationRequiredError,
    InvalidTransitionError,
    NotFoundError,
    OperationInProgressError,
    ProfileNotFoundError,
    UniqueViolationError,
    ValidationError,
)
from bitacora.domain.filters import order_entries
from bitacora.domain.stages import Stage, TransitionPolicy, validate_transition
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES, Gateway
from bitacora.schemas.initiatives import Initiative, InitiativeUpdate
from bitacora.schemas.log_entries import LogEntry, LogEntryForm
from bitacora.schemas.members import MemberView
from bitacora.services.forms import FormState, busy
from bitacora.services.profile_service import ProfileState

logger = structlog.get_logger(__name__)

FINALIZE_PROMPT = "Mark this initiative as '{stage}'? It jumps straight to the final stage."
DELETE_ENTRY_PROMPT = "Delete this log entry?"
REMOVE_MEMBER_PROMPT = "Remove this user from the team?"
MEMBER_ADDED = "User added successfully."


def attachment_path(initiative_id: str, filename: str) -> str:
    """Storage key for an attachment: ``<initiative_id>/<epoch_ms>.<ext>``."""
    suffix = PurePosixPath(filename).suffix.lstrip(".")
    stamp = int(time.time() * 1000)
    return f"{initiative_id}/{stamp}.{suffix}" if suffix else f"{initiative_id}/{stamp}"


def _as_datetime(value: date | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def _edited_fecha(staged: date | None, original: datetime | None) -> datetime | None:
    # The edit form only carries the calendar day; an unchanged day keeps the stored time
    if staged is None or (original is not None and staged == original.date()):
        return original
    return _as_datetime(staged)


class InitiativeDetailController:
    def __init__(
        self,
        gateway: Gateway,
        profile: ProfileState,
        initiative_id: str,
        transition_policy: TransitionPolicy = TransitionPolicy.OPEN,
    ):
        self.gateway = gateway
        self.profile = profile
        self.initiative_id = initiative_id
        self.transition_policy = transition_policy

        self.initiative: Initiative | None = None
        self.entries: tuple[LogEntry, ...] = ()
        self.members: tuple[MemberView, ...] = ()

        # Metadata region
        self.metadata_edit: InitiativeUpdate | None = None
        self.metadata_state = FormState()
        self.finalize_pending = False
        self.finalize_state = FormState()

        # Log entry region
        self.new_entry = LogEntryForm()
        self.entry_state = FormState()
        self.entry_edit_state = FormState()
        self.entry_delete_state = FormState()
        self.upload_state = FormState()
        self.editing_entry_id: str | None = None
        self.entry_edit: LogEntryForm | None = None
        self._upload_task: asyncio.Task | None = None

        # Membership region
        self.member_state = FormState()

        self.closed = False

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> Initiative:
        """Fetch the initiative, its log entries and (for admins) its members.

        Raises:
            NotFoundError: the initiative does not exist
        """
        row = await self.gateway.select_one(INITIATIVES, {"id": self.initiative_id})
        if row is None:
            raise NotFoundError("Initiative not found")
        initiative = Initiative.model_validate(row)

        rows = await self.gateway.select(
            LOG_ENTRIES,
            {"iniciativa_id": self.initiative_id},
            order_by=["fecha", "created_at"],
            descending=True,
        )
        entries = order_entries(LogEntry.model_validate(r) for r in rows)

        if self.closed:
            return initiative
        self.initiative = initiative
        self.entries = entries

        if self.profile.is_admin:
            await self.load_members()
        return initiative

    async def load_members(self) -> tuple[MemberView, ...]:
        rows = await self.gateway.select(
            MEMBERS, {"iniciativa_id": self.initiative_id}, order_by="added_at"
        )
        emails: dict[str, str | None] = {}
        user_ids = [r["user_id"] for r in rows]
        if user_ids:
            profiles = await self.gateway.select(PROFILES, {"id": user_ids})
            emails = {p["id"]: p.get("email") for p in profiles}

        members = tuple(MemberView(**r, email=emails.get(r["user_id"])) for r in rows)
        if not self.closed:
            self.members = members
        return members

    # ------------------------------------------------------------------
    # Metadata edit
    # ------------------------------------------------------------------

    def begin_edit(self) -> InitiativeUpdate:
        """Switch to the edit view with a staged copy of code/name/stage."""
        self.profile.require_admin()
        initiative = self._require_loaded()
        self.metadata_edit = InitiativeUpdate(
            codigo=initiative.codigo, nombre=initiative.nombre, etapa=initiative.etapa
        )
        self.metadata_state.reset()
        return self.metadata_edit

    def stage_edit(self, **changes) -> InitiativeUpdate:
        if self.metadata_edit is None:
            self.begin_edit()
        self.metadata_edit = InitiativeUpdate.model_validate(
            {**self.metadata_edit.model_dump(), **changes}
        )
        return self.metadata_edit

    def cancel_edit(self) -> None:
        self.metadata_edit = None

    async def save_edit(self) -> Initiative:
        """Commit the staged edit with a single update.

        Local state becomes exactly the row the gateway returns.
        """
        self.profile.require_admin()
        current = self._require_loaded()
        staged = self.metadata_edit or self.begin_edit()

        async with busy(self.metadata_state, "save"):
            codigo = staged.codigo.strip()
            nombre = staged.nombre.strip()
            if not codigo:
                raise ValidationError("codigo", "Code is required")
            if not nombre:
                raise ValidationError("nombre", "Name is required")

            result = validate_transition(current.etapa, staged.etapa, self.transition_policy)
            if not result.allowed:
                raise InvalidTransitionError(result.reason)

            updated = await self._update_initiative(
                {"codigo": codigo, "nombre": nombre, "etapa": staged.etapa.value}
            )

        logger.info("initiative_updated", initiative_id=updated.id, etapa=updated.etapa.value)
        if not self.closed:
            self.initiative = updated
            self.metadata_edit = None
        return updated

    # ------------------------------------------------------------------
    # Finalize shortcut (two-step)
    # ------------------------------------------------------------------

    def request_finalize(self) -> str:
        self.profile.require_admin()
        self._require_loaded()
        self.finalize_pending = True
        self.finalize_state.reset()
        return FINALIZE_PROMPT.format(stage=Stage.terminal().value)

    def cancel_finalize(self) -> None:
        if not self.finalize_state.busy:
            self.finalize_pending = False

    async def confirm_finalize(self) -> Initiative:
        """Force the stage to the terminal value, whatever the current stage.

        A privileged shortcut: the transition policy is not consulted.
        """
        self.profile.require_admin()
        current = self._require_loaded()
        if not self.finalize_pending:
            raise ConfirmationRequiredError(FINALIZE_PROMPT.format(stage=Stage.terminal().value))

        async with busy(self.finalize_state, "finalize"):
            updated = await self._update_initiative({"etapa": Stage.terminal().value})

        logger.info(
            "initiative_finalized",
            initiative_id=updated.id,
            from_stage=current.etapa.value,
            to_stage=updated.etapa.value,
        )
        if not self.closed:
            self.initiative = updated
            self.finalize_pending = False
        return updated

    # ------------------------------------------------------------------
    # Log entries
    # ------------------------------------------------------------------

    def stage_new_entry(self, **changes) -> LogEntryForm:
        self.new_entry = LogEntryForm.model_validate({**self.new_entry.model_dump(), **changes})
        return self.new_entry

    def begin_upload(
        self,
        filename: str,
        data: bytes,
        content_type: str | None = None,
        target: Literal["new", "edit"] = "new",
    ) -> asyncio.Task:
        """Start uploading an attachment in the background.

        The URL lands on the target form when the upload finishes. Submitting
        before that does not wait: the entry is saved without an attachment.
        Must be called from a running event loop.
        """
        if self.upload_state.busy:
            raise OperationInProgressError("upload")

        self.upload_state.busy = True
        self.upload_state.reset()
        self._upload_task = asyncio.create_task(self._upload(filename, data, content_type, target))
        return self._upload_task

    async def upload_attachment(self, filename: str, data: bytes, content_type: str | None = None) -> str:
        """Upload an attachment and wait for its URL (no form is touched)."""
        self._require_loaded()
        async with busy(self.upload_state, "upload"):
            identity = await self.gateway.current_identity()
            if not identity:
                raise AuthenticationRequiredError()
            return await self.gateway.upload(
                attachment_path(self.initiative_id, filename), data, content_type
            )

    async def _upload(self, filename: str, data: bytes, content_type: str | None, target: str) -> str | None:
        path = attachment_path(self.initiative_id, filename)
        try:
            url = await self.gateway.upload(path, data, content_type)
        except Exception as exc:
            self.upload_state.error = str(exc) or "Upload failed"
            logger.warning("attachment_upload_failed", initiative_id=self.initiative_id, error=str(exc))
            return None
        finally:
            self.upload_state.busy = False

        if self.closed:
            logger.info("upload_result_discarded", initiative_id=self.initiative_id, path=path)
            return url
        if target == "new":
            self.new_entry = self.new_entry.model_copy(update={"adjunto_url": url})
        elif self.entry_edit is not None:
            self.entry_edit = self.entry_edit.model_copy(update={"adjunto_url": url})
        return url

    async def add_entry(self, form: LogEntryForm | None = None) -> LogEntry:
        """Create a log entry from ``form`` (default: the staged new entry).

        The attachment is whatever URL the form holds at this moment.
        """
        self._require_loaded()
        if form is not None:
            self.new_entry = form
        form = self.new_entry

        async with busy(self.entry_state, "save"):
            descripcion = form.descripcion.strip()
            if not descripcion:
                raise ValidationError("descripcion", "Description is required")

            identity = await self.gateway.current_identity()
            if not identity:
                raise AuthenticationRequiredError()

            fecha = _as_datetime(form.fecha) or datetime.now(timezone.utc)
            row = await self.gateway.insert(
                LOG_ENTRIES,
                {
                    "iniciativa_id": self.initiative_id,
                    "fecha": fecha,
                    "descripcion": descripcion,
                    "adjunto_url": form.adjunto_url,
                },
            )
            entry = LogEntry.model_validate(row)

        logger.info(
            "log_entry_created",
            initiative_id=self.initiative_id,
            entry_id=entry.id,
            has_attachment=entry.adjunto_url is not None,
        )
        if not self.closed:
            self.entries = order_entries((entry, *self.entries))
            self.new_entry = LogEntryForm()
        return entry

    def start_entry_edit(self, entry_id: str) -> LogEntryForm:
        self.profile.require_admin()
        entry = self._find_entry(entry_id)
        self.editing_entry_id = entry.id
        self.entry_edit = LogEntryForm(
            fecha=entry.fecha.date() if entry.fecha else datetime.now(timezone.utc).date(),
            descripcion=entry.descripcion,
            adjunto_url=entry.adjunto_url,
        )
        return self.entry_edit

    def stage_entry_edit(self, **changes) -> LogEntryForm:
        if self.entry_edit is None:
            raise ValidationError("entry", "No log entry is being edited")
        self.entry_edit = LogEntryForm.model_validate({**self.entry_edit.model_dump(), **changes})
        return self.entry_edit

    def cancel_entry_edit(self) -> None:
        self.editing_entry_id = None
        self.entry_edit = None

    async def save_entry_edit(self) -> LogEntry:
        self.profile.require_admin()
        if self.editing_entry_id is None or self.entry_edit is None:
            raise ValidationError("entry", "No log entry is being edited")
        entry_id = self.editing_entry_id
        form = self.entry_edit
        original = self._find_entry(entry_id)

        async with busy(self.entry_edit_state, "save"):
            descripcion = form.descripcion.strip()
            if not descripcion:
                raise ValidationError("descripcion", "Description is required")

            rows = await self.gateway.update(
                LOG_ENTRIES,
                {"id": entry_id},
                {
                    "fecha": _edited_fecha(form.fecha, original.fecha),
                    "descripcion": descripcion,
                    "adjunto_url": form.adjunto_url,
                },
            )
            if not rows:
                raise NotFoundError("Log entry not found")
            updated = LogEntry.model_validate(rows[0])

        logger.info("log_entry_updated", initiative_id=self.initiative_id, entry_id=entry_id)
        if not self.closed:
            self.entries = order_entries(updated if e.id == entry_id else e for e in self.entries)
            self.cancel_entry_edit()
        return updated

    async def delete_entry(self, entry_id: str, confirmed: bool = False) -> None:
        self.profile.require_admin()
        self._find_entry(entry_id)
        if not confirmed:
            raise ConfirmationRequiredError(DELETE_ENTRY_PROMPT)

        async with busy(self.entry_delete_state, "delete"):
            await self.gateway.delete(LOG_ENTRIES, {"id": entry_id})

        logger.info("log_entry_deleted", initiative_id=self.initiative_id, entry_id=entry_id)
        if not self.closed:
            self.entries = tuple(e for e in self.entries if e.id != entry_id)
            if self.editing_entry_id == entry_id:
                self.cancel_entry_edit()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def invite(self, email: str) -> MemberView:
        """Add the profile registered under ``email`` to the team.

        Raises:
            ValidationError: blank email (no call issued)
            ProfileNotFoundError: no profile with that email (no row created)
            AlreadyMemberError: the user is already on the team
        """
        self.profile.require_admin()
        self._require_loaded()
        email = (email or "").strip()

        async with busy(self.member_state, "invite"):
            if not email:
                raise ValidationError("email", "Email is required")

            profile_row = await self.gateway.select_one(PROFILES, {"email": email})
            if profile_row is None:
                raise ProfileNotFoundError(email)

            try:
                row = await self.gateway.insert(
                    MEMBERS, {"iniciativa_id": self.initiative_id, "user_id": profile_row["id"]}
                )
            except UniqueViolationError as exc:
                raise AlreadyMemberError(email) from exc
            member = MemberView(**row, email=profile_row.get("email"))

        logger.info("member_invited", initiative_id=self.initiative_id, user_id=member.user_id)
        if not self.closed:
            self.members = (*self.members, member)
            self.member_state.message = MEMBER_ADDED
        return member

    async def remove_member(self, member_id: str, confirmed: bool = False) -> None:
        self.profile.require_admin()
        if not confirmed:
            raise ConfirmationRequiredError(REMOVE_MEMBER_PROMPT)

        async with busy(self.member_state, "remove"):
            removed = await self.gateway.delete(
                MEMBERS, {"id": member_id, "iniciativa_id": self.initiative_id}
            )
            if removed == 0:
                raise NotFoundError("Member not found")

        logger.info("member_removed", initiative_id=self.initiative_id, member_id=member_id)
        if not self.closed:
            self.members = tuple(m for m in self.members if m.id != member_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Detach the view. In-flight calls finish but their results are discarded."""
        self.closed = True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_loaded(self) -> Initiative:
        if self.initiative is None:
            raise NotFoundError("Initiative not loaded")
        return self.initiative

    def _find_entry(self, entry_id: str) -> LogEntry:
        entry = next((e for e in self.entries if e.id == entry_id), None)
        if entry is None:
            raise NotFoundError("Log entry not found")
        return entry

    async def _update_initiative(self, values: dict) -> Initiative:
        rows = await self.gateway.update(INITIATIVES, {"id": self.initiative_id}, values)
        if not rows:
            raise NotFoundError("Initiative not found")
        return Initiative.model_validate(rows[0])
