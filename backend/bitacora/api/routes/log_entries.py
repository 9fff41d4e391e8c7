"""Log entry and attachment routes for one initiative."""

from fastapi import APIRouter, Depends, Request

from bitacora.api.deps import get_detail_controller
from bitacora.core.auth import SessionUser, require_auth
from bitacora.core.exceptions import ValidationError
from bitacora.schemas.log_entries import AttachmentResponse, LogEntry, LogEntryForm
from bitacora.services.initiative_detail_service import InitiativeDetailController

router = APIRouter()


@router.get("/{initiative_id}/entries", response_model=list[LogEntry])
async def list_entries(
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Log entries, newest first."""
    return list(controller.entries)


@router.post("/{initiative_id}/attachments", response_model=AttachmentResponse, status_code=201)
async def upload_attachment(
    request: Request,
    filename: str,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Upload the raw request body as an attachment and return its public URL.

    The URL is attached to an entry only when the client sends it along with
    the entry.
    """
    data = await request.body()
    if not data:
        raise ValidationError("file", "File is empty")

    url = await controller.upload_attachment(filename, data, request.headers.get("content-type"))
    return AttachmentResponse(adjunto_url=url)


@router.post("/{initiative_id}/entries", response_model=LogEntry, status_code=201)
async def create_entry(
    request: LogEntryForm,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Add a log entry. A missing ``fecha`` means now."""
    return await controller.add_entry(request)


@router.patch("/{initiative_id}/entries/{entry_id}", response_model=LogEntry)
async def update_entry(
    entry_id: str,
    request: LogEntryForm,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Edit a log entry (admin only). Fields left out keep their value."""
    controller.start_entry_edit(entry_id)
    controller.stage_entry_edit(**request.model_dump(exclude_unset=True))
    return await controller.save_entry_edit()


@router.delete("/{initiative_id}/entries/{entry_id}")
async def delete_entry(
    entry_id: str,
    confirm: bool = False,
    user: SessionUser = Depends(require_auth),
    controller: InitiativeDetailController = Depends(get_detail_controller),
):
    """Delete a log entry (admin only, needs ``confirm=true``)."""
    await controller.delete_entry(entry_id, confirmed=confirm)
    return {"status": "deleted", "id": entry_id}
