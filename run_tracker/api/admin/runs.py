"""Admin run management endpoints.

Edits and deletes bypass admission checks; admins may override the daily caps.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from loguru import logger

from run_tracker.api.dependencies.auth import get_admin_token, require_admin
from run_tracker.api.dependencies.services import get_admin_run_service, get_ledger
from run_tracker.api.schemas import StatusUpdateRequest
from run_tracker.core.auth_jwt import AdminPrincipal
from run_tracker.errors import AdminAuthorizationError, EntryNotFoundError, LedgerConflictError, StoreUnavailableError
from run_tracker.roster.identifiers import normalize_service_number
from run_tracker.runs.admin import AdminRunService
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.types import EntryUpdate, ReviewStatus, RunEntryView

router = APIRouter(prefix="/admin/runs", tags=["admin"])


def _to_http(e: Exception) -> HTTPException:
    if isinstance(e, AdminAuthorizationError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e), headers={"WWW-Authenticate": "Bearer"})
    if isinstance(e, EntryNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, LedgerConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Change conflicts with another entry ({e.constraint})")
    if isinstance(e, StoreUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Run service temporarily unavailable")
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("", response_model=list[RunEntryView])
def list_runs(
    service_number: str | None = Query(default=None),
    run_date: date | None = Query(default=None, alias="date"),
    review_status: ReviewStatus | None = Query(default=None, alias="status"),
    admin: AdminPrincipal = Depends(require_admin),
    ledger: RunLedger = Depends(get_ledger),
):
    """List runs for review, filtered by submitter, day and review status."""
    logger.debug(f"[ADMIN] Run listing by {admin.service_number}")
    submitter_id = normalize_service_number(service_number) if service_number else None
    return ledger.list_entries(submitter_id=submitter_id, run_date=run_date, status=review_status)


@router.put("/{entry_id}", response_model=RunEntryView)
def update_run(
    entry_id: str,
    changes: EntryUpdate,
    token: str = Depends(get_admin_token),
    service: AdminRunService = Depends(get_admin_run_service),
):
    """Overwrite an entry's fields. Caps are not re-checked."""
    try:
        return service.update_entry(token, entry_id, changes)
    except (AdminAuthorizationError, EntryNotFoundError, LedgerConflictError, StoreUnavailableError, ValueError) as e:
        raise _to_http(e) from e


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_run(
    entry_id: str,
    token: str = Depends(get_admin_token),
    service: AdminRunService = Depends(get_admin_run_service),
):
    try:
        service.delete_entry(token, entry_id)
    except (AdminAuthorizationError, EntryNotFoundError, StoreUnavailableError) as e:
        raise _to_http(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{entry_id}/status", response_model=RunEntryView)
def set_run_status(
    entry_id: str,
    request: StatusUpdateRequest,
    token: str = Depends(get_admin_token),
    service: AdminRunService = Depends(get_admin_run_service),
):
    """Approve, reject or reset an entry's review status."""
    try:
        return service.set_status(token, entry_id, request.status, request.rejection_reason)
    except (AdminAuthorizationError, EntryNotFoundError, StoreUnavailableError) as e:
        raise _to_http(e) from e


@router.get("/{entry_id}/evidence")
def get_run_evidence(
    entry_id: str,
    token: str = Depends(get_admin_token),
    service: AdminRunService = Depends(get_admin_run_service),
):
    """Return the stored evidence image of an entry."""
    try:
        evidence = service.get_evidence(token, entry_id)
    except (AdminAuthorizationError, EntryNotFoundError, StoreUnavailableError) as e:
        raise _to_http(e) from e
    if evidence is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No evidence stored for this run")
    return Response(content=evidence.content, media_type=evidence.mime_type)
