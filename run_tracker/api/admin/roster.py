"""Admin roster management endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from loguru import logger

from run_tracker.api.dependencies.auth import require_admin
from run_tracker.api.dependencies.services import get_directory
from run_tracker.api.schemas import AdminStatusRequest
from run_tracker.core.auth_jwt import AdminPrincipal
from run_tracker.errors import MemberNotFoundError, RosterConflictError
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.types import MemberInput, MemberView

router = APIRouter(prefix="/admin/roster", tags=["admin"])


@router.get("", response_model=list[MemberView])
def list_members(
    _admin: AdminPrincipal = Depends(require_admin),
    directory: IdentityDirectory = Depends(get_directory),
):
    return directory.list_members()


@router.post("", response_model=MemberView, status_code=status.HTTP_201_CREATED)
def add_member(
    data: MemberInput,
    admin: AdminPrincipal = Depends(require_admin),
    directory: IdentityDirectory = Depends(get_directory),
):
    """Register a member.

    Raises:
        HTTPException: 409 if the service number is already registered
        HTTPException: 422 if the service number has no digits
    """
    logger.info(f"[ADMIN] Member registration by {admin.service_number}: service_number={data.service_number!r}")
    try:
        return directory.add_member(data)
    except RosterConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.put("/{member_id}", response_model=MemberView)
def update_member(
    member_id: str,
    data: MemberInput,
    admin: AdminPrincipal = Depends(require_admin),
    directory: IdentityDirectory = Depends(get_directory),
):
    logger.info(f"[ADMIN] Member update by {admin.service_number}: id={member_id}")
    try:
        return directory.update_member(member_id, data)
    except MemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except RosterConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(
    member_id: str,
    admin: AdminPrincipal = Depends(require_admin),
    directory: IdentityDirectory = Depends(get_directory),
):
    logger.info(f"[ADMIN] Member delete by {admin.service_number}: id={member_id}")
    try:
        directory.delete_member(member_id)
    except MemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{member_id}/admin", response_model=MemberView)
def set_admin_status(
    member_id: str,
    request: AdminStatusRequest,
    admin: AdminPrincipal = Depends(require_admin),
    directory: IdentityDirectory = Depends(get_directory),
):
    """Grant or revoke admin rights, optionally setting the member's admin password."""
    logger.info(f"[ADMIN] Admin status change by {admin.service_number}: id={member_id}, is_admin={request.is_admin}")
    try:
        return directory.set_admin_status(member_id, request.is_admin, request.password)
    except MemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/{member_id}", response_model=MemberView)
def get_member(
    member_id: str,
    _admin: AdminPrincipal = Depends(require_admin),
    directory: IdentityDirectory = Depends(get_directory),
):
    try:
        return directory.get_member(member_id)
    except MemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
