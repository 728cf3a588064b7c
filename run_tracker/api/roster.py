"""Public roster lookup used by the submission form."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from run_tracker.api.dependencies.services import get_directory
from run_tracker.errors import StoreUnavailableError
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.types import SubmitterProfile

router = APIRouter(prefix="/roster", tags=["roster"])


@router.get("/{service_number}", response_model=SubmitterProfile)
def lookup_member(service_number: str, directory: IdentityDirectory = Depends(get_directory)):
    """Resolve a service number to the profile shown before submitting.

    Raises:
        HTTPException: 404 if the service number is not registered
        HTTPException: 503 if the roster cannot be read
    """
    try:
        profile = directory.lookup(service_number)
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Roster temporarily unavailable",
        ) from e
    if profile is None:
        logger.info(f"[ROSTER] Lookup miss: service_number={service_number!r}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Service number not found",
        )
    return profile
