"""Admin authentication endpoints.

Exchanges admin credentials (service number + password) for a capability token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from run_tracker.api.dependencies.services import get_authenticator
from run_tracker.api.schemas import AdminLoginRequest, AdminLoginResponse
from run_tracker.auth.validators import AdminAuthenticator
from run_tracker.errors import AdminAuthorizationError, StoreUnavailableError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/admin/login", response_model=AdminLoginResponse)
def admin_login(request: AdminLoginRequest, authenticator: AdminAuthenticator = Depends(get_authenticator)):
    """Log in as an admin.

    Raises:
        HTTPException: 401 with the denial reason if the credentials are refused
        HTTPException: 503 if the roster cannot be read
    """
    try:
        login = authenticator.login(request.service_number, request.password)
    except AdminAuthorizationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except StoreUnavailableError as e:
        logger.error(f"[AUTH] Admin login unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login is temporarily unavailable. Please try again.",
        ) from e

    return AdminLoginResponse(
        access_token=login.access_token,
        token_type=login.token_type,
        service_number=login.service_number,
        name=login.name,
    )
