"""FastAPI authentication dependencies for admin capability tokens.

Admin routes read the token from the Authorization header (Bearer scheme).
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger

from run_tracker.core.auth_jwt import AdminPrincipal, decode_admin_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/admin/login", auto_error=False)


def get_admin_token(request: Request, token: str | None = Depends(oauth2_scheme)) -> str:
    """Return the raw bearer token, or 401 when none was sent.

    Raises:
        HTTPException: 401 if the Authorization header is missing
    """
    if not token:
        logger.warning(f"[AUTH] Missing admin token: {request.method} {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def require_admin(request: Request, token: str = Depends(get_admin_token)) -> AdminPrincipal:
    """FastAPI dependency resolving the acting admin from the bearer token.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        return decode_admin_token(token)
    except ValueError as e:
        logger.warning(f"[AUTH] Admin token rejected: {e}, Path: {request.url.path}, Method: {request.method}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
