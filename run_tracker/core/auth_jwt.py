"""Admin capability tokens.

Stateless JWTs issued after a successful admin login. AdminRunService.authorize is the
pass/fail gate of the administrative path; the claims are used for audit fields
(who reviewed an entry).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from loguru import logger

from run_tracker.config.settings import settings

ADMIN_ROLE = "admin"
TOKEN_ISSUER = "run-tracker"


@dataclass(frozen=True)
class AdminPrincipal:
    service_number: str
    name: str


def create_admin_token(service_number: str, name: str, expires_delta: timedelta | None = None) -> str:
    """Create a JWT capability token for an authenticated admin.

    Args:
        service_number: Normalized service number of the admin
        name: Display name of the admin
        expires_delta: Token lifetime. Defaults to AUTH_TOKEN_EXPIRE_HOURS.

    Returns:
        JWT token string
    """
    if not service_number:
        raise ValueError("service_number cannot be empty")

    if expires_delta is None:
        expires_delta = timedelta(hours=settings.auth_token_expire_hours)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": service_number,
        "name": name,
        "role": ADMIN_ROLE,
        "exp": now + expires_delta,
        "iat": now,
        "iss": TOKEN_ISSUER,
    }
    return jwt.encode(
        payload,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_admin_token(token: str) -> AdminPrincipal:
    """Decode and verify an admin capability token.

    Args:
        token: JWT token string

    Returns:
        AdminPrincipal carried by the token

    Raises:
        ValueError: If token is invalid, expired, or not an admin token
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret_key,
            algorithms=[settings.auth_algorithm],
            issuer=TOKEN_ISSUER,
        )
    except JWTError as e:
        logger.warning(f"[AUTH] Admin token decode failed: {e}")
        raise ValueError("Invalid or expired token") from e

    service_number = payload.get("sub")
    if not service_number or payload.get("role") != ADMIN_ROLE:
        raise ValueError("Token does not carry admin capability")
    return AdminPrincipal(service_number=str(service_number), name=str(payload.get("name") or ""))
