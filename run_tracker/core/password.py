"""Admin password hashing for roster members.

Passwords are stored as bcrypt hashes (passlib). Rosters imported from the
legacy spreadsheet carry plaintext admin passwords: those still verify, and
needs_rehash() tells the caller to replace them with a bcrypt hash after the
next successful login. Raw passwords are never logged.
"""

from __future__ import annotations

import hmac

from passlib.context import CryptContext

# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
)


def _bcrypt_input(password: str) -> str:
    return password.encode()[:BCRYPT_MAX_BYTES].decode(errors="ignore")


def is_password_hash(stored: str | None) -> bool:
    """True when the stored value is a hash this context understands."""
    if not stored:
        return False
    return pwd_context.identify(stored, required=False) is not None


def hash_password(password: str) -> str:
    """Hash an admin password with bcrypt.

    Raises:
        ValueError: If password is empty
    """
    if not password:
        raise ValueError("Password cannot be empty")
    return pwd_context.hash(_bcrypt_input(password))


def verify_password(plain: str, stored: str | None) -> bool:
    """Check a password against the stored value.

    Args:
        plain: Password as typed
        stored: bcrypt hash, a legacy plaintext password, or None for members
            without a password

    Returns:
        True if the password matches
    """
    if not plain or not stored:
        return False
    if not is_password_hash(stored):
        return hmac.compare_digest(plain.encode(), stored.encode())
    return pwd_context.verify(_bcrypt_input(plain), stored)


def needs_rehash(stored: str | None) -> bool:
    """True for legacy plaintext values and hashes with outdated parameters."""
    if not stored:
        return False
    if not is_password_hash(stored):
        return True
    return pwd_context.needs_update(stored)
