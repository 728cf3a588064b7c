"""Admin credential validation.

Credentials are checked by an ordered chain of validators. Each returns a typed
outcome instead of raising:

- GRANTED: stop, issue a token
- DENIED with final=True: stop, report this denial
- DENIED with final=False: remember the denial, keep trying later validators
- ABSTAIN: this validator has nothing to say about these credentials

The chain order is the fallback policy: per-member roster passwords first,
then the super-admin master password.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from loguru import logger

from run_tracker.config.settings import settings
from run_tracker.core.auth_jwt import create_admin_token
from run_tracker.core.password import needs_rehash, verify_password
from run_tracker.errors import AdminAuthorizationError
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.identifiers import normalize_service_number

DEFAULT_DENIAL = "Invalid credentials"


class Verdict(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    ABSTAIN = "abstain"


@dataclass(frozen=True)
class CredentialOutcome:
    verdict: Verdict
    reason: str = ""
    final: bool = False
    service_number: str = ""
    name: str = ""

    @classmethod
    def granted(cls, service_number: str, name: str) -> CredentialOutcome:
        return cls(Verdict.GRANTED, service_number=service_number, name=name)

    @classmethod
    def denied(cls, reason: str, final: bool = False) -> CredentialOutcome:
        return cls(Verdict.DENIED, reason=reason, final=final)

    @classmethod
    def abstain(cls) -> CredentialOutcome:
        return cls(Verdict.ABSTAIN)


@dataclass(frozen=True)
class AdminLogin:
    access_token: str
    service_number: str
    name: str
    token_type: str = "bearer"


class CredentialValidator(Protocol):
    def validate(self, service_number: str, password: str) -> CredentialOutcome: ...


class RosterPasswordValidator:
    """Checks the member's own admin password stored on the roster.

    A legacy plaintext password that matches is replaced with a bcrypt hash.
    """

    def __init__(self, directory: IdentityDirectory):
        self.directory = directory

    def validate(self, service_number: str, password: str) -> CredentialOutcome:
        member = self.directory.admin_credentials(service_number)
        if member is None:
            return CredentialOutcome.abstain()
        if not member.is_admin:
            return CredentialOutcome.denied("User does not have admin privileges", final=True)
        if verify_password(password, member.password_hash):
            if needs_rehash(member.password_hash):
                self.directory.upgrade_admin_password(member.service_number, password)
            return CredentialOutcome.granted(member.service_number, member.name)
        if not member.password_hash:
            return CredentialOutcome.denied("No password set. Contact super admin to set your password.")
        return CredentialOutcome.denied("Invalid password")


class MasterPasswordValidator:
    """Accepts the configured master password for the super-admin service number only."""

    def __init__(self, super_admin_service_number: str, master_password: str, name: str = "Super Admin"):
        self.super_admin_service_number = normalize_service_number(super_admin_service_number)
        self.master_password = master_password
        self.name = name

    def validate(self, service_number: str, password: str) -> CredentialOutcome:
        if not self.master_password or service_number != self.super_admin_service_number:
            return CredentialOutcome.abstain()
        if hmac.compare_digest(password.encode(), self.master_password.encode()):
            return CredentialOutcome.granted(service_number, self.name)
        return CredentialOutcome.abstain()


class AdminAuthenticator:
    def __init__(self, validators: list[CredentialValidator]):
        self.validators = validators

    @classmethod
    def from_settings(cls, directory: IdentityDirectory) -> AdminAuthenticator:
        return cls(
            [
                RosterPasswordValidator(directory),
                MasterPasswordValidator(settings.super_admin_service_number, settings.admin_master_password),
            ]
        )

    def check(self, service_number: str, password: str) -> CredentialOutcome:
        """Run the chain and return the deciding outcome (GRANTED or DENIED)."""
        normalized = normalize_service_number(service_number)
        if not normalized or not password:
            return CredentialOutcome.denied("Service number and password are required", final=True)

        first_denial: CredentialOutcome | None = None
        for validator in self.validators:
            outcome = validator.validate(normalized, password)
            if outcome.verdict == Verdict.GRANTED:
                logger.info(f"[AUTH] Admin login granted: service_number={normalized}, validator={type(validator).__name__}")
                return outcome
            if outcome.verdict == Verdict.DENIED:
                if outcome.final:
                    logger.warning(f"[AUTH] Admin login denied: service_number={normalized}, reason={outcome.reason}")
                    return outcome
                first_denial = first_denial or outcome

        denial = first_denial or CredentialOutcome.denied(DEFAULT_DENIAL)
        logger.warning(f"[AUTH] Admin login denied: service_number={normalized}, reason={denial.reason}")
        return denial

    def login(self, service_number: str, password: str) -> AdminLogin:
        """Exchange credentials for a capability token.

        Raises:
            AdminAuthorizationError: With the deciding denial reason
        """
        outcome = self.check(service_number, password)
        if outcome.verdict != Verdict.GRANTED:
            raise AdminAuthorizationError(outcome.reason)
        token = create_admin_token(outcome.service_number, outcome.name)
        return AdminLogin(access_token=token, service_number=outcome.service_number, name=outcome.name)
