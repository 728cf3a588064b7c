"""Tests for the admin credential validator chain.

Tests cover:
- Chain rules: grant stops, final denial stops, first non-final denial wins
- Roster password validator outcomes
- Master password validator scoped to the super-admin service number
- login() issuing a decodable capability token
- Legacy plaintext roster passwords upgraded to bcrypt on login
"""

import pytest

from run_tracker.auth.validators import (
    DEFAULT_DENIAL,
    AdminAuthenticator,
    CredentialOutcome,
    MasterPasswordValidator,
    RosterPasswordValidator,
    Verdict,
)
from run_tracker.core.auth_jwt import decode_admin_token
from run_tracker.core.password import is_password_hash
from run_tracker.db.models import RosterMember
from run_tracker.errors import AdminAuthorizationError


class StubValidator:
    def __init__(self, outcome: CredentialOutcome):
        self.outcome = outcome
        self.calls = []

    def validate(self, service_number: str, password: str) -> CredentialOutcome:
        self.calls.append(service_number)
        return self.outcome


@pytest.fixture
def admin_roster(directory, roster):
    """Roster where 5568 is an admin with a password and 1234 is an admin without one."""
    directory.set_admin_status(roster["5568"].id, True, "correct-horse")
    directory.set_admin_status(roster["1234"].id, True)
    return roster


@pytest.fixture
def authenticator(directory, admin_roster) -> AdminAuthenticator:
    return AdminAuthenticator(
        [
            RosterPasswordValidator(directory),
            MasterPasswordValidator("5568", "master-key"),
        ]
    )


def test_grant_stops_the_chain() -> None:
    later = StubValidator(CredentialOutcome.denied("never consulted", final=True))
    chain = AdminAuthenticator([StubValidator(CredentialOutcome.granted("5568", "Ahmed")), later])

    outcome = chain.check("5568", "pw")

    assert outcome.verdict == Verdict.GRANTED
    assert later.calls == []


def test_final_denial_stops_the_chain() -> None:
    later = StubValidator(CredentialOutcome.granted("5568", "Ahmed"))
    chain = AdminAuthenticator([StubValidator(CredentialOutcome.denied("locked out", final=True)), later])

    outcome = chain.check("5568", "pw")

    assert outcome.verdict == Verdict.DENIED
    assert outcome.reason == "locked out"
    assert later.calls == []


def test_non_final_denial_lets_later_validator_grant() -> None:
    chain = AdminAuthenticator(
        [
            StubValidator(CredentialOutcome.denied("Invalid password")),
            StubValidator(CredentialOutcome.granted("5568", "Super Admin")),
        ]
    )

    assert chain.check("5568", "pw").verdict == Verdict.GRANTED


def test_first_non_final_denial_is_reported() -> None:
    chain = AdminAuthenticator(
        [
            StubValidator(CredentialOutcome.abstain()),
            StubValidator(CredentialOutcome.denied("first reason")),
            StubValidator(CredentialOutcome.denied("second reason")),
        ]
    )

    assert chain.check("5568", "pw").reason == "first reason"


def test_all_abstain_is_default_denial() -> None:
    chain = AdminAuthenticator([StubValidator(CredentialOutcome.abstain())])

    outcome = chain.check("5568", "pw")

    assert outcome.verdict == Verdict.DENIED
    assert outcome.reason == DEFAULT_DENIAL


@pytest.mark.parametrize(("service_number", "password"), [("", "pw"), ("5568", ""), ("---", "pw")])
def test_missing_credentials_are_denied(service_number: str, password: str) -> None:
    validator = StubValidator(CredentialOutcome.granted("5568", "Ahmed"))
    chain = AdminAuthenticator([validator])

    outcome = chain.check(service_number, password)

    assert outcome.reason == "Service number and password are required"
    assert validator.calls == []


def test_chain_passes_normalized_service_number() -> None:
    validator = StubValidator(CredentialOutcome.abstain())

    AdminAuthenticator([validator]).check(" 55-68 ", "pw")

    assert validator.calls == ["5568"]


def test_roster_admin_with_correct_password(authenticator) -> None:
    outcome = authenticator.check("5568", "correct-horse")

    assert outcome.verdict == Verdict.GRANTED
    assert outcome.name == "Ahmed Shareef"


def test_roster_admin_wrong_password_falls_through_to_master(authenticator) -> None:
    assert authenticator.check("5568", "wrong").reason == "Invalid password"
    assert authenticator.check("5568", "master-key").verdict == Verdict.GRANTED


def test_non_admin_is_denied_finally(authenticator) -> None:
    outcome = authenticator.check("C0042", "anything")

    assert outcome.reason == "User does not have admin privileges"
    assert outcome.final


def test_admin_without_password(authenticator) -> None:
    outcome = authenticator.check("1234", "anything")

    assert outcome.reason == "No password set. Contact super admin to set your password."


def test_master_password_only_for_super_admin(authenticator) -> None:
    """Test that the master password does not unlock other admins."""
    assert authenticator.check("1234", "master-key").verdict == Verdict.DENIED


def test_unknown_member_is_default_denial(authenticator) -> None:
    assert authenticator.check("9999", "master-key").reason == DEFAULT_DENIAL


def test_master_validator_disabled_without_password() -> None:
    validator = MasterPasswordValidator("5568", "")

    assert validator.validate("5568", "").verdict == Verdict.ABSTAIN
    assert validator.validate("5568", "anything").verdict == Verdict.ABSTAIN


def test_master_grant_when_super_admin_not_on_roster(directory) -> None:
    chain = AdminAuthenticator([RosterPasswordValidator(directory), MasterPasswordValidator("5568", "master-key")])

    outcome = chain.check("5568", "master-key")

    assert outcome.verdict == Verdict.GRANTED
    assert outcome.name == "Super Admin"


def test_login_issues_admin_token(authenticator) -> None:
    login = authenticator.login("5568", "correct-horse")

    principal = decode_admin_token(login.access_token)
    assert principal.service_number == "5568"
    assert principal.name == "Ahmed Shareef"
    assert login.token_type == "bearer"


def test_login_raises_with_denial_reason(authenticator) -> None:
    with pytest.raises(AdminAuthorizationError, match="Invalid password"):
        authenticator.login("5568", "wrong")


def test_legacy_plaintext_password_is_upgraded_on_login(directory, session_factory, roster) -> None:
    """Test that a password imported as plaintext logs in once and is stored hashed afterwards."""
    with session_factory() as session:
        member = session.get(RosterMember, roster["C0042"].id)
        member.is_admin = True
        member.admin_password_hash = "legacy-pass"
    chain = AdminAuthenticator([RosterPasswordValidator(directory)])

    assert chain.check("C0042", "legacy-pass").verdict == Verdict.GRANTED

    stored = directory.admin_credentials("C0042").password_hash
    assert stored != "legacy-pass"
    assert is_password_hash(stored)
    assert chain.check("C0042", "legacy-pass").verdict == Verdict.GRANTED
