"""FastAPI dependency providers for the run engine and roster services.

Routes never build services directly; tests swap the session factory or the
clock through app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Depends

from run_tracker.auth.validators import AdminAuthenticator
from run_tracker.config.settings import settings
from run_tracker.core.clock import Clock, OrganizationClock
from run_tracker.db.session import SessionFactory, get_session
from run_tracker.notifications.admin_email import AdminNotifier
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.runs.admin import AdminRunService
from run_tracker.runs.admission import AdmissionChecker
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.submission import SubmissionOrchestrator
from run_tracker.runs.types import RunPolicy


def get_session_factory() -> SessionFactory:
    return get_session


def get_clock() -> Clock:
    return OrganizationClock(settings.organization_timezone)


def get_policy() -> RunPolicy:
    return RunPolicy.from_settings()


def get_directory(session_factory: SessionFactory = Depends(get_session_factory)) -> IdentityDirectory:
    return IdentityDirectory(session_factory)


def get_ledger(session_factory: SessionFactory = Depends(get_session_factory)) -> RunLedger:
    return RunLedger(session_factory)


def get_admission_checker(
    ledger: RunLedger = Depends(get_ledger),
    clock: Clock = Depends(get_clock),
    policy: RunPolicy = Depends(get_policy),
) -> AdmissionChecker:
    return AdmissionChecker(ledger, clock, policy)


def get_notifier(directory: IdentityDirectory = Depends(get_directory)) -> AdminNotifier:
    return AdminNotifier.from_settings(directory)


def get_orchestrator(
    directory: IdentityDirectory = Depends(get_directory),
    ledger: RunLedger = Depends(get_ledger),
    clock: Clock = Depends(get_clock),
    policy: RunPolicy = Depends(get_policy),
    notifier: AdminNotifier = Depends(get_notifier),
) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(directory, ledger, clock, policy, notifier)


def get_admin_run_service(ledger: RunLedger = Depends(get_ledger)) -> AdminRunService:
    return AdminRunService(ledger)


def get_authenticator(directory: IdentityDirectory = Depends(get_directory)) -> AdminAuthenticator:
    return AdminAuthenticator.from_settings(directory)
