"""Tests for the new-run admin email notification.

SMTP is replaced by an in-memory client; nothing leaves the process.
"""

import smtplib
from decimal import Decimal

import pytest

from run_tracker.errors import StoreUnavailableError
from run_tracker.notifications.admin_email import AdminNotifier
from run_tracker.roster.types import MemberInput
from run_tracker.runs.submission import SubmissionOrchestrator


class FakeSMTP:
    def __init__(self, host: str, port: int, fail_on: set[str] | None = None, fail_login: bool = False):
        self.host = host
        self.port = port
        self.fail_on = fail_on or set()
        self.fail_login = fail_login
        self.tls = False
        self.credentials = None
        self.sent = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self) -> None:
        self.tls = True

    def login(self, user: str, password: str) -> None:
        if self.fail_login:
            raise smtplib.SMTPAuthenticationError(535, b"Authentication failed")
        self.credentials = (user, password)

    def send_message(self, msg) -> None:
        if msg["To"] in self.fail_on:
            raise smtplib.SMTPRecipientsRefused({msg["To"]: (550, b"Mailbox unavailable")})
        self.sent.append(msg)


@pytest.fixture
def smtp_clients():
    return []


@pytest.fixture
def smtp_factory(smtp_clients):
    def _factory(**options):
        def _connect(host: str, port: int) -> FakeSMTP:
            client = FakeSMTP(host, port, **options)
            smtp_clients.append(client)
            return client

        return _connect

    return _factory


@pytest.fixture
def admins(directory, roster):
    """5568 and C0042 are admins with addresses; 1234 has an address but is not an admin."""
    for member, email, is_admin in [
        (roster["5568"], "ahmed@example.mv", True),
        (roster["C0042"], "ibrahim@example.mv", True),
        (roster["1234"], "aishath@example.mv", False),
    ]:
        directory.update_member(
            member.id,
            MemberInput(service_number=member.service_number, name=member.name, station=member.station, email=email),
        )
        directory.set_admin_status(member.id, is_admin, "admin-pass" if is_admin else None)
    return roster


def make_notifier(directory, factory, **overrides) -> AdminNotifier:
    options = {
        "smtp_host": "smtp.example.mv",
        "smtp_port": 587,
        "smtp_user": "runs@example.mv",
        "smtp_password": "smtp-pass",
        "review_url": "https://runs.example.mv/admin",
    }
    options.update(overrides)
    return AdminNotifier(directory, smtp_factory=factory, **options)


def test_notification_sent_to_every_admin(directory, ledger, clock, policy, admins, smtp_factory, smtp_clients, png, today) -> None:
    notifier = make_notifier(directory, smtp_factory())
    orchestrator = SubmissionOrchestrator(directory, ledger, clock, policy, notifier=notifier)

    result = orchestrator.submit("1234", today, "6.00", png(), "image/png")

    assert result.admitted
    [client] = smtp_clients
    assert (client.host, client.port) == ("smtp.example.mv", 587)
    assert client.tls
    assert client.credentials == ("runs@example.mv", "smtp-pass")
    assert sorted(msg["To"] for msg in client.sent) == ["ahmed@example.mv", "ibrahim@example.mv"]

    msg = client.sent[0]
    assert msg["Subject"] == "New Run Submission - Aishath Rasheed"
    assert msg["From"] == "runs@example.mv"
    plain = msg.get_payload()[0].get_payload(decode=True).decode()
    assert "Service Number: #1234" in plain
    assert "Distance: 6.00 km" in plain
    assert "https://runs.example.mv/admin" in plain


def test_unconfigured_smtp_sends_nothing(directory, ledger, admins, smtp_factory, smtp_clients, seed_run, today) -> None:
    notifier = make_notifier(directory, smtp_factory(), smtp_host="")

    sent = notifier.notify_new_run(ledger.get(seed_run("1234", today, "3.00")))

    assert sent == 0
    assert smtp_clients == []


def test_no_admin_addresses_sends_nothing(directory, ledger, roster, smtp_factory, smtp_clients, seed_run, today) -> None:
    notifier = make_notifier(directory, smtp_factory())

    assert notifier.notify_new_run(ledger.get(seed_run("1234", today, "3.00"))) == 0
    assert smtp_clients == []


def test_refused_recipient_does_not_stop_the_others(directory, ledger, admins, smtp_factory, smtp_clients, seed_run, today) -> None:
    notifier = make_notifier(directory, smtp_factory(fail_on={"ahmed@example.mv"}))

    sent = notifier.notify_new_run(ledger.get(seed_run("1234", today, "3.00")))

    assert sent == 1
    assert [msg["To"] for msg in smtp_clients[0].sent] == ["ibrahim@example.mv"]


def test_smtp_failure_never_changes_the_outcome(directory, ledger, clock, policy, admins, smtp_factory, png, today) -> None:
    notifier = make_notifier(directory, smtp_factory(fail_login=True))
    orchestrator = SubmissionOrchestrator(directory, ledger, clock, policy, notifier=notifier)

    result = orchestrator.submit("1234", today, "6.00", png(), "image/png")

    assert result.admitted
    assert ledger.daily_state("1234", today).total_distance_km == Decimal("6.00")


def test_unreachable_smtp_server_is_logged(directory, ledger, admins, seed_run, today) -> None:
    def refuse(host: str, port: int):
        raise ConnectionRefusedError(111, "Connection refused")

    notifier = make_notifier(directory, refuse)

    assert notifier.notify_new_run(ledger.get(seed_run("1234", today, "3.00"))) == 0


def test_roster_outage_skips_notification(directory, ledger, admins, smtp_factory, smtp_clients, seed_run, today, monkeypatch) -> None:
    entry = ledger.get(seed_run("1234", today, "3.00"))

    def unavailable():
        raise StoreUnavailableError("admin_emails", "connection already closed")

    monkeypatch.setattr(directory, "admin_emails", unavailable)
    notifier = make_notifier(directory, smtp_factory())

    assert notifier.notify_new_run(entry) == 0
    assert smtp_clients == []
