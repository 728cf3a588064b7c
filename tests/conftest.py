"""Root conftest for all tests.

This file makes shared fixtures available across all test modules:
- an isolated in-memory SQLite database per test, exposed as a session factory
- a clock pinned to a fixed organization day
- a seeded roster
- evidence image bytes that are unique per call
"""

from datetime import date
from decimal import Decimal
from itertools import count

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from run_tracker.core.clock import FixedClock
from run_tracker.db.models import Base
from run_tracker.db.session import session_context
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.types import MemberInput
from run_tracker.runs.evidence import fingerprint
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.submission import SubmissionOrchestrator
from run_tracker.runs.types import EntryDraft, EvidencePayload, RunPolicy

TODAY = date(2025, 3, 14)
ORG_TIMEZONE = "Indian/Maldives"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


# Enable foreign key constraints for SQLite
@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_session_factory(engine: Engine):
    Base.metadata.create_all(engine)
    return session_context(sessionmaker(bind=engine, autocommit=False, autoflush=False))


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of one test."""
    test_engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite database: separate sessions get separate connections."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    yield make_session_factory(file_engine)
    file_engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock.on(TODAY, ORG_TIMEZONE)


@pytest.fixture
def policy() -> RunPolicy:
    return RunPolicy()


@pytest.fixture
def directory(session_factory) -> IdentityDirectory:
    return IdentityDirectory(session_factory)


@pytest.fixture
def ledger(session_factory) -> RunLedger:
    return RunLedger(session_factory)


def seed_members(directory: IdentityDirectory) -> dict:
    members = [
        MemberInput(service_number="5568", name="Ahmed Shareef", station="Male", rank="Sergeant"),
        MemberInput(service_number="1234", name="Aishath Rasheed", station="Hulhumale", rank="Corporal"),
        MemberInput(service_number="C0042", name="Ibrahim Naseem", station="Addu"),
    ]
    return {m.service_number: directory.add_member(m) for m in members}


@pytest.fixture
def roster(directory):
    """Seeded roster keyed by normalized service number."""
    return seed_members(directory)


@pytest.fixture
def orchestrator(directory, ledger, clock, policy, roster) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(directory, ledger, clock, policy)


@pytest.fixture
def png():
    """Factory for evidence bytes. Same seed, same bytes; new seed, new fingerprint."""
    counter = count(1000)

    def _png(seed: int | None = None) -> bytes:
        value = next(counter) if seed is None else seed
        return PNG_SIGNATURE + f"run-evidence-{value}".encode() * 8

    return _png


@pytest.fixture
def seed_run(ledger):
    """Append an entry directly through the ledger, bypassing admission."""

    def _seed(submitter_id: str, run_date: date, distance_km: str, evidence: bytes | None = None) -> str:
        payload = None
        if evidence is not None:
            payload = EvidencePayload(content=evidence, mime_type="image/png", fingerprint=fingerprint(evidence))
        draft = EntryDraft(
            submitter_id=submitter_id,
            display_name="Seeded Runner",
            station="Male",
            run_date=run_date,
            distance_km=Decimal(distance_km),
            evidence=payload,
        )
        with ledger.transaction() as session:
            slot = ledger.read_day(session, submitter_id, run_date).next_slot
            return ledger.append(session, draft, slot).id

    return _seed


@pytest.fixture
def today() -> date:
    return TODAY
