"""Run ledger: every read and write of run entries goes through here.

Storage failures are translated at this seam:
- IntegrityError on a ledger uniqueness constraint -> LedgerConflictError
- OperationalError / DBAPIError -> StoreUnavailableError
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from run_tracker.db.models import UQ_RUN_EVIDENCE_FINGERPRINT, RunEntry, RunEvidence
from run_tracker.db.session import SessionFactory, get_session
from run_tracker.errors import EntryNotFoundError, LedgerConflictError, StoreUnavailableError
from run_tracker.runs.types import DailyState, DuplicateOrigin, EntryDraft, EntryUpdate, ReviewStatus, RunEntryView, StoredEvidence

ZERO_KM = Decimal("0.00")


@dataclass(frozen=True)
class DaySnapshot:
    """Counted entries of one (submitter, date) key as read in a single query.

    max_slot covers every slot-holding entry; count and total exclude rejected entries.
    """

    count: int
    total_distance_km: Decimal
    max_slot: int

    @property
    def next_slot(self) -> int:
        return self.max_slot + 1

    def to_daily_state(self) -> DailyState:
        return DailyState(count=self.count, total_distance_km=self.total_distance_km)


def _conflict_constraint(error: IntegrityError) -> str:
    # PostgreSQL reports the constraint name, SQLite reports the column list
    detail = str(error.orig)
    if UQ_RUN_EVIDENCE_FINGERPRINT in detail or "evidence_fingerprint" in detail:
        return "evidence_fingerprint"
    return "day_slot"


class RunLedger:
    def __init__(self, session_factory: SessionFactory = get_session):
        self._session_factory = session_factory

    def transaction(self):
        """Open a session scope. Commits on success, rolls back on any exception."""
        return self._session_factory()

    def read_day(self, session: Session, submitter_id: str, run_date: date) -> DaySnapshot:
        """Read the counted state of a submitter's day.

        Raises:
            StoreUnavailableError: If the read fails in transit
        """
        try:
            rows = session.execute(
                select(RunEntry.distance_km, RunEntry.status, RunEntry.day_slot).where(
                    RunEntry.submitter_id == submitter_id,
                    RunEntry.run_date == run_date,
                )
            ).all()
        except (OperationalError, DBAPIError) as e:
            logger.warning(f"[LEDGER] Daily state read failed: submitter_id={submitter_id}, date={run_date}: {e}")
            raise StoreUnavailableError("daily_state", str(e)) from e

        count = 0
        total = ZERO_KM
        max_slot = 0
        for distance_km, status, day_slot in rows:
            if day_slot is not None:
                max_slot = max(max_slot, day_slot)
            if status == ReviewStatus.REJECTED:
                continue
            count += 1
            total += Decimal(distance_km)

        return DaySnapshot(count=count, total_distance_km=total.quantize(ZERO_KM), max_slot=max_slot)

    def daily_state(self, submitter_id: str, run_date: date) -> DailyState:
        with self.transaction() as session:
            return self.read_day(session, submitter_id, run_date).to_daily_state()

    def find_by_fingerprint(self, session: Session, fingerprint: str) -> DuplicateOrigin | None:
        """Return the entry that already carries this evidence fingerprint, if any."""
        try:
            row = session.execute(
                select(RunEntry.id, RunEntry.run_date, RunEntry.submitter_id, RunEntry.display_name)
                .where(RunEntry.evidence_fingerprint == fingerprint)
                .limit(1)
            ).first()
        except (OperationalError, DBAPIError) as e:
            logger.warning(f"[LEDGER] Fingerprint lookup failed: {e}")
            raise StoreUnavailableError("fingerprint_lookup", str(e)) from e
        if row is None:
            return None
        return DuplicateOrigin(entry_id=row.id, run_date=row.run_date, submitter_id=row.submitter_id, display_name=row.display_name)

    def fingerprint_exists(self, session: Session, fingerprint: str) -> bool:
        return self.find_by_fingerprint(session, fingerprint) is not None

    def append(self, session: Session, draft: EntryDraft, day_slot: int) -> RunEntryView:
        """Append an admitted entry and commit it together with its evidence.

        Args:
            session: Session the admission snapshot was read in
            draft: Entry fields
            day_slot: Slot claimed from the admission snapshot

        Raises:
            LedgerConflictError: If another writer claimed the slot or the fingerprint first
            StoreUnavailableError: If the write fails in transit
        """
        entry = RunEntry(
            submitter_id=draft.submitter_id,
            display_name=draft.display_name,
            station=draft.station,
            run_date=draft.run_date,
            distance_km=draft.distance_km,
            evidence_fingerprint=draft.evidence.fingerprint if draft.evidence else None,
            day_slot=day_slot,
            status=ReviewStatus.PENDING.value,
        )
        if draft.evidence is not None:
            entry.evidence = RunEvidence(
                mime_type=draft.evidence.mime_type,
                size_bytes=len(draft.evidence.content),
                content=draft.evidence.content,
            )

        session.add(entry)
        try:
            session.flush()
            view = RunEntryView.model_validate(entry)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            constraint = _conflict_constraint(e)
            logger.info(f"[LEDGER] Append conflict on {constraint}: submitter_id={draft.submitter_id}, date={draft.run_date}, slot={day_slot}")
            raise LedgerConflictError(constraint, f"Concurrent write on {constraint}") from e
        except (OperationalError, DBAPIError) as e:
            session.rollback()
            logger.error(f"[LEDGER] Append failed: submitter_id={draft.submitter_id}, date={draft.run_date}: {e}")
            raise StoreUnavailableError("append", str(e)) from e

        logger.info(
            f"[LEDGER] Entry appended: id={view.id}, submitter_id={view.submitter_id}, "
            f"date={view.run_date}, distance_km={view.distance_km}, slot={day_slot}"
        )
        return view

    def get(self, entry_id: str) -> RunEntryView:
        with self.transaction() as session:
            return RunEntryView.model_validate(self._require(session, entry_id))

    def list_entries(
        self,
        submitter_id: str | None = None,
        run_date: date | None = None,
        status: ReviewStatus | None = None,
    ) -> list[RunEntryView]:
        with self.transaction() as session:
            query = select(RunEntry)
            if submitter_id:
                query = query.where(RunEntry.submitter_id == submitter_id)
            if run_date:
                query = query.where(RunEntry.run_date == run_date)
            if status:
                query = query.where(RunEntry.status == status.value)
            entries = session.execute(query.order_by(RunEntry.run_date.desc(), RunEntry.created_at.desc())).scalars().all()
            return [RunEntryView.model_validate(e) for e in entries]

    def update(self, entry_id: str, changes: EntryUpdate) -> RunEntryView:
        """Overwrite entry fields without admission checks.

        Moving an entry to another (submitter, date) key releases its slot so
        it can never collide with admissions on the new key.
        """
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        with self.transaction() as session:
            entry = self._require(session, entry_id)
            old_key = (entry.submitter_id, entry.run_date)
            for name, value in fields.items():
                setattr(entry, name, value)
            if (entry.submitter_id, entry.run_date) != old_key:
                entry.day_slot = None
            entry.updated_at = datetime.now(timezone.utc)
            self._flush(session, "update")
            logger.info(f"[LEDGER] Entry updated: id={entry_id}, fields={sorted(fields)}")
            return RunEntryView.model_validate(entry)

    def delete(self, entry_id: str) -> None:
        with self.transaction() as session:
            entry = self._require(session, entry_id)
            session.delete(entry)
            self._flush(session, "delete")
            logger.info(f"[LEDGER] Entry deleted: id={entry_id}, submitter_id={entry.submitter_id}, date={entry.run_date}")

    def set_status(
        self,
        entry_id: str,
        status: ReviewStatus,
        rejection_reason: str | None = None,
        reviewer_id: str | None = None,
        reviewer_name: str | None = None,
    ) -> RunEntryView:
        """Record a review decision.

        Rejected entries give up their slot and stop counting toward the caps.
        Their fingerprint stays reserved.
        """
        with self.transaction() as session:
            entry = self._require(session, entry_id)
            entry.status = status.value
            entry.rejection_reason = rejection_reason if status == ReviewStatus.REJECTED else None
            if status == ReviewStatus.PENDING:
                entry.reviewed_by = None
                entry.reviewed_by_name = None
                entry.reviewed_at = None
            else:
                entry.reviewed_by = reviewer_id
                entry.reviewed_by_name = reviewer_name
                entry.reviewed_at = datetime.now(timezone.utc)
            if status == ReviewStatus.REJECTED:
                entry.day_slot = None
            entry.updated_at = datetime.now(timezone.utc)
            self._flush(session, "set_status")
            logger.info(f"[LEDGER] Entry status changed: id={entry_id}, status={status.value}, reviewer={reviewer_id}")
            return RunEntryView.model_validate(entry)

    def get_evidence(self, entry_id: str) -> StoredEvidence | None:
        with self.transaction() as session:
            entry = self._require(session, entry_id)
            if entry.evidence is None:
                return None
            return StoredEvidence(mime_type=entry.evidence.mime_type, content=entry.evidence.content)

    @staticmethod
    def _require(session: Session, entry_id: str) -> RunEntry:
        entry = session.get(RunEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    @staticmethod
    def _flush(session: Session, operation: str) -> None:
        try:
            session.flush()
        except IntegrityError as e:
            raise LedgerConflictError(_conflict_constraint(e), f"{operation} violates a ledger constraint") from e
        except (OperationalError, DBAPIError) as e:
            raise StoreUnavailableError(operation, str(e)) from e
