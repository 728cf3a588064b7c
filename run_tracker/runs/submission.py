"""Submission orchestrator.

Composes identity lookup, admission and evidence deduplication, then appends
the entry. Every rejection is returned as a SubmissionResult; nothing is
written unless every check passed.

Failure policy:
- a read that cannot reach the store is retried once, then reported as
  TRANSPORT_FAILURE
- an append that cannot reach the store is reported as TRANSPORT_FAILURE with
  advice to resubmit (never retried automatically)
- an append that loses a slot race is reported as REJECTED_CONCURRENT_CONFLICT
  with advice to re-run the whole flow once

Admins are notified of an admitted entry only after it is committed.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from loguru import logger

from run_tracker.core.clock import Clock
from run_tracker.errors import LedgerConflictError, StoreUnavailableError
from run_tracker.notifications.admin_email import AdminNotifier
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.identifiers import normalize_service_number
from run_tracker.runs.admission import AdmissionChecker, parse_distance
from run_tracker.runs.evidence import EvidenceDeduplicator
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.types import (
    DailyState,
    DuplicateOrigin,
    EntryDraft,
    EvidencePayload,
    Outcome,
    RunPolicy,
    SubmissionResult,
)

READ_RETRIES = 1


class SubmissionOrchestrator:
    def __init__(
        self,
        directory: IdentityDirectory,
        ledger: RunLedger,
        clock: Clock,
        policy: RunPolicy,
        notifier: AdminNotifier | None = None,
    ):
        self.directory = directory
        self.ledger = ledger
        self.admission = AdmissionChecker(ledger, clock, policy)
        self.evidence = EvidenceDeduplicator(ledger, policy)
        self.notifier = notifier

    def submit(
        self,
        submitter_id: str,
        entry_date: date,
        distance_km: Decimal | str | float | None,
        evidence_bytes: bytes | None,
        evidence_mime: str | None,
    ) -> SubmissionResult:
        """Submit a run.

        Args:
            submitter_id: Raw service number, normalized here
            entry_date: Calendar date the run is logged for
            distance_km: Distance as entered
            evidence_bytes: Evidence image bytes (None when omitted)
            evidence_mime: Evidence MIME type as reported by the uploader

        Returns:
            SubmissionResult with the outcome. Never raises for rejections or
            store failures.
        """
        normalized = normalize_service_number(submitter_id)
        distance = parse_distance(distance_km)

        attempt = 0
        while True:
            try:
                return self._submit_once(normalized, entry_date, distance, evidence_bytes, evidence_mime)
            except StoreUnavailableError as e:
                if e.operation == "append":
                    logger.error(f"[SUBMIT] Append failed: submitter_id={normalized}, date={entry_date}: {e}")
                    return SubmissionResult(
                        outcome=Outcome.TRANSPORT_FAILURE,
                        message="The run could not be saved. Please submit it again.",
                        submitter_id=normalized,
                        run_date=entry_date,
                        retry_advice="resubmit",
                    )
                if attempt < READ_RETRIES:
                    attempt += 1
                    logger.warning(f"[SUBMIT] Read failed ({e.operation}), retrying: submitter_id={normalized}")
                    continue
                logger.error(f"[SUBMIT] Read failed after retry ({e.operation}): submitter_id={normalized}: {e}")
                return SubmissionResult(
                    outcome=Outcome.TRANSPORT_FAILURE,
                    message="The run service is temporarily unavailable. Please try again.",
                    submitter_id=normalized,
                    run_date=entry_date,
                    retry_advice="resubmit",
                )

    def _submit_once(
        self,
        submitter_id: str,
        entry_date: date,
        distance_km: Decimal | None,
        evidence_bytes: bytes | None,
        evidence_mime: str | None,
    ) -> SubmissionResult:
        profile = self.directory.lookup(submitter_id)
        if profile is None:
            logger.info(f"[SUBMIT] Unknown submitter: submitter_id={submitter_id!r}")
            return SubmissionResult(
                outcome=Outcome.REJECTED_UNKNOWN_SUBMITTER,
                message="Service number not found. Please check and try again.",
                submitter_id=submitter_id,
                run_date=entry_date,
            )

        with self.ledger.transaction() as session:
            admission, snapshot = self.admission.assess(session, submitter_id, entry_date, distance_km)
            if not admission.admitted or snapshot is None:
                logger.info(f"[SUBMIT] Admission rejected: submitter_id={submitter_id}, outcome={admission.outcome.value}")
                return SubmissionResult.from_admission(admission, submitter_id, entry_date)

            evidence_error = self.evidence.validate(evidence_bytes, evidence_mime)
            if evidence_error:
                logger.info(f"[SUBMIT] Evidence rejected: submitter_id={submitter_id}, reason={evidence_error}")
                return self._rejected(Outcome.REJECTED_EVIDENCE_INVALID, evidence_error, submitter_id, entry_date, snapshot.to_daily_state())

            payload = None
            if evidence_bytes is not None:
                evidence_fingerprint = self.evidence.fingerprint(evidence_bytes)
                original = self.evidence.find_original(session, evidence_fingerprint)
                if original is not None:
                    logger.info(
                        f"[SUBMIT] Duplicate evidence: submitter_id={submitter_id}, fingerprint={evidence_fingerprint[:12]}, "
                        f"original_id={original.entry_id}"
                    )
                    return self._duplicate(submitter_id, entry_date, snapshot.to_daily_state(), original)
                payload = EvidencePayload(content=evidence_bytes, mime_type=evidence_mime or "", fingerprint=evidence_fingerprint)

            draft = EntryDraft(
                submitter_id=submitter_id,
                display_name=profile.name,
                station=profile.station,
                run_date=entry_date,
                distance_km=distance_km,
                evidence=payload,
            )
            try:
                view = self.ledger.append(session, draft, snapshot.next_slot)
            except LedgerConflictError as e:
                if e.constraint == "evidence_fingerprint":
                    return self._duplicate(submitter_id, entry_date, None)
                logger.info(f"[SUBMIT] Concurrent conflict: submitter_id={submitter_id}, date={entry_date}")
                return SubmissionResult(
                    outcome=Outcome.REJECTED_CONCURRENT_CONFLICT,
                    message="Another run was logged for this day at the same time. Please submit again.",
                    submitter_id=submitter_id,
                    run_date=entry_date,
                    retry_advice="retry_full_flow",
                )

        total = snapshot.total_distance_km + distance_km
        daily_state = DailyState(count=snapshot.count + 1, total_distance_km=total)
        remaining = self.admission.policy.daily_ceiling_km - total
        logger.info(
            f"[SUBMIT] Run admitted: id={view.id}, submitter_id={submitter_id}, date={entry_date}, "
            f"distance_km={distance_km}, count={daily_state.count}, total_km={total}"
        )
        if self.notifier is not None:
            self.notifier.notify_new_run(view)
        return SubmissionResult(
            outcome=Outcome.ADMITTED,
            message=f"Your {distance_km} km run has been recorded.",
            entry_id=view.id,
            submitter_id=submitter_id,
            run_date=entry_date,
            daily_state=daily_state,
            remaining_km=remaining,
        )

    @staticmethod
    def _rejected(
        outcome: Outcome,
        message: str,
        submitter_id: str,
        entry_date: date,
        daily_state: DailyState | None,
    ) -> SubmissionResult:
        return SubmissionResult(
            outcome=outcome,
            message=message,
            submitter_id=submitter_id,
            run_date=entry_date,
            daily_state=daily_state,
        )

    @staticmethod
    def _duplicate(
        submitter_id: str,
        entry_date: date,
        daily_state: DailyState | None,
        original: DuplicateOrigin | None = None,
    ) -> SubmissionResult:
        message = "This image has already been used for another run. Please upload a different photo."
        if original is not None:
            message = (
                f"This image was already used for the run logged on {original.run_date.isoformat()} "
                f"by {original.display_name} (#{original.submitter_id}). Please upload a different photo."
            )
        return SubmissionResult(
            outcome=Outcome.REJECTED_DUPLICATE_EVIDENCE,
            message=message,
            submitter_id=submitter_id,
            run_date=entry_date,
            daily_state=daily_state,
            duplicate_of=original,
        )
