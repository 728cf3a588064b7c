"""Run submission input/output models.

This module defines the data structures for:
- Admission and submission outcomes (typed results, never raised)
- The policy knobs the engine enforces
- Ledger append requests and entry views returned to callers
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from run_tracker.config.settings import settings


class Outcome(StrEnum):
    ADMITTED = "admitted"
    REJECTED_DATE_INVALID = "rejected_date_invalid"
    REJECTED_DISTANCE_INVALID = "rejected_distance_invalid"
    REJECTED_MAX_ENTRIES_REACHED = "rejected_max_entries_reached"
    REJECTED_CEILING_REACHED = "rejected_ceiling_reached"
    REJECTED_WOULD_EXCEED_CEILING = "rejected_would_exceed_ceiling"
    REJECTED_EVIDENCE_INVALID = "rejected_evidence_invalid"
    REJECTED_DUPLICATE_EVIDENCE = "rejected_duplicate_evidence"
    REJECTED_UNKNOWN_SUBMITTER = "rejected_unknown_submitter"
    REJECTED_CONCURRENT_CONFLICT = "rejected_concurrent_conflict"
    TRANSPORT_FAILURE = "transport_failure"


class ReviewStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


RetryAdvice = Literal["none", "retry_full_flow", "resubmit"]


@dataclass(frozen=True)
class RunPolicy:
    """Limits enforced at admission.

    Attributes:
        max_entries_per_day: Entries allowed per submitter per calendar day
        daily_ceiling_km: Daily distance cap, also the per-entry cap
        evidence_required: Whether a submission must carry an evidence image
        evidence_max_bytes: Largest accepted evidence payload
    """

    max_entries_per_day: int = 2
    daily_ceiling_km: Decimal = Decimal("10.00")
    evidence_required: bool = True
    evidence_max_bytes: int = 5 * 1024 * 1024

    @classmethod
    def from_settings(cls) -> RunPolicy:
        return cls(
            max_entries_per_day=settings.max_entries_per_day,
            daily_ceiling_km=settings.daily_distance_ceiling_km,
            evidence_required=settings.evidence_required,
            evidence_max_bytes=settings.evidence_max_bytes,
        )


class DailyState(BaseModel):
    """Count and cumulative distance of a submitter's counted entries for one day."""

    count: int = 0
    total_distance_km: Decimal = Decimal("0.00")


class AdmissionResult(BaseModel):
    """Result of evaluating a proposed entry against the submitter's day.

    Attributes:
        outcome: ADMITTED or one of the admission rejections
        message: Human-readable explanation
        count: Entries already counted for the day (when the ledger was read)
        current_total_km: Distance already counted for the day
        remaining_km: Distance still available under the ceiling
    """

    outcome: Outcome
    message: str
    count: int | None = None
    current_total_km: Decimal | None = None
    remaining_km: Decimal | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome == Outcome.ADMITTED


class DuplicateOrigin(BaseModel):
    """Earlier entry that already carries a piece of evidence."""

    entry_id: str
    run_date: date
    submitter_id: str
    display_name: str


class SubmissionResult(BaseModel):
    """Result of a full submission.

    retry_advice tells the caller what it may do next:
    - "retry_full_flow": re-run the whole submission once (state changed under it)
    - "resubmit": the append did not go through; submit again from scratch
    - "none": retrying with the same inputs yields the same result

    duplicate_of names the earlier entry when the evidence was already used.
    """

    outcome: Outcome
    message: str
    entry_id: str | None = None
    submitter_id: str | None = None
    run_date: date | None = None
    daily_state: DailyState | None = None
    remaining_km: Decimal | None = None
    retry_advice: RetryAdvice = "none"
    duplicate_of: DuplicateOrigin | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome == Outcome.ADMITTED

    @classmethod
    def from_admission(cls, result: AdmissionResult, submitter_id: str, run_date: date) -> SubmissionResult:
        daily_state = None
        if result.count is not None and result.current_total_km is not None:
            daily_state = DailyState(count=result.count, total_distance_km=result.current_total_km)
        return cls(
            outcome=result.outcome,
            message=result.message,
            submitter_id=submitter_id,
            run_date=run_date,
            daily_state=daily_state,
            remaining_km=result.remaining_km,
        )


@dataclass(frozen=True)
class EvidencePayload:
    content: bytes
    mime_type: str
    fingerprint: str


@dataclass(frozen=True)
class EntryDraft:
    """Ledger append request built by the orchestrator after every check passed."""

    submitter_id: str
    display_name: str
    station: str
    run_date: date
    distance_km: Decimal
    evidence: EvidencePayload | None = None


@dataclass(frozen=True)
class StoredEvidence:
    mime_type: str
    content: bytes


class RunEntryView(BaseModel):
    """Run entry as returned to callers. Never includes the evidence bytes."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    submitter_id: str
    display_name: str
    station: str
    run_date: date
    distance_km: Decimal
    evidence_fingerprint: str | None = None
    status: ReviewStatus
    rejection_reason: str | None = None
    reviewed_by: str | None = None
    reviewed_by_name: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class EntryUpdate(BaseModel):
    """Admin override of an entry's fields. Unset fields are left unchanged.

    Admin edits bypass admission, so caps are not re-checked here.
    """

    submitter_id: str | None = None
    display_name: str | None = None
    station: str | None = None
    run_date: date | None = None
    distance_km: Decimal | None = None
