"""Admission checker.

Decides whether a proposed entry fits in the submitter's day:
1. the date must be today in the organization timezone
2. the distance must be positive, use at most two decimals and fit the per-entry cap
3. the day must have a free entry
4. the day must have distance left under the ceiling
5. the proposed distance must fit in what is left
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation

from loguru import logger
from sqlalchemy.orm import Session

from run_tracker.core.clock import Clock
from run_tracker.runs.ledger import DaySnapshot, RunLedger
from run_tracker.runs.types import AdmissionResult, Outcome, RunPolicy

ZERO_KM = Decimal("0.00")


def parse_distance(value: object) -> Decimal | None:
    """Parse a distance as entered. Returns None when it is not a finite number.

    Floats are read through their shortest repr so 6.1 parses as 6.1, not as
    its binary expansion.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def distance_error(distance_km: Decimal | None, ceiling_km: Decimal) -> str | None:
    """Return why a distance is invalid, or None when it is acceptable."""
    if distance_km is None:
        return "Distance is required"
    exponent = distance_km.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -2:
        return "Use up to two decimals (e.g., 6.12)"
    if distance_km <= 0:
        return "Distance must be greater than 0"
    if distance_km > ceiling_km:
        return f"Single run cannot exceed {ceiling_km} km (daily limit)"
    return None


class AdmissionChecker:
    def __init__(self, ledger: RunLedger, clock: Clock, policy: RunPolicy):
        self.ledger = ledger
        self.clock = clock
        self.policy = policy

    def evaluate(self, submitter_id: str, entry_date: date, distance_km: Decimal | None) -> AdmissionResult:
        """Evaluate a proposed entry in its own read scope.

        Used for previews. Submission re-evaluates inside the append transaction
        through assess().
        """
        with self.ledger.transaction() as session:
            result, _ = self.assess(session, submitter_id, entry_date, distance_km)
            return result

    def assess(
        self,
        session: Session,
        submitter_id: str,
        entry_date: date,
        distance_km: Decimal | None,
    ) -> tuple[AdmissionResult, DaySnapshot | None]:
        """Evaluate a proposed entry against a ledger snapshot read in `session`.

        Returns:
            The admission result, plus the snapshot it was decided on (None when
            the input was rejected before the ledger was read). The snapshot's
            next_slot is the slot an admitted entry claims on append.

        Raises:
            StoreUnavailableError: If the ledger read fails
        """
        today = self.clock.today()
        if entry_date != today:
            logger.info(f"[SUBMIT] Date rejected: submitter_id={submitter_id}, date={entry_date}, today={today}")
            return AdmissionResult(
                outcome=Outcome.REJECTED_DATE_INVALID,
                message=f"Runs can only be logged for today ({today.isoformat()})",
            ), None

        ceiling = self.policy.daily_ceiling_km
        error = distance_error(distance_km, ceiling)
        if error:
            logger.info(f"[SUBMIT] Distance rejected: submitter_id={submitter_id}, distance_km={distance_km}, reason={error}")
            return AdmissionResult(outcome=Outcome.REJECTED_DISTANCE_INVALID, message=error), None

        snapshot = self.ledger.read_day(session, submitter_id, entry_date)
        count = snapshot.count
        current_total = snapshot.total_distance_km

        if count >= self.policy.max_entries_per_day:
            return AdmissionResult(
                outcome=Outcome.REJECTED_MAX_ENTRIES_REACHED,
                message=(
                    f"You have already logged {count} runs for today. "
                    f"Maximum {self.policy.max_entries_per_day} runs per day allowed."
                ),
                count=count,
                current_total_km=current_total,
                remaining_km=max(ceiling - current_total, ZERO_KM),
            ), snapshot

        remaining = ceiling - current_total
        if remaining <= 0:
            return AdmissionResult(
                outcome=Outcome.REJECTED_CEILING_REACHED,
                message=f"You have already reached your {ceiling} km daily limit.",
                count=count,
                current_total_km=current_total,
                remaining_km=ZERO_KM,
            ), snapshot

        if distance_km > remaining:
            return AdmissionResult(
                outcome=Outcome.REJECTED_WOULD_EXCEED_CEILING,
                message=(
                    f"This run would exceed your {ceiling} km daily limit. "
                    f"You can only add up to {remaining:.2f} km more today."
                ),
                count=count,
                current_total_km=current_total,
                remaining_km=remaining,
            ), snapshot

        return AdmissionResult(
            outcome=Outcome.ADMITTED,
            message="Run is admissible",
            count=count,
            current_total_km=current_total,
            remaining_km=remaining,
        ), snapshot
