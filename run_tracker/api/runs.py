"""Run submission API endpoints.

Submission outcomes are returned as typed results; the HTTP status is derived
from the outcome so clients can branch on either.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from loguru import logger

from run_tracker.api.dependencies.services import get_admission_checker, get_clock, get_directory, get_ledger, get_orchestrator
from run_tracker.api.schemas import OUTCOME_STATUS_CODES, DailyStateResponse
from run_tracker.core.clock import Clock
from run_tracker.errors import StoreUnavailableError
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.roster.identifiers import normalize_service_number
from run_tracker.runs.admission import AdmissionChecker, parse_distance
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.submission import SubmissionOrchestrator
from run_tracker.runs.types import RunEntryView, SubmissionResult

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("/daily-state", response_model=DailyStateResponse)
def get_daily_state(
    service_number: str = Query(..., min_length=1),
    run_date: date | None = Query(default=None, alias="date"),
    distance_km: str | None = Query(default=None),
    directory: IdentityDirectory = Depends(get_directory),
    checker: AdmissionChecker = Depends(get_admission_checker),
    clock: Clock = Depends(get_clock),
):
    """Preview a submitter's day: what is logged and what is left.

    When distance_km is given, the response also carries the admission
    decision a submission of that distance would get right now.

    Raises:
        HTTPException: 404 if the service number is not on the roster
        HTTPException: 503 if the store is unavailable
    """
    target_date = run_date or clock.today()
    try:
        profile = directory.lookup(service_number)
        if profile is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Service number not found",
            )
        state = checker.ledger.daily_state(profile.service_number, target_date)
        admission = None
        if distance_km is not None:
            admission = checker.evaluate(profile.service_number, target_date, parse_distance(distance_km))
    except StoreUnavailableError as e:
        logger.warning(f"[SUBMIT] Daily state unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Run service temporarily unavailable",
        ) from e

    policy = checker.policy
    remaining = max(policy.daily_ceiling_km - state.total_distance_km, Decimal("0.00"))
    return DailyStateResponse(
        service_number=profile.service_number,
        run_date=target_date,
        count=state.count,
        total_distance_km=state.total_distance_km,
        remaining_km=remaining,
        max_entries_per_day=policy.max_entries_per_day,
        daily_ceiling_km=policy.daily_ceiling_km,
        can_submit=state.count < policy.max_entries_per_day and remaining > 0,
        admission=admission,
    )


@router.post("", response_model=SubmissionResult)
def submit_run(
    service_number: str = Form(...),
    run_date: date = Form(..., alias="date"),
    distance_km: str = Form(...),
    evidence: UploadFile | None = File(default=None),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
):
    """Submit a run with its evidence image.

    Returns:
        SubmissionResult. Status 201 when admitted, otherwise the status
        mapped from the rejection outcome.
    """
    logger.info(f"[SUBMIT] Submission request: service_number={service_number!r}, date={run_date}, distance_km={distance_km!r}")

    evidence_bytes = None
    evidence_mime = None
    if evidence is not None and evidence.filename:
        try:
            evidence_bytes = evidence.file.read()
        except OSError as e:
            logger.error(f"[SUBMIT] Failed to read evidence upload: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Failed to read file: {e!s}",
            ) from e
        evidence_mime = evidence.content_type

    result = orchestrator.submit(service_number, run_date, distance_km, evidence_bytes, evidence_mime)
    return JSONResponse(
        status_code=OUTCOME_STATUS_CODES[result.outcome],
        content=result.model_dump(mode="json"),
    )


@router.get("", response_model=list[RunEntryView])
def list_runs(
    service_number: str | None = Query(default=None),
    run_date: date | None = Query(default=None, alias="date"),
    ledger: RunLedger = Depends(get_ledger),
):
    """List logged runs, optionally for one submitter and/or one day."""
    submitter_id = normalize_service_number(service_number) if service_number else None
    return ledger.list_entries(submitter_id=submitter_id, run_date=run_date)
