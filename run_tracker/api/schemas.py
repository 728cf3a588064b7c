"""Request/response models for the HTTP API."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import status
from pydantic import BaseModel, Field

from run_tracker.runs.types import AdmissionResult, Outcome, ReviewStatus

OUTCOME_STATUS_CODES: dict[Outcome, int] = {
    Outcome.ADMITTED: status.HTTP_201_CREATED,
    Outcome.REJECTED_DATE_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Outcome.REJECTED_DISTANCE_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Outcome.REJECTED_EVIDENCE_INVALID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Outcome.REJECTED_MAX_ENTRIES_REACHED: status.HTTP_409_CONFLICT,
    Outcome.REJECTED_CEILING_REACHED: status.HTTP_409_CONFLICT,
    Outcome.REJECTED_WOULD_EXCEED_CEILING: status.HTTP_409_CONFLICT,
    Outcome.REJECTED_DUPLICATE_EVIDENCE: status.HTTP_409_CONFLICT,
    Outcome.REJECTED_CONCURRENT_CONFLICT: status.HTTP_409_CONFLICT,
    Outcome.REJECTED_UNKNOWN_SUBMITTER: status.HTTP_404_NOT_FOUND,
    Outcome.TRANSPORT_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class DailyStateResponse(BaseModel):
    service_number: str
    run_date: date
    count: int
    total_distance_km: Decimal
    remaining_km: Decimal
    max_entries_per_day: int
    daily_ceiling_km: Decimal
    can_submit: bool
    admission: AdmissionResult | None = None


class AdminLoginRequest(BaseModel):
    service_number: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AdminLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    service_number: str
    name: str


class StatusUpdateRequest(BaseModel):
    status: ReviewStatus
    rejection_reason: str | None = None


class AdminStatusRequest(BaseModel):
    is_admin: bool
    password: str | None = None
