"""Roster data shapes exchanged with the identity directory."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubmitterProfile(BaseModel):
    """Resolved identity of a submitter, denormalized onto run entries."""

    service_number: str
    name: str
    station: str
    rank: str = ""


class MemberInput(BaseModel):
    """Fields an admin supplies when registering or editing a roster member."""

    service_number: str = Field(min_length=1)
    name: str = Field(min_length=1)
    station: str = Field(min_length=1)
    rank: str = ""
    email: str = ""
    phone: str = ""

    @field_validator("service_number", "name", "station", "rank", "email", "phone", mode="before")
    @classmethod
    def strip_text(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class MemberView(BaseModel):
    """Roster member as returned to admins. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    service_number: str
    name: str
    rank: str
    email: str
    phone: str
    station: str
    is_admin: bool
    created_at: datetime


class AdminCredentials(BaseModel):
    """What the credential validators need to know about a member."""

    service_number: str
    name: str
    is_admin: bool
    password_hash: str | None = None
