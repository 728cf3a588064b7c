from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, LargeBinary, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Constraint names are matched when translating IntegrityError into ledger conflicts
UQ_RUN_DAY_SLOT = "uq_run_entries_submitter_date_slot"
UQ_RUN_EVIDENCE_FINGERPRINT = "uq_run_entries_evidence_fingerprint"
UQ_ROSTER_SERVICE_NUMBER = "uq_roster_members_service_number"


class Base(DeclarativeBase):
    """Base class for all database models."""


class RosterMember(Base):
    """Registered identity that may log runs.

    Stores:
    - service_number: normalized identifier (unique)
    - name, rank, station: profile fields denormalized onto run entries
    - email, phone: contact fields (optional)
    - is_admin / admin_password_hash: per-member admin credentials
    """

    __tablename__ = "roster_members"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    service_number: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    rank: Mapped[str] = mapped_column(String, nullable=False, default="")
    email: Mapped[str] = mapped_column(String, nullable=False, default="")
    phone: Mapped[str] = mapped_column(String, nullable=False, default="")
    station: Mapped[str] = mapped_column(String, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("service_number", name=UQ_ROSTER_SERVICE_NUMBER),)


class RunEntry(Base):
    """One logged run.

    Entries are appended only through admission. Admins may edit, review or
    delete them without invariant checks.

    Constraints:
    - (submitter_id, run_date, day_slot) is unique. Each admitted entry claims the
      next slot for its day, so two writers admitted from the same snapshot
      collide here instead of both landing.
    - evidence_fingerprint is unique across the whole ledger.
    - day_slot is NULL for entries that no longer hold a slot (rejected or
      moved by an admin); NULLs never collide.
    """

    __tablename__ = "run_entries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    submitter_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    station: Mapped[str] = mapped_column(String, nullable=False, default="")
    run_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    distance_km: Mapped[Decimal] = mapped_column(Numeric(7, 2, asdecimal=True), nullable=False)
    evidence_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    day_slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")  # pending | approved | rejected
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_by_name: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    evidence: Mapped[RunEvidence | None] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        uselist=False,
    )

    __table_args__ = (
        UniqueConstraint("submitter_id", "run_date", "day_slot", name=UQ_RUN_DAY_SLOT),
        UniqueConstraint("evidence_fingerprint", name=UQ_RUN_EVIDENCE_FINGERPRINT),
        Index("idx_run_entries_submitter_date", "submitter_id", "run_date"),  # Daily state query
    )


class RunEvidence(Base):
    """Evidence image attached to a run entry, stored with the entry in one transaction."""

    __tablename__ = "run_evidence"

    entry_id: Mapped[str] = mapped_column(String, ForeignKey("run_entries.id", ondelete="CASCADE"), primary_key=True)
    mime_type: Mapped[str] = mapped_column(String, nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    entry: Mapped[RunEntry] = relationship(back_populates="evidence")
