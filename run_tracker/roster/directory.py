"""Identity directory backed by the roster table.

Resolves service numbers to submitter profiles and carries the admin-only
roster management operations (register, edit, remove, grant admin).
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError

from run_tracker.core.password import hash_password
from run_tracker.db.models import RosterMember
from run_tracker.db.session import SessionFactory, get_session
from run_tracker.errors import MemberNotFoundError, RosterConflictError, StoreUnavailableError
from run_tracker.roster.identifiers import is_complete_service_number, normalize_service_number
from run_tracker.roster.types import AdminCredentials, MemberInput, MemberView, SubmitterProfile


class IdentityDirectory:
    def __init__(self, session_factory: SessionFactory = get_session):
        self._session_factory = session_factory

    def lookup(self, service_number: str) -> SubmitterProfile | None:
        """Resolve a service number to a profile.

        Args:
            service_number: Raw or normalized service number

        Returns:
            SubmitterProfile, or None when no member is registered under it

        Raises:
            StoreUnavailableError: If the roster cannot be read
        """
        normalized = normalize_service_number(service_number)
        if not is_complete_service_number(normalized):
            return None

        try:
            with self._session_factory() as session:
                member = session.execute(select(RosterMember).where(RosterMember.service_number == normalized)).scalar_one_or_none()
                if member is None:
                    return None
                return SubmitterProfile(
                    service_number=member.service_number,
                    name=member.name,
                    station=member.station,
                    rank=member.rank,
                )
        except DBAPIError as e:
            logger.warning(f"[ROSTER] Lookup failed for service_number={normalized}: {e}")
            raise StoreUnavailableError("roster_lookup", str(e)) from e

    def admin_credentials(self, service_number: str) -> AdminCredentials | None:
        """Read the admin flag and stored password of a member.

        Raises:
            StoreUnavailableError: If the roster cannot be read
        """
        normalized = normalize_service_number(service_number)
        if not is_complete_service_number(normalized):
            return None
        try:
            with self._session_factory() as session:
                member = session.execute(select(RosterMember).where(RosterMember.service_number == normalized)).scalar_one_or_none()
                if member is None:
                    return None
                return AdminCredentials(
                    service_number=member.service_number,
                    name=member.name,
                    is_admin=member.is_admin,
                    password_hash=member.admin_password_hash,
                )
        except DBAPIError as e:
            logger.warning(f"[ROSTER] Admin credential read failed for service_number={normalized}: {e}")
            raise StoreUnavailableError("admin_credentials", str(e)) from e

    def admin_emails(self) -> list[str]:
        """Email addresses of every admin with a usable address on file."""
        try:
            with self._session_factory() as session:
                emails = session.execute(select(RosterMember.email).where(RosterMember.is_admin.is_(True))).scalars().all()
        except DBAPIError as e:
            logger.warning(f"[ROSTER] Admin email read failed: {e}")
            raise StoreUnavailableError("admin_emails", str(e)) from e
        return sorted({email.strip() for email in emails if email and "@" in email})

    def list_members(self) -> list[MemberView]:
        with self._session_factory() as session:
            members = session.execute(select(RosterMember).order_by(RosterMember.service_number)).scalars().all()
            return [MemberView.model_validate(m) for m in members]

    def find_member(self, service_number: str) -> MemberView | None:
        normalized = normalize_service_number(service_number)
        if not is_complete_service_number(normalized):
            return None
        with self._session_factory() as session:
            member = session.execute(select(RosterMember).where(RosterMember.service_number == normalized)).scalar_one_or_none()
            return MemberView.model_validate(member) if member else None

    def get_member(self, member_id: str) -> MemberView:
        with self._session_factory() as session:
            member = session.get(RosterMember, member_id)
            if member is None:
                raise MemberNotFoundError(member_id)
            return MemberView.model_validate(member)

    def add_member(self, data: MemberInput) -> MemberView:
        """Register a new member.

        Raises:
            RosterConflictError: If the service number is already registered
            ValueError: If the service number normalizes to nothing usable
        """
        service_number = self._require_service_number(data.service_number)

        with self._session_factory() as session:
            existing = session.execute(select(RosterMember.id).where(RosterMember.service_number == service_number)).first()
            if existing:
                raise RosterConflictError("A user with this service number already exists")

            member = RosterMember(
                service_number=service_number,
                name=data.name,
                rank=data.rank,
                email=data.email,
                phone=data.phone,
                station=data.station,
            )
            session.add(member)
            try:
                session.flush()
            except IntegrityError as e:
                session.rollback()
                raise RosterConflictError("A user with this service number already exists") from e

            logger.info(f"[ROSTER] Member registered: id={member.id}, service_number={service_number}")
            return MemberView.model_validate(member)

    def update_member(self, member_id: str, data: MemberInput) -> MemberView:
        """Replace a member's profile fields.

        Raises:
            MemberNotFoundError: If no member has this id
            RosterConflictError: If the new service number belongs to another member
        """
        service_number = self._require_service_number(data.service_number)

        with self._session_factory() as session:
            member = session.get(RosterMember, member_id)
            if member is None:
                raise MemberNotFoundError(member_id)

            clash = session.execute(
                select(RosterMember.id).where(
                    RosterMember.service_number == service_number,
                    RosterMember.id != member_id,
                )
            ).first()
            if clash:
                raise RosterConflictError("Another user with this service number already exists")

            member.service_number = service_number
            member.name = data.name
            member.rank = data.rank
            member.email = data.email
            member.phone = data.phone
            member.station = data.station
            session.flush()

            logger.info(f"[ROSTER] Member updated: id={member_id}, service_number={service_number}")
            return MemberView.model_validate(member)

    def delete_member(self, member_id: str) -> None:
        with self._session_factory() as session:
            member = session.get(RosterMember, member_id)
            if member is None:
                raise MemberNotFoundError(member_id)
            session.delete(member)
            logger.info(f"[ROSTER] Member deleted: id={member_id}, service_number={member.service_number}")

    def set_admin_status(self, member_id: str, is_admin: bool, password: str | None = None) -> MemberView:
        """Grant or revoke admin rights.

        A new password replaces the stored hash; revoking admin clears it.
        """
        with self._session_factory() as session:
            member = session.get(RosterMember, member_id)
            if member is None:
                raise MemberNotFoundError(member_id)

            member.is_admin = is_admin
            if not is_admin:
                member.admin_password_hash = None
            elif password:
                member.admin_password_hash = hash_password(password)
            session.flush()

            logger.info(f"[ROSTER] Admin status changed: id={member_id}, is_admin={is_admin}, password_set={bool(member.admin_password_hash)}")
            return MemberView.model_validate(member)

    def upgrade_admin_password(self, service_number: str, password: str) -> None:
        """Replace a legacy or outdated stored admin password with a fresh bcrypt hash."""
        normalized = normalize_service_number(service_number)
        with self._session_factory() as session:
            member = session.execute(select(RosterMember).where(RosterMember.service_number == normalized)).scalar_one_or_none()
            if member is None:
                raise MemberNotFoundError(normalized)
            member.admin_password_hash = hash_password(password)
            session.flush()
        logger.info(f"[ROSTER] Admin password rehashed: service_number={normalized}")

    @staticmethod
    def _require_service_number(raw: str) -> str:
        service_number = normalize_service_number(raw)
        if not is_complete_service_number(service_number):
            raise ValueError(f"Invalid service number: {raw!r}")
        return service_number
