"""Administrative path over the run ledger.

Admins may correct history: edits and deletes bypass admission entirely and
write straight through the ledger. The only gate is the capability token.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from run_tracker.core.auth_jwt import AdminPrincipal, decode_admin_token
from run_tracker.errors import AdminAuthorizationError
from run_tracker.roster.identifiers import is_complete_service_number, normalize_service_number
from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.types import EntryUpdate, ReviewStatus, RunEntryView, StoredEvidence

TokenVerifier = Callable[[str], AdminPrincipal]


class AdminRunService:
    def __init__(self, ledger: RunLedger, verify_token: TokenVerifier = decode_admin_token):
        self.ledger = ledger
        self._verify_token = verify_token

    def authorize(self, token: str | None) -> AdminPrincipal:
        """Gate every administrative operation by resolving the capability token to the acting admin.

        Raises:
            AdminAuthorizationError: If the token is missing or invalid
        """
        if not token:
            raise AdminAuthorizationError("Admin token required")
        try:
            return self._verify_token(token)
        except ValueError as e:
            raise AdminAuthorizationError(str(e)) from e

    def update_entry(self, token: str | None, entry_id: str, changes: EntryUpdate) -> RunEntryView:
        admin = self.authorize(token)
        if changes.submitter_id is not None:
            normalized = normalize_service_number(changes.submitter_id)
            if not is_complete_service_number(normalized):
                raise ValueError(f"Invalid service number: {changes.submitter_id!r}")
            changes = changes.model_copy(update={"submitter_id": normalized})
        logger.info(f"[ADMIN] Entry update by {admin.service_number}: id={entry_id}")
        return self.ledger.update(entry_id, changes)

    def delete_entry(self, token: str | None, entry_id: str) -> None:
        admin = self.authorize(token)
        logger.info(f"[ADMIN] Entry delete by {admin.service_number}: id={entry_id}")
        self.ledger.delete(entry_id)

    def set_status(
        self,
        token: str | None,
        entry_id: str,
        status: ReviewStatus,
        rejection_reason: str | None = None,
    ) -> RunEntryView:
        admin = self.authorize(token)
        logger.info(f"[ADMIN] Entry review by {admin.service_number}: id={entry_id}, status={status.value}")
        return self.ledger.set_status(
            entry_id,
            status,
            rejection_reason=rejection_reason,
            reviewer_id=admin.service_number,
            reviewer_name=admin.name,
        )

    def get_evidence(self, token: str | None, entry_id: str) -> StoredEvidence | None:
        self.authorize(token)
        return self.ledger.get_evidence(entry_id)
