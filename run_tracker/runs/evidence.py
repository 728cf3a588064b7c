"""Evidence validation and fingerprinting.

Duplicate detection is byte-level only: two uploads are the same evidence when
their SHA-256 digests match. Fingerprints are unique across the whole ledger,
not per submitter.
"""

from __future__ import annotations

import hashlib

from sqlalchemy.orm import Session

from run_tracker.runs.ledger import RunLedger
from run_tracker.runs.types import DuplicateOrigin, RunPolicy


def fingerprint(content: bytes) -> str:
    """SHA-256 hex digest of the raw evidence bytes."""
    return hashlib.sha256(content).hexdigest()


class EvidenceDeduplicator:
    def __init__(self, ledger: RunLedger, policy: RunPolicy):
        self.ledger = ledger
        self.policy = policy

    def validate(self, content: bytes | None, mime_type: str | None) -> str | None:
        """Check evidence presence, type and size.

        Returns:
            A rejection message, or None when the evidence is acceptable.
            Missing evidence is acceptable only when the policy waives proof.
        """
        if content is None:
            return "Evidence image is required" if self.policy.evidence_required else None
        if not mime_type or not mime_type.lower().startswith("image/"):
            return "Please select an image file"
        if len(content) == 0:
            return "Evidence image is empty"
        if len(content) > self.policy.evidence_max_bytes:
            limit_mb = self.policy.evidence_max_bytes / (1024 * 1024)
            return f"Image must be less than {limit_mb:g}MB"
        return None

    def fingerprint(self, content: bytes) -> str:
        return fingerprint(content)

    def find_original(self, session: Session, evidence_fingerprint: str) -> DuplicateOrigin | None:
        """Earlier entry, whatever its status, that already carries this fingerprint."""
        return self.ledger.find_by_fingerprint(session, evidence_fingerprint)

    def is_duplicate(self, session: Session, evidence_fingerprint: str) -> bool:
        return self.find_original(session, evidence_fingerprint) is not None
