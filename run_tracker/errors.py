"""Exception types raised at the storage and authorization seams.

Admission and submission outcomes are never raised; they are returned as typed
results (see run_tracker.runs.types). These exceptions cover the places where a
collaborator fails or a caller is not allowed to act.
"""


class RunTrackerError(Exception):
    """Base class for domain errors. Session scopes roll back without logging them as DB errors."""


class LedgerError(RunTrackerError):
    pass


class LedgerConflictError(LedgerError):
    """Raised when an append or update violates a ledger uniqueness constraint.

    Attributes:
        constraint: "day_slot" when a concurrent writer claimed the same admission
            slot, "evidence_fingerprint" when the evidence is already on file.
    """

    def __init__(self, constraint: str, message: str):
        self.constraint = constraint
        super().__init__(message)


class StoreUnavailableError(RunTrackerError):
    """Raised when the store cannot be reached or the statement fails in transit."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class EntryNotFoundError(LedgerError):
    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Run {entry_id} not found")


class RosterConflictError(RunTrackerError):
    """Raised when a service number is already registered to another member."""


class MemberNotFoundError(RunTrackerError):
    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Member {member_id} not found")


class AdminAuthorizationError(RunTrackerError):
    """Raised when an administrative action is attempted without a valid capability token."""
