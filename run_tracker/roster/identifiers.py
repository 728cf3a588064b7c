"""Service number normalization.

Every entry point (submission, lookup, roster edits, admin login) runs raw input
through normalize_service_number so the ledger, the roster and credentials all
key on the same string.
"""

import re

from run_tracker.config.settings import settings

SERVICE_NUMBER_DIGITS = 4

_NON_DIGIT = re.compile(r"\D")


def normalize_service_number(raw: str | None, staff_prefixes: str | None = None) -> str:
    """Normalize a raw service number.

    Rules:
    - surrounding whitespace is dropped and letters are uppercased
    - a leading staff-class prefix (e.g. "C") is kept and the remainder is
      reduced to its digits, truncated to 4
    - otherwise the value is reduced to its digits, truncated to 4

    Args:
        raw: User-supplied identifier
        staff_prefixes: Allowed prefix characters. Defaults to STAFF_PREFIXES.

    Returns:
        Normalized identifier, or "" when nothing usable remains
    """
    if not raw:
        return ""
    prefixes = settings.staff_prefixes if staff_prefixes is None else staff_prefixes
    value = raw.strip().upper()
    if not value:
        return ""

    if value[0] in prefixes:
        digits = _NON_DIGIT.sub("", value[1:])[:SERVICE_NUMBER_DIGITS]
        return value[0] + digits

    return _NON_DIGIT.sub("", value)[:SERVICE_NUMBER_DIGITS]


def is_complete_service_number(service_number: str) -> bool:
    """True when a normalized identifier carries at least one digit."""
    return any(ch.isdigit() for ch in service_number)
