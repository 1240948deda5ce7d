# core/checksum.py
import datetime
from typing import Optional

_MASK64 = (1 << 64) - 1
_SIGN64 = 1 << 63

# Serialized in place of a missing due date; never equal to repr() of a float.
NO_DUE_DATE = "nil"


def _due_date_key(due_date: Optional[datetime.datetime]) -> str:
    if due_date is None:
        return NO_DUE_DATE
    if due_date.tzinfo is None:
        due_date = due_date.replace(tzinfo=datetime.timezone.utc)
    return repr(due_date.timestamp())


def compute_checksum(
    title: str,
    list_name: str,
    is_completed: bool,
    due_date: Optional[datetime.datetime],
) -> str:
    """
    Fingerprint of the mutable fields of a reminder.

    64-bit polynomial rolling hash (h = 31*h + codepoint, wrapping) over
    "title|list|true|<epoch seconds or nil>", rendered as 16 hex digits.
    Used for change detection only; it is not tamper resistant.
    """
    combined = "|".join(
        (
            title,
            list_name,
            "true" if is_completed else "false",
            _due_date_key(due_date),
        )
    )

    h = 0
    for ch in combined:
        h = (31 * h + ord(ch)) & _MASK64

    # Interpret as signed, then take the magnitude.
    if h & _SIGN64:
        h = (1 << 64) - h
    return f"{h:016x}"
