"""
Reference number formatting.

Document references read ``<PREFIX>-<YYYYMMDD>-<NNNN>``, e.g.
``RCP-20240115-0001``.  The day part is the UTC calendar day.  The sequence
is zero-padded to four digits and simply grows wider past 9999.
"""

import re
from datetime import date, datetime, timezone

SEQUENCE_WIDTH = 4

_REFERENCE_RE = re.compile(r"^(?P<prefix>[A-Z0-9]+)-(?P<day>\d{8})-(?P<seq>\d{4,})$")


def day_key(prefix: str, when: datetime | date) -> str:
    """``<PREFIX>-<YYYYMMDD>`` for the UTC day of ``when``."""
    if isinstance(when, datetime):
        if when.tzinfo is not None:
            when = when.astimezone(timezone.utc)
        when = when.date()
    return f"{prefix}-{when:%Y%m%d}"


def format_reference(prefix: str, when: datetime | date, sequence: int) -> str:
    if sequence <= 0:
        raise ValueError(f"Reference sequence must be positive, got {sequence}")
    return f"{day_key(prefix, when)}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_reference(reference: str) -> tuple[str, date, int]:
    """
    Split a reference into (prefix, day, sequence).

    Raises:
        ValueError: if the string is not a document reference.
    """
    match = _REFERENCE_RE.match(reference)
    if match is None:
        raise ValueError(f"Not a document reference: {reference!r}")
    day = datetime.strptime(match["day"], "%Y%m%d").date()
    return match["prefix"], day, int(match["seq"])
