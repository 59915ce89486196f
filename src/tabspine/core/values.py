"""Cell value helpers.

Stores hand back whatever the user typed: ISO dates, spreadsheet serial
dates, amounts with currency symbols.  These helpers normalise such cells
and generate time-sortable record ids.

Examples:
    >>> normalize_date("2024-03-01")
    '2024-03-01'
    >>> normalize_date(45352)
    '2024-03-01'
    >>> parse_amount("$1,234.50")
    1234.5
    >>> find_missing_headers(["ID", "Name"], ["id", "name", "email"])
    ['email']
"""

from __future__ import annotations

import random
import re
import time
from datetime import UTC, date, datetime, timedelta
from typing import Any

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_AMOUNT_STRIP_RE = re.compile(r"[$,\s]")
# Serial day 0 of the spreadsheet calendar
_SERIAL_EPOCH = date(1899, 12, 30)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 text."""
    return datetime.now(UTC).isoformat()


def is_valid_date(value: str) -> bool:
    """True for ``YYYY-MM-DD`` text."""
    return bool(_ISO_DATE_RE.match(value))


def serial_to_iso_date(serial: float) -> str:
    """Spreadsheet serial day number to ``YYYY-MM-DD``."""
    return (_SERIAL_EPOCH + timedelta(days=int(serial))).isoformat()


def try_repair_date(value: str) -> str | None:
    """Return an ISO date for ISO text or a plausible serial number, else None."""
    stripped = value.strip()
    if _ISO_DATE_RE.match(stripped):
        return stripped
    try:
        num = float(_AMOUNT_STRIP_RE.sub("", stripped))
    except ValueError:
        return None
    if 0 < num < 1_000_000:
        return serial_to_iso_date(num)
    return None


def normalize_date(value: Any) -> str | None:
    """Normalise a date cell (ISO text or serial number) to ``YYYY-MM-DD``."""
    if value is None or isinstance(value, bool):
        return None
    return try_repair_date(str(value))


def parse_amount(value: Any) -> float | None:
    """Parse ``"$1,234.50"``-style cells; None when not a number."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if value == value else None
    try:
        return float(_AMOUNT_STRIP_RE.sub("", str(value if value is not None else "")))
    except ValueError:
        return None


def find_missing_headers(actual: list[str], required: list[str]) -> list[str]:
    """Required headers absent from ``actual`` (case-insensitive)."""
    present = {h.strip().lower() for h in actual}
    return [h for h in required if h.lower() not in present]


def generate_id() -> str:
    """Time-sortable 26-char id (ULID layout, Crockford base32)."""
    timestamp_chars = _encode_base32(int(time.time() * 1000), 10)
    random_part = "".join(random.choices(_ENCODING, k=16))
    return timestamp_chars + random_part


_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _encode_base32(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, rem = divmod(value, len(_ENCODING))
        chars.append(_ENCODING[rem])
    return "".join(reversed(chars))


__all__ = [
    "utc_now_iso",
    "is_valid_date",
    "serial_to_iso_date",
    "try_repair_date",
    "normalize_date",
    "parse_amount",
    "find_missing_headers",
    "generate_id",
]
