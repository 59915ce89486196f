"""A1-notation range helpers.

Tables are addressed by range strings such as ``"Orders!A2:C"``.  This
module converts between column indexes and letters, derives a table's
read/write/clear ranges from its column count, and parses range strings
back into bounds (used by the in-memory transport).

Examples:
    >>> column_letter(0), column_letter(25), column_letter(26)
    ('A', 'Z', 'AA')
    >>> table_ranges("Orders", 3)
    ('Orders!A2:C', 'Orders!A1:C', 'Orders!A2:C')
    >>> parse_range("Orders!A2:C")
    A1Range(sheet='Orders', start_row=1, start_col=0, end_row=None, end_col=2)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from tabspine.core.errors import StoreError

_CELL_RE = re.compile(r"^([A-Za-z]*)(\d*)$")
_PLAIN_SHEET_RE = re.compile(r"^[A-Za-z0-9_]+$")


def column_letter(index: int) -> str:
    """0-based column index to letters (``0 -> A``, ``26 -> AA``)."""
    if index < 0:
        raise ValueError(f"column index must be >= 0, got {index}")
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def column_index(letters: str) -> int:
    """Column letters to a 0-based index (``A -> 0``, ``AA -> 26``)."""
    if not letters or not letters.isalpha():
        raise ValueError(f"invalid column letters: {letters!r}")
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def quote_sheet(name: str) -> str:
    """Quote a sheet name for use in a range when it isn't a plain word."""
    if _PLAIN_SHEET_RE.match(name):
        return name
    return "'" + name.replace("'", "''") + "'"


def table_ranges(sheet: str, column_count: int) -> tuple[str, str, str]:
    """Return ``(read_range, write_range, clear_range)`` for a table.

    Row 1 holds the header; data starts at row 2.
    """
    last = column_letter(column_count - 1)
    prefix = quote_sheet(sheet)
    return (
        f"{prefix}!A2:{last}",
        f"{prefix}!A1:{last}",
        f"{prefix}!A2:{last}",
    )


@dataclass(frozen=True)
class A1Range:
    """Parsed range.  Indexes are 0-based; ``None`` ends are unbounded."""

    sheet: str
    start_row: int = 0
    start_col: int = 0
    end_row: int | None = None
    end_col: int | None = None


def _split_sheet(text: str) -> tuple[str, str]:
    if text.startswith("'"):
        name: list[str] = []
        i = 1
        while i < len(text):
            if text[i] == "'":
                if text[i + 1 : i + 2] == "'":
                    name.append("'")
                    i += 2
                    continue
                break
            name.append(text[i])
            i += 1
        else:
            raise StoreError(f"Unable to parse range: {text}", status=400)
        rest = text[i + 1 :]
        if rest and not rest.startswith("!"):
            raise StoreError(f"Unable to parse range: {text}", status=400)
        return "".join(name), rest[1:]
    if "!" in text:
        sheet, cells = text.split("!", 1)
        return sheet, cells
    return text, ""


def _parse_cell(ref: str, text: str) -> tuple[int | None, int | None]:
    match = _CELL_RE.match(ref)
    if not match or (not match.group(1) and not match.group(2)):
        raise StoreError(f"Unable to parse range: {text}", status=400)
    letters, digits = match.groups()
    col = column_index(letters) if letters else None
    row = int(digits) - 1 if digits else None
    return row, col


def parse_range(text: str) -> A1Range:
    """Parse ``Sheet``, ``Sheet!A2:C``, ``Sheet!1:1``, ``Sheet!B3`` and friends."""
    sheet, cells = _split_sheet(text.strip())
    if not sheet:
        raise StoreError(f"Unable to parse range: {text}", status=400)
    if not cells:
        return A1Range(sheet=sheet)

    start_ref, _, end_ref = cells.partition(":")
    start_row, start_col = _parse_cell(start_ref, text)
    if not end_ref:
        # single cell, single column or single row
        return A1Range(
            sheet=sheet,
            start_row=start_row or 0,
            start_col=start_col or 0,
            end_row=start_row,
            end_col=start_col,
        )

    end_row, end_col = _parse_cell(end_ref, text)
    return A1Range(
        sheet=sheet,
        start_row=start_row or 0,
        start_col=start_col or 0,
        end_row=end_row,
        end_col=end_col,
    )


__all__ = [
    "A1Range",
    "column_letter",
    "column_index",
    "quote_sheet",
    "table_ranges",
    "parse_range",
]
