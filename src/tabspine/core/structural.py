"""Builders for structural change requests.

Structural changes (new tabs, inserted/removed columns, renames) are sent
as a list of request objects in one ``structural_update`` call.  The
payloads follow the Sheets v4 ``spreadsheets:batchUpdate`` vocabulary so
``HttpTransport`` can forward them unchanged and ``InMemoryTransport`` can
interpret them.
"""

from __future__ import annotations

from typing import Any


def add_tab(title: str) -> dict[str, Any]:
    return {"addSheet": {"properties": {"title": title}}}


def insert_column(tab_id: int, index: int) -> dict[str, Any]:
    return {
        "insertDimension": {
            "range": {
                "sheetId": tab_id,
                "dimension": "COLUMNS",
                "startIndex": index,
                "endIndex": index + 1,
            },
            "inheritFromBefore": False,
        }
    }


def delete_column(tab_id: int, index: int) -> dict[str, Any]:
    return {
        "deleteDimension": {
            "range": {
                "sheetId": tab_id,
                "dimension": "COLUMNS",
                "startIndex": index,
                "endIndex": index + 1,
            }
        }
    }


def set_header_cell(tab_id: int, index: int, value: str) -> dict[str, Any]:
    """Write ``value`` into row 1 of column ``index``."""
    return {
        "updateCells": {
            "rows": [{"values": [{"userEnteredValue": {"stringValue": value}}]}],
            "start": {"sheetId": tab_id, "rowIndex": 0, "columnIndex": index},
            "fields": "userEnteredValue",
        }
    }


def rename_tab(tab_id: int, title: str) -> dict[str, Any]:
    return {
        "updateSheetProperties": {
            "properties": {"sheetId": tab_id, "title": title},
            "fields": "title",
        }
    }
