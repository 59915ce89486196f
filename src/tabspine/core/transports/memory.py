"""
In-memory transport.

Manifesto:
    Test suites and local development need a store that behaves like the
    real one (A1 ranges, header rows, append-after-last-row, structural
    requests) without network access or credentials.

Every primitive is recorded in ``calls`` so tests can assert exactly which
round trips an operation made.  Each call yields to the event loop first,
so concurrent callers interleave the way they would against a real store.

Examples:
    >>> transport = InMemoryTransport({"Orders": [["id", "customer"]]})
    >>> transport.titles
    ['Orders']

Tags:
    transport, in-memory, testing, asyncio, tabspine
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from tabspine.core.errors import StoreError
from tabspine.core.protocols import Rows, TabInfo, ValueRender
from tabspine.core.ranges import A1Range, parse_range

__all__ = ["InMemoryTransport", "TransportCall"]


@dataclass(frozen=True)
class TransportCall:
    """One recorded primitive invocation."""

    method: str
    args: tuple[Any, ...] = ()


@dataclass
class _Tab:
    tab_id: int
    title: str
    grid: list[list[Any]] = field(default_factory=list)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _format(value: Any) -> Any:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return "" if value is None else str(value)


def _trim_row(cells: list[Any], render: ValueRender) -> list[Any]:
    end = len(cells)
    while end and _is_empty(cells[end - 1]):
        end -= 1
    if render is ValueRender.FORMATTED:
        return [_format(v) for v in cells[:end]]
    return ["" if v is None else v for v in cells[:end]]


class InMemoryTransport:
    """Dict-of-grids store implementing the ``Transport`` protocol.

    Args:
        tabs: Initial tabs, title → rows (row 1 is usually the header).
        latency: Seconds each primitive sleeps before running.
    """

    def __init__(
        self,
        tabs: Mapping[str, Rows] | None = None,
        *,
        latency: float = 0.0,
    ) -> None:
        self._tabs: dict[int, _Tab] = {}
        self._next_id = 0
        self.latency = latency
        self.calls: list[TransportCall] = []
        self._failures: dict[str, list[BaseException]] = {}
        self.closed = False
        for title, rows in (tabs or {}).items():
            self.add_tab(title, rows)

    # ── Test helpers ─────────────────────────────────────────────

    def add_tab(self, title: str, rows: Rows | None = None) -> int:
        """Create a tab synchronously (fixture setup; not recorded)."""
        if self._find(title) is not None:
            raise StoreError(f'A sheet with the name "{title}" already exists.', status=400)
        tab = _Tab(self._next_id, title, copy.deepcopy(list(rows or [])))
        self._tabs[tab.tab_id] = tab
        self._next_id += 1
        return tab.tab_id

    @property
    def titles(self) -> list[str]:
        return [tab.title for tab in self._tabs.values()]

    def snapshot(self, title: str) -> Rows:
        """Full grid of a tab with trailing blanks trimmed."""
        tab = self._tab(title)
        rows = [_trim_row(list(row), ValueRender.UNFORMATTED) for row in tab.grid]
        while rows and not rows[-1]:
            rows.pop()
        return rows

    @property
    def call_names(self) -> list[str]:
        return [call.method for call in self.calls]

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call.method == method)

    def reset_calls(self) -> None:
        self.calls.clear()

    def fail_next(self, method: str, error: BaseException) -> None:
        """Make the next ``method`` call raise ``error`` (after being recorded)."""
        self._failures.setdefault(method, []).append(error)

    # ── Internals ────────────────────────────────────────────────

    async def _record(self, method: str, *args: Any) -> None:
        self.calls.append(TransportCall(method, copy.deepcopy(args)))
        await asyncio.sleep(self.latency)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def _find(self, title: str, tabs: Mapping[int, _Tab] | None = None) -> _Tab | None:
        for tab in (tabs if tabs is not None else self._tabs).values():
            if tab.title == title:
                return tab
        return None

    def _tab(self, title: str) -> _Tab:
        tab = self._find(title)
        if tab is None:
            raise StoreError(f"Unable to parse range: {title}", status=400)
        return tab

    @staticmethod
    def _set(tab: _Tab, row: int, col: int, value: Any) -> None:
        while len(tab.grid) <= row:
            tab.grid.append([])
        cells = tab.grid[row]
        while len(cells) <= col:
            cells.append("")
        cells[col] = value

    @staticmethod
    def _row_stop(tab: _Tab, rng: A1Range) -> int:
        if rng.end_row is None:
            return len(tab.grid)
        return min(rng.end_row + 1, len(tab.grid))

    def _put(self, tab: _Tab, rng: A1Range, top: int, values: Rows) -> None:
        width = None if rng.end_col is None else rng.end_col - rng.start_col + 1
        height = None if rng.end_row is None else rng.end_row - top + 1
        if height is not None and len(values) > height:
            raise StoreError(
                f"Tried writing {len(values)} rows into a {height}-row range", status=400
            )
        for i, row in enumerate(values):
            if width is not None and len(row) > width:
                raise StoreError(
                    f"Tried writing {len(row)} columns into a {width}-column range",
                    status=400,
                )
            for j, value in enumerate(row):
                if value is not None:
                    self._set(tab, top + i, rng.start_col + j, value)

    def _clear(self, range_: str) -> None:
        rng = parse_range(range_)
        tab = self._tab(rng.sheet)
        for r in range(rng.start_row, self._row_stop(tab, rng)):
            cells = tab.grid[r]
            stop = len(cells) if rng.end_col is None else min(rng.end_col + 1, len(cells))
            for c in range(rng.start_col, stop):
                cells[c] = ""

    def _write(self, range_: str, values: Rows) -> None:
        rng = parse_range(range_)
        self._put(self._tab(rng.sheet), rng, rng.start_row, values)

    def _read(self, range_: str, render: ValueRender) -> Rows:
        rng = parse_range(range_)
        tab = self._tab(rng.sheet)
        rows = []
        for r in range(rng.start_row, self._row_stop(tab, rng)):
            cells = tab.grid[r]
            stop = len(cells) if rng.end_col is None else rng.end_col + 1
            rows.append(_trim_row(list(cells[rng.start_col : stop]), render))
        while rows and not rows[-1]:
            rows.pop()
        return copy.deepcopy(rows)

    # ── Values ───────────────────────────────────────────────────

    async def read_range(
        self, range_: str, render: ValueRender = ValueRender.FORMATTED
    ) -> Rows:
        await self._record("read_range", range_, ValueRender(render))
        return self._read(range_, ValueRender(render))

    async def batch_read(
        self, ranges: Sequence[str], render: ValueRender = ValueRender.FORMATTED
    ) -> list[Rows]:
        await self._record("batch_read", tuple(ranges), ValueRender(render))
        return [self._read(r, ValueRender(render)) for r in ranges]

    async def write_range(self, range_: str, values: Rows) -> None:
        await self._record("write_range", range_, values)
        self._write(range_, values)

    async def append_range(self, range_: str, values: Rows) -> None:
        await self._record("append_range", range_, values)
        rng = parse_range(range_)
        tab = self._tab(rng.sheet)
        last = rng.start_row - 1
        for r in range(rng.start_row, self._row_stop(tab, rng)):
            cells = tab.grid[r]
            stop = len(cells) if rng.end_col is None else rng.end_col + 1
            if any(not _is_empty(v) for v in cells[rng.start_col : stop]):
                last = r
        top = last + 1
        self._put(tab, A1Range(rng.sheet, top, rng.start_col, None, rng.end_col), top, values)

    async def clear_range(self, range_: str) -> None:
        await self._record("clear_range", range_)
        self._clear(range_)

    async def batch_clear(self, ranges: Sequence[str]) -> None:
        await self._record("batch_clear", tuple(ranges))
        for range_ in ranges:
            self._clear(range_)

    async def batch_write(self, data: Sequence[tuple[str, Rows]]) -> None:
        await self._record("batch_write", tuple(data))
        for range_, values in data:
            self._write(range_, values)

    # ── Structure ────────────────────────────────────────────────

    async def structural_update(self, requests: Sequence[dict[str, Any]]) -> None:
        """Apply all requests or none of them."""
        await self._record("structural_update", tuple(requests))
        tabs = copy.deepcopy(self._tabs)
        next_id = self._next_id
        for request in requests:
            (kind, body), = request.items()
            if kind == "addSheet":
                title = body["properties"]["title"]
                if self._find(title, tabs) is not None:
                    raise StoreError(
                        f'A sheet with the name "{title}" already exists.', status=400
                    )
                tabs[next_id] = _Tab(next_id, title)
                next_id += 1
            elif kind in ("insertDimension", "deleteDimension"):
                span = body["range"]
                tab = self._by_id(tabs, span["sheetId"])
                start, end = span["startIndex"], span["endIndex"]
                if span["dimension"] == "ROWS":
                    if kind == "insertDimension":
                        tab.grid[start:start] = [[] for _ in range(end - start)]
                    else:
                        del tab.grid[start:end]
                else:
                    for cells in tab.grid:
                        if kind == "insertDimension" and len(cells) > start:
                            cells[start:start] = [""] * (end - start)
                        elif kind == "deleteDimension":
                            del cells[start:end]
            elif kind == "updateCells":
                start = body["start"]
                tab = self._by_id(tabs, start["sheetId"])
                for i, row in enumerate(body["rows"]):
                    for j, cell in enumerate(row["values"]):
                        value = next(iter(cell["userEnteredValue"].values()))
                        self._set(tab, start["rowIndex"] + i, start["columnIndex"] + j, value)
            elif kind == "updateSheetProperties":
                props = body["properties"]
                tab = self._by_id(tabs, props["sheetId"])
                clash = self._find(props["title"], tabs)
                if clash is not None and clash is not tab:
                    raise StoreError(
                        f'A sheet with the name "{props["title"]}" already exists.',
                        status=400,
                    )
                tab.title = props["title"]
            else:
                raise StoreError(f"Unsupported request: {kind}", status=400)
        self._tabs = tabs
        self._next_id = next_id

    @staticmethod
    def _by_id(tabs: Mapping[int, _Tab], tab_id: int) -> _Tab:
        try:
            return tabs[tab_id]
        except KeyError:
            raise StoreError(f"No grid with id: {tab_id}", status=400) from None

    async def fetch_metadata(self) -> list[TabInfo]:
        await self._record("fetch_metadata")
        return [TabInfo(tab.tab_id, tab.title) for tab in self._tabs.values()]

    async def aclose(self) -> None:
        self.closed = True
