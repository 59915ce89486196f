"""
Transport protocol — the boundary between the engine and the remote store.

The engine never speaks HTTP.  Everything it needs from the store is one of
the primitives below; any object with this shape works (``HttpTransport``
in production, ``InMemoryTransport`` in tests and local development).

Architecture:
    ::

        Transport Protocol:
        ┌──────────────────────────────────────────────────────────────┐
        │ read_range(range, render)    → rows                          │
        │ batch_read(ranges, render)   → rows per range (one call)     │
        │ write_range(range, values)   → overwrite cells               │
        │ append_range(range, values)  → append after last data row    │
        │ clear_range(range)           → blank cells                   │
        │ batch_clear(ranges)          → blank many ranges (one call)  │
        │ batch_write(data)            → overwrite many (one call)     │
        │ structural_update(requests)  → add/rename tabs, columns      │
        │ fetch_metadata()             → [TabInfo(tab_id, title)]      │
        │ aclose()                     → release connections           │
        └──────────────────────────────────────────────────────────────┘

    Every primitive is exactly one round trip.  Failures surface as
    ``TabspineError`` subclasses (see ``tabspine.core.errors``).

Guardrails:
    ❌ DON'T: Retry inside a transport except for the one credential refresh
    ✅ DO: Surface RateLimitError / NetworkError with their context

Tags:
    protocol, transport, contract, tabspine
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

Rows = list[list[Any]]


class ValueRender(str, Enum):
    """How cell values come back from a read."""

    FORMATTED = "FORMATTED_VALUE"
    UNFORMATTED = "UNFORMATTED_VALUE"


@dataclass(frozen=True)
class TabInfo:
    """Name ↔ physical id mapping for one tab."""

    tab_id: int
    title: str


@runtime_checkable
class Transport(Protocol):
    """Minimal async contract for a range-addressable tabular store."""

    async def read_range(
        self, range_: str, render: ValueRender = ValueRender.FORMATTED
    ) -> Rows: ...

    async def batch_read(
        self, ranges: Sequence[str], render: ValueRender = ValueRender.FORMATTED
    ) -> list[Rows]:
        """Read several ranges in one call; results follow ``ranges`` order."""
        ...

    async def write_range(self, range_: str, values: Rows) -> None: ...

    async def append_range(self, range_: str, values: Rows) -> None: ...

    async def clear_range(self, range_: str) -> None: ...

    async def batch_clear(self, ranges: Sequence[str]) -> None: ...

    async def batch_write(self, data: Sequence[tuple[str, Rows]]) -> None: ...

    async def structural_update(self, requests: Sequence[dict[str, Any]]) -> None: ...

    async def fetch_metadata(self) -> list[TabInfo]: ...

    async def aclose(self) -> None: ...


__all__ = ["Rows", "ValueRender", "TabInfo", "Transport"]
