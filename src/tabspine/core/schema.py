"""
Table schemas as plain data.

A ``TableSchema`` is an ordered list of ``Column`` definitions bound to one
physical tab.  Column order is the canonical row layout in both directions:
``parse_row`` reads cells left to right into a record, ``to_row`` writes a
record back in the same order.  Schemas are immutable once built.

Manifesto:
    The remote store knows nothing about types, keys or relations; it only
    stores grids of cells.  Everything the engine needs to treat a tab as a
    table lives here:

    - **Layout:** header names and the derived read/write/clear ranges
    - **Typing:** text, number, date-as-text, boolean coercion on read
    - **Identity:** at most one primary-key column
    - **Integrity:** required columns, defaults, foreign-key references

Architecture:
    ::

        TableSchema("Items", [...columns...])
        ├── headers        ["id", "orderId", "name"]
        ├── primary_key    "id"
        ├── relations      [Relation("orderId" → Orders.id)]
        ├── read_range     Items!A2:C   (data rows)
        ├── write_range    Items!A1:C   (header + data)
        └── clear_range    Items!A2:C   (data rows)

Examples:
    >>> orders = TableSchema("Orders", [
    ...     Column("id", primary_key=True),
    ...     Column("customer"),
    ... ])
    >>> orders.read_range
    'Orders!A2:B'
    >>> orders.parse_row(["o1", "Alice"])
    {'id': 'o1', 'customer': 'Alice'}
    >>> orders.to_row({"id": "o1", "customer": "Alice"})
    ['o1', 'Alice']

Tags:
    schema, table, columns, relations, tabspine
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tabspine.core.errors import SchemaError, ValidationError, ValidationIssue
from tabspine.core.logging import get_logger
from tabspine.core.ranges import table_ranges
from tabspine.core.values import serial_to_iso_date

logger = get_logger(__name__)

Record = dict[str, Any]


class _Missing:
    """Sentinel for "no default declared"."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class ColumnType(str, Enum):
    """Scalar cell types."""

    TEXT = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Reference:
    """Foreign-key target declared on a column."""

    table: str
    column: str


@dataclass(frozen=True)
class Relation:
    """Directed edge: ``source_column`` on the owning table → ``target_table.target_column``."""

    source_column: str
    target_table: str
    target_column: str


@dataclass(frozen=True)
class Column:
    """One column of a table.

    ``references`` accepts a ``Reference`` or a ``(table, column)`` pair.
    """

    name: str
    type: ColumnType = ColumnType.TEXT
    primary_key: bool = False
    optional: bool = False
    default: Any = MISSING
    references: Reference | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, ColumnType):
            object.__setattr__(self, "type", ColumnType(self.type))
        if self.references is not None and not isinstance(self.references, Reference):
            table, column = self.references
            object.__setattr__(self, "references", Reference(table, column))

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def parse(self, value: Any) -> Any:
        """Coerce one raw cell to this column's type."""
        if value is None or value == "":
            if self.has_default:
                return self.default
            if self.type is ColumnType.NUMBER:
                return None if self.optional else 0
            if self.type is ColumnType.BOOLEAN:
                return False
            return None if self.optional else ""

        if self.type is ColumnType.BOOLEAN:
            return value is True or value in ("TRUE", "true")
        if self.type is ColumnType.NUMBER:
            return _to_number(self.name, value)
        if self.type is ColumnType.DATE and isinstance(value, (int, float)) and not isinstance(value, bool):
            return serial_to_iso_date(value)
        return str(value)


def _to_number(column: str, value: Any) -> int | float | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        logger.warning("schema.unparseable_number", column=column, value=text)
        return None


@dataclass(frozen=True)
class TableSchema:
    """A registered logical table bound to one physical tab.

    Raises:
        SchemaError: empty name, no columns, duplicate column names, or
            more than one primary key.
    """

    name: str
    columns: Sequence[Column]
    append_supported: bool = True
    _by_name: Mapping[str, Column] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise SchemaError("Table name must be non-empty")
        columns = tuple(self.columns)
        if not columns:
            raise SchemaError(f'Table "{self.name}" has no columns')
        object.__setattr__(self, "columns", columns)

        by_name: dict[str, Column] = {}
        for col in columns:
            if not col.name:
                raise SchemaError(f'Table "{self.name}" has a column with an empty name')
            if col.name in by_name:
                raise SchemaError(f'Table "{self.name}" declares column "{col.name}" twice')
            by_name[col.name] = col
        object.__setattr__(self, "_by_name", by_name)

        keys = [col.name for col in columns if col.primary_key]
        if len(keys) > 1:
            raise SchemaError(
                f'Table "{self.name}" declares {len(keys)} primary keys: {", ".join(keys)}'
            )

    # -- Layout ------------------------------------------------------------

    @property
    def headers(self) -> list[str]:
        return [col.name for col in self.columns]

    @property
    def primary_key(self) -> str | None:
        for col in self.columns:
            if col.primary_key:
                return col.name
        return None

    @property
    def relations(self) -> list[Relation]:
        return [
            Relation(col.name, col.references.table, col.references.column)
            for col in self.columns
            if col.references is not None
        ]

    @property
    def read_range(self) -> str:
        return table_ranges(self.name, len(self.columns))[0]

    @property
    def write_range(self) -> str:
        return table_ranges(self.name, len(self.columns))[1]

    @property
    def clear_range(self) -> str:
        return table_ranges(self.name, len(self.columns))[2]

    def column(self, name: str) -> Column:
        try:
            return self._by_name[name]
        except KeyError:
            raise SchemaError(f'Table "{self.name}" has no column "{name}"') from None

    # -- Rows <-> records --------------------------------------------------

    def parse_row(self, row: Sequence[Any]) -> Record | None:
        """Parse one physical row; rows with an empty first cell are skipped."""
        if not row or row[0] is None or str(row[0]).strip() == "":
            return None
        return {
            col.name: col.parse(row[i] if i < len(row) else None)
            for i, col in enumerate(self.columns)
        }

    def parse_rows(self, rows: Iterable[Sequence[Any]]) -> list[Record]:
        records = []
        for row in rows:
            record = self.parse_row(row)
            if record is not None:
                records.append(record)
        return records

    def to_row(self, record: Mapping[str, Any]) -> list[Any]:
        """Serialize a record in column order (``None`` becomes an empty cell)."""
        row = []
        for name in self.headers:
            value = record.get(name)
            row.append("" if value is None else value)
        return row

    def to_values(self, records: Iterable[Mapping[str, Any]]) -> list[list[Any]]:
        """Header row followed by one row per record."""
        return [self.headers, *(self.to_row(r) for r in records)]

    # -- Validation --------------------------------------------------------

    def check_known_fields(self, record: Mapping[str, Any]) -> None:
        unknown = [key for key in record if key not in self._by_name]
        if unknown:
            raise ValidationError(
                f'Unknown field(s) for "{self.name}": {", ".join(unknown)}',
                issues=[
                    ValidationIssue(key, f'"{key}" is not a column of "{self.name}"', record[key])
                    for key in unknown
                ],
            )

    def apply_defaults(self, partial: Mapping[str, Any]) -> Record:
        """Fill omitted fields from column defaults; the result has every column."""
        self.check_known_fields(partial)
        record: Record = {}
        for col in self.columns:
            if col.name in partial:
                record[col.name] = partial[col.name]
            elif col.has_default:
                record[col.name] = col.default
            else:
                record[col.name] = None
        return record

    def validate(self, record: Mapping[str, Any]) -> None:
        """Every non-optional column must hold a non-null value."""
        issues = [
            ValidationIssue(
                col.name,
                f'Required field "{col.name}" is missing or null',
                record.get(col.name),
            )
            for col in self.columns
            if not col.optional and record.get(col.name) is None
        ]
        if issues:
            raise ValidationError(
                f"Validation failed: {', '.join(i.message for i in issues)}",
                issues=issues,
            )


__all__ = [
    "MISSING",
    "Record",
    "ColumnType",
    "Reference",
    "Relation",
    "Column",
    "TableSchema",
]
