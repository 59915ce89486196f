"""Record-level CRUD over a whole-range store.

Provides :class:`Repository`, one per registered table.  The store has no
row-addressable update, so every mutation follows the same shape:

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                          Repository                                │
    │                                                                    │
    │   create(record)      defaults → validate → dup-key → FK → append  │
    │   find_by_id(id)      load all → first match | None                │
    │   find_many(filter)   load all → predicate → eager-load            │
    │   update(id, changes) load all → merge → validate → FK → rewrite   │
    │   delete(id)          load all → filter → rewrite (no-op if absent)│
    │   read_all()          load all → eager-load                        │
    │   write_all(records)  validate → clear → header + rows             │
    │   append(records)     validate → ensure header → append            │
    │                                                                    │
    │   rewrite = clear data range, then write header + every record     │
    └────────────────────────────────────────────────────────────────────┘

Write operations hold the owning connection's write token for their whole
duration; reads never take it.

Usage:
    >>> orders = conn.repo("Orders")                       # doctest: +SKIP
    >>> await orders.create({"id": "o1", "customer": "A"})  # doctest: +SKIP
    {'id': 'o1', 'customer': 'A'}

Tags:
    repository, crud, full-table-rewrite, tabspine
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from tabspine.core.errors import SchemaError, ValidationError, ValidationIssue
from tabspine.core.logging import get_logger
from tabspine.core.protocols import ValueRender
from tabspine.core.relations import load_related, match_key, validate_foreign_keys
from tabspine.core.schema import Record, TableSchema

if TYPE_CHECKING:
    from tabspine.core.connection import Connection

logger = get_logger(__name__)

RecordFilter = Callable[[Record], bool]


class Repository:
    """CRUD for one table, bound to the owning :class:`Connection`.

    Parameters:
        connection: Owner; supplies the transport, the table registry and
            the write token.
        schema: The table this repository serves.
    """

    def __init__(self, connection: Connection, schema: TableSchema) -> None:
        self._conn = connection
        self.schema = schema

    @property
    def name(self) -> str:
        return self.schema.name

    def __repr__(self) -> str:
        return f"Repository({self.schema.name!r})"

    # -- Helpers -----------------------------------------------------------

    def _require_pk(self, operation: str) -> str:
        pk = self.schema.primary_key
        if pk is None:
            raise SchemaError(f'{operation} requires a primary key on "{self.schema.name}"')
        return pk

    def _key(self, value: Any) -> str | None:
        """Comparable form of a primary-key value, coerced to the key column's type."""
        if value is None or value == "":
            return None
        parsed = self.schema.column(self.schema.primary_key).parse(value)
        return None if parsed is None else match_key(parsed)

    def _matches(self, record: Mapping[str, Any], key: str | None) -> bool:
        return key is not None and self._key(record[self.schema.primary_key]) == key

    async def _load(self) -> list[Record]:
        rows = await self._conn.transport.read_range(
            self.schema.read_range, ValueRender.UNFORMATTED
        )
        return self.schema.parse_rows(rows)

    async def _ensure_header(self) -> None:
        rows = await self._conn.transport.read_range(self.schema.write_range)
        if not rows:
            await self._conn.transport.write_range(
                self.schema.write_range, [self.schema.headers]
            )
            logger.debug("repository.header_written", table=self.schema.name)

    async def _rewrite(self, records: Sequence[Mapping[str, Any]]) -> None:
        transport = self._conn.transport
        await transport.clear_range(self.schema.clear_range)
        await transport.write_range(self.schema.write_range, self.schema.to_values(records))

    async def _include(
        self, records: list[Record], include: Iterable[str] | None
    ) -> list[Record]:
        if not include:
            return records
        names = [include] if isinstance(include, str) else list(include)
        return await load_related(
            records, self.schema, names, self._conn.tables, self._conn.transport
        )

    # -- Reads -------------------------------------------------------------

    async def find_by_id(self, id: Any) -> Record | None:
        """Return the first record whose primary key equals ``id``, or None."""
        self._require_pk("find_by_id")
        key = self._key(id)
        for record in await self._load():
            if self._matches(record, key):
                return record
        return None

    async def find_many(
        self,
        filter: RecordFilter | None = None,
        *,
        include: Iterable[str] | None = None,
    ) -> list[Record]:
        """Load every record, keep those matching ``filter``, then eager-load ``include``.

        ``include`` names other registered tables (a single name or a mapping's
        keys work too).
        """
        records = await self._load()
        if filter is not None:
            records = [r for r in records if filter(r)]
        return await self._include(records, include)

    async def read_all(self, *, include: Iterable[str] | None = None) -> list[Record]:
        return await self.find_many(include=include)

    # -- Writes ------------------------------------------------------------

    async def create(
        self, record: Mapping[str, Any], *, skip_fk_validation: bool = False
    ) -> Record:
        """Insert one record and return it with defaults applied.

        Raises:
            ValidationError: missing required field, unknown field, duplicate
                primary key, or dangling foreign key.
            PermissionDeniedError: the connection is read-only.
        """
        async with self._conn.write_token():
            full = self.schema.apply_defaults(record)
            self.schema.validate(full)

            pk = self.schema.primary_key
            if pk is not None:
                existing = await self._load()
                key = self._key(full[pk])
                if any(self._matches(r, key) for r in existing):
                    raise ValidationError(
                        f'Duplicate primary key: {pk}="{full[pk]}" already exists '
                        f'in "{self.schema.name}"',
                        issues=[ValidationIssue(pk, "Duplicate primary key", full[pk])],
                    )

            if not skip_fk_validation:
                await validate_foreign_keys(
                    full, self.schema, self._conn.tables, self._conn.transport
                )

            await self._ensure_header()
            await self._conn.transport.append_range(
                self.schema.write_range, [self.schema.to_row(full)]
            )
            logger.info(
                "repository.created",
                table=self.schema.name,
                id=full[pk] if pk else None,
            )
            return full

    async def update(
        self,
        id: Any,
        changes: Mapping[str, Any],
        *,
        skip_fk_validation: bool = False,
    ) -> Record:
        """Merge ``changes`` into the record with primary key ``id`` and rewrite the table.

        Raises:
            ValidationError: no such record, unknown field, merged record
                invalid, or a changed foreign key dangles.
        """
        pk = self._require_pk("update")
        async with self._conn.write_token():
            self.schema.check_known_fields(changes)
            records = await self._load()
            key = self._key(id)
            index = next((i for i, r in enumerate(records) if self._matches(r, key)), None)
            if index is None:
                raise ValidationError(
                    f'Record with {pk}="{id}" not found in "{self.schema.name}"',
                    issues=[ValidationIssue(pk, "Record not found", id)],
                )

            merged = {**records[index], **changes}
            self.schema.validate(merged)

            if not skip_fk_validation:
                await validate_foreign_keys(
                    merged,
                    self.schema,
                    self._conn.tables,
                    self._conn.transport,
                    fields=set(changes),
                )

            records[index] = merged
            await self._rewrite(records)
            logger.info(
                "repository.updated",
                table=self.schema.name,
                id=id,
                fields=sorted(changes),
            )
            return merged

    async def delete(self, id: Any) -> None:
        """Remove the record with primary key ``id``.  Missing ids are a no-op."""
        self._require_pk("delete")
        async with self._conn.write_token():
            records = await self._load()
            key = self._key(id)
            remaining = [r for r in records if not self._matches(r, key)]
            if len(remaining) == len(records):
                logger.debug("repository.delete_missing", table=self.schema.name, id=id)
                return
            await self._rewrite(remaining)
            logger.info("repository.deleted", table=self.schema.name, id=id)

    async def write_all(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Replace the table's contents with ``records`` (header always written)."""
        async with self._conn.write_token():
            for record in records:
                self.schema.validate(record)
            await self._rewrite(records)
            logger.info("repository.written", table=self.schema.name, count=len(records))

    async def append(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Append ``records`` after the last data row without clearing.

        Raises:
            SchemaError: the table was registered with ``append_supported=False``.
        """
        self._conn._assert_writable()
        if not self.schema.append_supported:
            raise SchemaError(f'Append is not supported for table "{self.schema.name}"')
        async with self._conn.write_token():
            for record in records:
                self.schema.validate(record)
            await self._ensure_header()
            if records:
                await self._conn.transport.append_range(
                    self.schema.write_range, [self.schema.to_row(r) for r in records]
                )
            logger.info("repository.appended", table=self.schema.name, count=len(records))


__all__ = ["Repository", "RecordFilter"]
