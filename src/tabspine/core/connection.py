"""
Connection — the single owner of credentials, table registry and write order.

Manifesto:
    The remote store has no transactions, so two overlapping
    read-modify-write cycles through the same process would silently lose
    one of the writes.  A ``Connection`` owns one write token; every
    write-class operation holds it for its whole duration, so writes through
    one connection run one at a time, first come first served.  Reads never
    take the token.

Architecture:
    ::

        Connection(store_id, tables, auth | api_key)
        ├── validate registry        (construction time, SchemaError)
        ├── transport                HttpTransport unless one is injected
        ├── write_token()            asyncio.Lock (FIFO), read-only check first
        ├── repo(name)               Repository per table
        ├── raw                      RawRangeApi: arbitrary ranges
        ├── ensure_schema()          create missing tabs, one call
        ├── batch_sync(payload)      clear all + write all, two calls
        └── migrate(migrations)      MigrationRunner under the write token

    Write-class: create, update, delete, write_all, append, raw writes,
    ensure_schema, batch_sync, migrate.

Examples:
    >>> conn = Connection("1AbC", [orders, items], auth="ya29...")  # doctest: +SKIP
    >>> async with conn:                                            # doctest: +SKIP
    ...     await conn.repo("Orders").create({"id": "o1"})

Guardrails:
    ❌ DON'T: Call repository writes from inside a migration's ``up``
       (the token is already held and is not re-entrant)
    ✅ DO: Use ``MigrationContext`` for structural changes

Tags:
    connection, registry, write-serialization, tabspine
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from types import MappingProxyType
from typing import Any

from tabspine.core import structural
from tabspine.core.auth import Credentials, CredentialSource
from tabspine.core.errors import PermissionDeniedError, SchemaError
from tabspine.core.logging import get_logger
from tabspine.core.migrations import LEDGER_TABLE, Migration, MigrationResult, MigrationRunner
from tabspine.core.migrations.runner import check_versions
from tabspine.core.protocols import Rows, Transport, ValueRender
from tabspine.core.relations import check_relations
from tabspine.core.repository import Repository
from tabspine.core.schema import Record, TableSchema
from tabspine.core.settings import DEFAULT_API_BASE_URL, TabspineSettings
from tabspine.core.transports.http import HttpTransport

logger = get_logger(__name__)


class RawRangeApi:
    """Direct access to arbitrary ranges.  Writes take the write token."""

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    async def read_range(
        self, range_: str, render: ValueRender = ValueRender.FORMATTED
    ) -> Rows:
        return await self._conn.transport.read_range(range_, render)

    async def write_range(self, range_: str, values: Rows) -> None:
        async with self._conn.write_token():
            await self._conn.transport.write_range(range_, values)

    async def clear_range(self, range_: str) -> None:
        async with self._conn.write_token():
            await self._conn.transport.clear_range(range_)


class Connection:
    """Registry of tables bound to one backing store.

    Args:
        store_id: Backing store identity.
        tables: Table schemas to register (a mapping's values are used).
        auth: Write-capable credential: a token or a provider callable.
        api_key: Read-only key; used when ``auth`` is absent.
        transport: Injected transport (tests, local runs).  Defaults to
            ``HttpTransport``.
        ledger_table: Reserved name of the migration ledger tab.

    Raises:
        SchemaError: Any registry or credential problem, at construction.
    """

    def __init__(
        self,
        store_id: str,
        tables: Iterable[TableSchema] | Mapping[str, TableSchema],
        *,
        auth: CredentialSource | None = None,
        api_key: str | None = None,
        transport: Transport | None = None,
        ledger_table: str = LEDGER_TABLE,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        if not store_id:
            raise SchemaError("Store id must be non-empty")
        if not auth and not api_key:
            raise SchemaError("Either auth or api_key is required")

        schemas = list(tables.values()) if isinstance(tables, Mapping) else list(tables)
        if not schemas:
            raise SchemaError("At least one table must be registered")

        registry: dict[str, TableSchema] = {}
        for schema in schemas:
            if not isinstance(schema, TableSchema):
                raise SchemaError(f"Expected TableSchema, got {type(schema).__name__}")
            if schema.name == ledger_table:
                raise SchemaError(
                    f'Table name "{ledger_table}" is reserved for the migration ledger'
                )
            if schema.name in registry:
                raise SchemaError(f'Duplicate table name "{schema.name}"')
            registry[schema.name] = schema
        check_relations(registry)

        self.store_id = store_id
        self.ledger_table = ledger_table
        self._tables = registry
        self._credentials = Credentials(auth) if auth else None
        self.transport: Transport = transport or HttpTransport(
            store_id,
            credentials=self._credentials,
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
        )
        self._write_lock = asyncio.Lock()
        self._repos = {name: Repository(self, schema) for name, schema in registry.items()}
        self.raw = RawRangeApi(self)

        logger.debug(
            "connection.created",
            store_id=store_id,
            tables=list(registry),
            read_only=self.read_only,
        )

    @classmethod
    def from_settings(
        cls,
        tables: Iterable[TableSchema] | Mapping[str, TableSchema],
        settings: TabspineSettings | None = None,
        transport: Transport | None = None,
    ) -> Connection:
        """Build a connection from ``TABSPINE_*`` settings."""
        settings = settings or TabspineSettings()
        return cls(
            settings.store_id,
            tables,
            auth=settings.token,
            api_key=settings.api_key,
            transport=transport,
            base_url=settings.api_base_url,
            timeout=settings.timeout,
        )

    # ── Registry ─────────────────────────────────────────────────

    @property
    def tables(self) -> Mapping[str, TableSchema]:
        return MappingProxyType(self._tables)

    @property
    def read_only(self) -> bool:
        return self._credentials is None

    def repo(self, name: str) -> Repository:
        try:
            return self._repos[name]
        except KeyError:
            raise SchemaError(f'Unknown table "{name}"') from None

    # ── Write token ──────────────────────────────────────────────

    def _assert_writable(self) -> None:
        if self.read_only:
            raise PermissionDeniedError(
                "Write operations require an auth credential; this connection is read-only"
            )

    @asynccontextmanager
    async def write_token(self) -> AsyncIterator[None]:
        """Hold the write token.  Read-only connections fail before waiting."""
        self._assert_writable()
        async with self._write_lock:
            yield

    # ── Store-wide operations ────────────────────────────────────

    async def ensure_schema(self) -> list[str]:
        """Create every registered tab missing from the store; returns their names."""
        async with self.write_token():
            existing = {tab.title for tab in await self.transport.fetch_metadata()}
            missing = [name for name in self._tables if name not in existing]
            if missing:
                await self.transport.structural_update(
                    [structural.add_tab(name) for name in missing]
                )
                logger.info("connection.tables_created", tables=missing)
            return missing

    async def batch_sync(self, payload: Mapping[str, Sequence[Record]]) -> None:
        """Replace every registered table in two calls: one clear, one write.

        Tables absent from ``payload`` end up with only their header row.
        """
        self._assert_writable()
        unknown = [name for name in payload if name not in self._tables]
        if unknown:
            raise SchemaError(f"Unknown table(s) in sync payload: {', '.join(unknown)}")
        for name, records in payload.items():
            for record in records:
                self._tables[name].validate(record)

        async with self.write_token():
            await self.transport.batch_clear([s.clear_range for s in self._tables.values()])
            await self.transport.batch_write(
                [
                    (schema.write_range, schema.to_values(payload.get(name, ())))
                    for name, schema in self._tables.items()
                ]
            )
            logger.info(
                "connection.batch_synced",
                tables=len(self._tables),
                records=sum(len(r) for r in payload.values()),
            )

    async def migrate(self, migrations: Sequence[Migration]) -> MigrationResult:
        """Apply pending migrations under the write token."""
        self._assert_writable()
        check_versions(migrations)
        runner = MigrationRunner(self.transport, ledger_table=self.ledger_table)
        async with self.write_token():
            return await runner.run(migrations)

    # ── Lifecycle ────────────────────────────────────────────────

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        mode = "read-only" if self.read_only else "read-write"
        return f"Connection({self.store_id!r}, tables={list(self._tables)}, {mode})"


__all__ = ["Connection", "RawRangeApi"]
