"""Versioned migration runner.

Tracks applied migrations in a ledger tab (``_tabspine_migrations`` by
default) and applies pending ones in ascending version order.

Ledger layout, one row per applied migration, never rewritten::

    version | name            | applied_at
    1       | create_orders   | 2024-03-01T09:15:00+00:00

Run order:

1. Reject duplicate versions (before any network call).
2. Create the ledger tab if missing, write its header if empty.
3. Read applied versions; skip those.
4. For each pending migration: run ``up``, then append its ledger row.
   The first failure stops the run with ``MigrationError``; nothing is
   recorded for the failed version, so the next run retries it.

A structural change that succeeded before a failed ledger append is not
rolled back; the migration will run again next time.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field

from tabspine.core import structural
from tabspine.core.errors import MigrationError, SchemaError, StoreError
from tabspine.core.logging import LogContext, get_logger
from tabspine.core.migrations.context import MigrationContext
from tabspine.core.protocols import Transport, ValueRender
from tabspine.core.schema import Column, ColumnType, TableSchema
from tabspine.core.values import utc_now_iso

logger = get_logger(__name__)

LEDGER_TABLE = "_tabspine_migrations"

MigrationProcedure = Callable[[MigrationContext], Awaitable[None] | None]


def ledger_schema(name: str = LEDGER_TABLE) -> TableSchema:
    """Schema of the ledger tab."""
    return TableSchema(
        name,
        [
            Column("version", ColumnType.NUMBER, primary_key=True),
            Column("name"),
            Column("applied_at"),
        ],
    )


@dataclass(frozen=True)
class Migration:
    """One versioned schema change.  ``up`` may be sync or async."""

    version: int
    name: str
    up: MigrationProcedure


@dataclass(frozen=True)
class LedgerEntry:
    """One applied migration, as recorded in the ledger."""

    version: int
    name: str
    applied_at: str


@dataclass
class MigrationResult:
    """Result of a migration run (versions, ascending)."""

    applied: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


def check_versions(migrations: Iterable[Migration]) -> list[Migration]:
    """Return ``migrations`` sorted by version; duplicate versions raise ``SchemaError``."""
    ordered = sorted(migrations, key=lambda m: m.version)
    seen: dict[int, str] = {}
    for migration in ordered:
        if migration.version in seen:
            raise SchemaError(
                f"Duplicate migration version {migration.version}: "
                f'"{seen[migration.version]}" and "{migration.name}"'
            )
        seen[migration.version] = migration.name
    return ordered


class MigrationRunner:
    """Applies migrations against a store.

    Parameters
    ----------
    transport
        Any object satisfying the ``Transport`` protocol.
    ledger_table
        Tab that records applied versions.

    Example::

        runner = MigrationRunner(transport)
        result = await runner.run([
            Migration(1, "create_orders", lambda ctx: ctx.create_table("Orders")),
        ])
        print(f"Applied {len(result.applied)} migrations")
    """

    def __init__(self, transport: Transport, *, ledger_table: str = LEDGER_TABLE) -> None:
        self.transport = transport
        self.ledger = ledger_schema(ledger_table)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, migrations: Sequence[Migration]) -> MigrationResult:
        """Apply every pending migration in ascending version order."""
        ordered = check_versions(migrations)
        result = MigrationResult()

        await self._ensure_ledger()
        done = {entry.version for entry in await self._read_ledger()}
        context = MigrationContext(self.transport)

        for migration in ordered:
            if migration.version in done:
                result.skipped.append(migration.version)
                continue

            async with LogContext(migration_version=migration.version):
                try:
                    outcome = migration.up(context)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception as exc:
                    logger.error(
                        "migration.failed",
                        name=migration.name,
                        error=str(exc),
                    )
                    raise MigrationError(
                        f'Migration {migration.version} "{migration.name}" failed: {exc}',
                        version=migration.version,
                        name=migration.name,
                        cause=exc,
                    ) from exc

                await self.transport.append_range(
                    self.ledger.write_range,
                    [[migration.version, migration.name, utc_now_iso()]],
                )
                result.applied.append(migration.version)
                logger.info("migration.applied", name=migration.name)

        logger.info(
            "migration.run_complete",
            applied=len(result.applied),
            skipped=len(result.skipped),
        )
        return result

    async def applied(self) -> list[LedgerEntry]:
        """Ledger entries in recorded order; empty when the ledger does not exist yet."""
        if not await self._ledger_exists():
            return []
        return await self._read_ledger()

    async def pending(self, migrations: Sequence[Migration]) -> list[Migration]:
        """Migrations not yet recorded in the ledger, ascending by version."""
        ordered = check_versions(migrations)
        done = {entry.version for entry in await self.applied()}
        return [m for m in ordered if m.version not in done]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ledger_exists(self) -> bool:
        tabs = await self.transport.fetch_metadata()
        return any(tab.title == self.ledger.name for tab in tabs)

    async def _ensure_ledger(self) -> None:
        if not await self._ledger_exists():
            await self.transport.structural_update([structural.add_tab(self.ledger.name)])
            if not await self._ledger_exists():
                raise StoreError(f'Ledger tab "{self.ledger.name}" was not created')
            logger.info("migration.ledger_created", table=self.ledger.name)

        header = await self.transport.read_range(self.ledger.write_range)
        if not header:
            await self.transport.write_range(self.ledger.write_range, [self.ledger.headers])

    async def _read_ledger(self) -> list[LedgerEntry]:
        rows = await self.transport.read_range(self.ledger.read_range, ValueRender.UNFORMATTED)
        entries = []
        for record in self.ledger.parse_rows(rows):
            version = record["version"]
            if version is None:
                continue
            entries.append(
                LedgerEntry(
                    version=int(version),
                    name=record["name"],
                    applied_at=record["applied_at"],
                )
            )
        return entries


__all__ = [
    "LEDGER_TABLE",
    "ledger_schema",
    "check_versions",
    "Migration",
    "LedgerEntry",
    "MigrationResult",
    "MigrationRunner",
]
