"""Versioned schema migrations with an append-only ledger tab."""

from tabspine.core.migrations.context import MigrationContext
from tabspine.core.migrations.runner import (
    LEDGER_TABLE,
    LedgerEntry,
    Migration,
    MigrationResult,
    MigrationRunner,
    check_versions,
    ledger_schema,
)

__all__ = [
    "LEDGER_TABLE",
    "LedgerEntry",
    "Migration",
    "MigrationContext",
    "MigrationResult",
    "MigrationRunner",
    "check_versions",
    "ledger_schema",
]
