"""Tabspine Core -- a relational engine over a range-addressable tabular store.

Manifesto:
    A spreadsheet store only knows grids of cells: read a range, write a
    range, clear a range.  Applications still want tables with keys,
    foreign keys, ordered writes and versioned schema changes.  ``tabspine.core``
    layers those on top without pretending the store is something it is
    not: every mutation is a whole-table read-modify-write, and writes
    through one connection are serialized.

    - **Schemas as data:** tables are declared, not discovered
    - **Protocol-first:** the engine talks to a ``Transport``, not to HTTP
    - **Fail at registration:** bad schemas raise at construction time
    - **Typed failures:** every error carries a closed ``ErrorKind``

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Error hierarchy (TabspineError, ErrorKind)
        protocols.py       Transport protocol, TabInfo, ValueRender
        schema.py          Column, TableSchema, Relation

    Layer 2 -- Store Access
        ranges.py          A1 notation: column letters, range parsing
        structural.py      Structural request builders (tabs, columns)
        auth.py            Credentials (fixed token or provider)
        transports/        HttpTransport (httpx) + InMemoryTransport

    Layer 3 -- Engine
        connection.py      Registry, write token, batch sync, ensure schema
        repository.py      Full-table-rewrite CRUD per table
        relations.py       Foreign-key validation + batched eager load
        migrations/        Versioned runner + append-only ledger tab

    Layer 4 -- Cross-Cutting Concerns
        logging.py         Structured logging (structlog)
        settings.py        TabspineSettings (pydantic-settings)
        values.py          Date/amount cell helpers, id generation

Module Map (recommended reading order)
--------------------------------------
  errors            Error kinds and classification of store responses
  schema            Table and column declarations
  connection        Entry point; ``conn.repo("Orders")``
  repository        CRUD semantics
  relations         Foreign keys and ``include=``
  migrations        ``conn.migrate([...])``

Tags:
    tabspine, core, repository, migrations, spreadsheet-store
"""

from tabspine.core.auth import Credentials
from tabspine.core.connection import Connection, RawRangeApi
from tabspine.core.errors import (
    CredentialError,
    ErrorKind,
    MigrationError,
    NetworkError,
    PermissionDeniedError,
    RateLimitError,
    SchemaError,
    StoreError,
    TabspineError,
    ValidationError,
    ValidationIssue,
    classify_http_error,
    get_retry_after,
    is_retryable,
    is_tabspine_error,
)
from tabspine.core.logging import (
    LogContext,
    configure_from_settings,
    configure_logging,
    get_logger,
)
from tabspine.core.migrations import (
    LEDGER_TABLE,
    LedgerEntry,
    Migration,
    MigrationContext,
    MigrationResult,
    MigrationRunner,
)
from tabspine.core.protocols import TabInfo, Transport, ValueRender
from tabspine.core.repository import Repository
from tabspine.core.schema import (
    MISSING,
    Column,
    ColumnType,
    Record,
    Reference,
    Relation,
    TableSchema,
)
from tabspine.core.settings import TabspineSettings
from tabspine.core.transports import (
    HttpTransport,
    InMemoryTransport,
    create_store,
    extract_store_id,
)

__all__ = [
    # connection
    "Connection",
    "RawRangeApi",
    "Credentials",
    "Repository",
    # schema
    "MISSING",
    "Column",
    "ColumnType",
    "Record",
    "Reference",
    "Relation",
    "TableSchema",
    # migrations
    "LEDGER_TABLE",
    "LedgerEntry",
    "Migration",
    "MigrationContext",
    "MigrationResult",
    "MigrationRunner",
    # transports
    "Transport",
    "TabInfo",
    "ValueRender",
    "HttpTransport",
    "InMemoryTransport",
    "create_store",
    "extract_store_id",
    # errors
    "ErrorKind",
    "ValidationIssue",
    "TabspineError",
    "CredentialError",
    "PermissionDeniedError",
    "RateLimitError",
    "NetworkError",
    "StoreError",
    "ValidationError",
    "SchemaError",
    "MigrationError",
    "classify_http_error",
    "is_tabspine_error",
    "is_retryable",
    "get_retry_after",
    # cross-cutting
    "LogContext",
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "TabspineSettings",
]
