"""
Shared pytest fixtures for tabspine tests.

This module provides:
- Orders / Items / Notes table schemas (Items → Orders foreign key)
- An in-memory store pre-seeded with header rows
- Read-write and read-only connections over that store

Usage:
    Fixtures are auto-discovered by pytest.

    @pytest.mark.asyncio
    async def test_something(conn, store):
        await conn.repo("Orders").create({"id": "o1", "customer": "Alice"})
        assert store.snapshot("Orders")[1][0] == "o1"
"""

import pytest

from tabspine.core.connection import Connection
from tabspine.core.schema import Column, ColumnType, TableSchema
from tabspine.core.transports.memory import InMemoryTransport

# ── Schemas ──────────────────────────────────────────────────


@pytest.fixture()
def orders_schema():
    return TableSchema(
        "Orders",
        [
            Column("id", primary_key=True),
            Column("customer"),
            Column("total", ColumnType.NUMBER, default=0),
            Column("placed_on", ColumnType.DATE, optional=True),
            Column("paid", ColumnType.BOOLEAN, default=False),
        ],
    )


@pytest.fixture()
def items_schema():
    return TableSchema(
        "Items",
        [
            Column("id", primary_key=True),
            Column("order_id", references=("Orders", "id")),
            Column("sku"),
            Column("qty", ColumnType.NUMBER, default=1),
        ],
    )


@pytest.fixture()
def notes_schema():
    """Keyless, append-only log table."""
    return TableSchema(
        "Notes",
        [Column("text"), Column("author", optional=True)],
        append_supported=True,
    )


@pytest.fixture()
def schemas(orders_schema, items_schema, notes_schema):
    return [orders_schema, items_schema, notes_schema]


# ── Store + connections ──────────────────────────────────────


@pytest.fixture()
def store(schemas):
    """In-memory store with a header row in every registered tab."""
    return InMemoryTransport({s.name: [s.headers] for s in schemas})


@pytest.fixture()
def conn(store, schemas):
    return Connection("store-1", schemas, auth="test-token", transport=store)


@pytest.fixture()
def read_only_conn(store, schemas):
    return Connection("store-1", schemas, api_key="read-key", transport=store)
