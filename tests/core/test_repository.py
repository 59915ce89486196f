"""Tests for tabspine.core.repository — full-table-rewrite CRUD."""

import pytest
import pytest_asyncio

from tabspine.core.connection import Connection
from tabspine.core.errors import ErrorKind, PermissionDeniedError, SchemaError, ValidationError
from tabspine.core.schema import Column, ColumnType, TableSchema
from tabspine.core.transports.memory import InMemoryTransport

ORDERS_HEADER = ["id", "customer", "total", "placed_on", "paid"]


@pytest.fixture
def orders(conn):
    return conn.repo("Orders")


@pytest_asyncio.fixture
async def seeded(conn, store):
    """Orders o1..o3 and one item, with the call log reset."""
    await conn.repo("Orders").write_all(
        [
            {"id": "o1", "customer": "Alice", "total": 10, "paid": False},
            {"id": "o2", "customer": "Bob", "total": 20, "paid": True},
            {"id": "o3", "customer": "Cy", "total": 30, "paid": False},
        ]
    )
    await conn.repo("Items").write_all([{"id": "i1", "order_id": "o1", "sku": "A", "qty": 1}])
    store.reset_calls()
    return conn


# ------------------------------------------------------------------ #
# create
# ------------------------------------------------------------------ #


class TestCreate:
    @pytest.mark.asyncio
    async def test_returns_full_record_with_defaults(self, orders, store):
        record = await orders.create({"id": "o1", "customer": "Alice"})
        assert record == {
            "id": "o1",
            "customer": "Alice",
            "total": 0,
            "placed_on": None,
            "paid": False,
        }
        assert store.snapshot("Orders") == [ORDERS_HEADER, ["o1", "Alice", 0, "", False]]

    @pytest.mark.asyncio
    async def test_round_trip(self, orders):
        await orders.create({"id": "o1", "customer": "Alice", "total": 12.5})
        found = await orders.find_by_id("o1")
        assert found["customer"] == "Alice"
        assert found["total"] == 12.5

    @pytest.mark.asyncio
    async def test_duplicate_primary_key(self, orders, store):
        await orders.create({"id": "o1", "customer": "Alice"})
        with pytest.raises(ValidationError) as exc_info:
            await orders.create({"id": "o1", "customer": "Other"})
        assert exc_info.value.fields == ["id"]
        assert len(store.snapshot("Orders")) == 2

    @pytest.mark.asyncio
    async def test_missing_required_field_no_network(self, orders, store):
        with pytest.raises(ValidationError) as exc_info:
            await orders.create({"id": "o1"})
        assert exc_info.value.fields == ["customer"]
        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_unknown_field(self, orders, store):
        with pytest.raises(ValidationError):
            await orders.create({"id": "o1", "customer": "A", "colour": "red"})
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_writes_header_into_empty_tab(self, schemas):
        store = InMemoryTransport({s.name: [] for s in schemas})
        conn = Connection("s", schemas, auth="t", transport=store)
        await conn.repo("Orders").create({"id": "o1", "customer": "A"})
        assert store.snapshot("Orders")[0] == ORDERS_HEADER
        assert store.snapshot("Orders")[1][0] == "o1"
        assert store.count("write_range") == 1

    @pytest.mark.asyncio
    async def test_existing_header_not_rewritten(self, orders, store):
        await orders.create({"id": "o1", "customer": "A"})
        assert store.count("write_range") == 0
        assert store.count("append_range") == 1

    @pytest.mark.asyncio
    async def test_keyless_table_skips_duplicate_check(self, conn, store):
        notes = conn.repo("Notes")
        await notes.create({"text": "same"})
        await notes.create({"text": "same"})
        assert store.snapshot("Notes")[1:] == [["same"], ["same"]]


# ------------------------------------------------------------------ #
# reads
# ------------------------------------------------------------------ #


class TestReads:
    @pytest.mark.asyncio
    async def test_find_by_id(self, seeded):
        assert (await seeded.repo("Orders").find_by_id("o2"))["customer"] == "Bob"

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, seeded):
        assert await seeded.repo("Orders").find_by_id("zz") is None

    @pytest.mark.asyncio
    async def test_find_by_id_is_one_read(self, seeded, store):
        await seeded.repo("Orders").find_by_id("o1")
        assert store.call_names == ["read_range"]

    @pytest.mark.asyncio
    async def test_find_many_filter(self, seeded):
        unpaid = await seeded.repo("Orders").find_many(lambda r: not r["paid"])
        assert [r["id"] for r in unpaid] == ["o1", "o3"]

    @pytest.mark.asyncio
    async def test_read_all_in_row_order(self, seeded):
        assert [r["id"] for r in await seeded.repo("Orders").read_all()] == ["o1", "o2", "o3"]

    @pytest.mark.asyncio
    async def test_blank_first_cell_rows_skipped(self, conn, store):
        await conn.raw.write_range("Orders!A2:E", [["o1", "A"], ["", "ghost"], ["o2", "B"]])
        assert [r["id"] for r in await conn.repo("Orders").read_all()] == ["o1", "o2"]

    @pytest.mark.asyncio
    async def test_identity_ops_need_primary_key(self, conn, store):
        notes = conn.repo("Notes")
        with pytest.raises(SchemaError):
            await notes.find_by_id("x")
        with pytest.raises(SchemaError):
            await notes.update("x", {"text": "y"})
        with pytest.raises(SchemaError):
            await notes.delete("x")
        assert store.calls == []


# ------------------------------------------------------------------ #
# update
# ------------------------------------------------------------------ #


class TestUpdate:
    @pytest.mark.asyncio
    async def test_merge_touches_only_changed_fields(self, seeded):
        orders = seeded.repo("Orders")
        before = await orders.find_by_id("o2")
        after = await orders.update("o2", {"total": 99})
        assert after == {**before, "total": 99}
        assert await orders.find_by_id("o2") == after

    @pytest.mark.asyncio
    async def test_row_order_preserved(self, seeded, store):
        await seeded.repo("Orders").update("o2", {"customer": "Bobby"})
        snapshot = store.snapshot("Orders")
        assert snapshot[0] == ORDERS_HEADER
        assert [row[0] for row in snapshot[1:]] == ["o1", "o2", "o3"]
        assert snapshot[2][1] == "Bobby"

    @pytest.mark.asyncio
    async def test_full_rewrite_calls(self, seeded, store):
        await seeded.repo("Orders").update("o1", {"customer": "Al"})
        assert store.call_names == ["read_range", "clear_range", "write_range"]

    @pytest.mark.asyncio
    async def test_missing_record(self, seeded, store):
        with pytest.raises(ValidationError, match="not found"):
            await seeded.repo("Orders").update("zz", {"customer": "x"})
        assert "write_range" not in store.call_names

    @pytest.mark.asyncio
    async def test_null_required_field_rejected(self, seeded):
        with pytest.raises(ValidationError) as exc_info:
            await seeded.repo("Orders").update("o1", {"customer": None})
        assert exc_info.value.fields == ["customer"]

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, seeded, store):
        with pytest.raises(ValidationError):
            await seeded.repo("Orders").update("o1", {"colour": "red"})
        assert store.calls == []


# ------------------------------------------------------------------ #
# delete
# ------------------------------------------------------------------ #


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_record(self, seeded, store):
        await seeded.repo("Orders").delete("o2")
        assert [row[0] for row in store.snapshot("Orders")[1:]] == ["o1", "o3"]

    @pytest.mark.asyncio
    async def test_missing_id_is_noop(self, seeded, store):
        before = store.snapshot("Orders")
        await seeded.repo("Orders").delete("zz")
        assert store.snapshot("Orders") == before
        assert store.call_names == ["read_range"]

    @pytest.mark.asyncio
    async def test_twice_same_as_once(self, seeded, store):
        orders = seeded.repo("Orders")
        await orders.delete("o1")
        once = store.snapshot("Orders")
        await orders.delete("o1")
        assert store.snapshot("Orders") == once

    @pytest.mark.asyncio
    async def test_delete_last_record_keeps_header(self, conn, store):
        orders = conn.repo("Orders")
        await orders.create({"id": "o1", "customer": "A"})
        await orders.delete("o1")
        assert store.snapshot("Orders") == [ORDERS_HEADER]


# ------------------------------------------------------------------ #
# key comparison across cell types
# ------------------------------------------------------------------ #


@pytest.fixture
def counters(store):
    schema = TableSchema(
        "Counters", [Column("id", ColumnType.NUMBER, primary_key=True), Column("label")]
    )
    store.add_tab("Counters", [["id", "label"]])
    return Connection("s", [schema], auth="t", transport=store).repo("Counters")


class TestKeyTypes:
    @pytest.mark.asyncio
    async def test_number_key_duplicate_given_as_text(self, counters, store):
        await counters.create({"id": "1", "label": "a"})
        with pytest.raises(ValidationError, match="Duplicate primary key"):
            await counters.create({"id": "1", "label": "b"})
        with pytest.raises(ValidationError, match="Duplicate primary key"):
            await counters.create({"id": 1.0, "label": "c"})
        assert len(store.snapshot("Counters")) == 2

    @pytest.mark.asyncio
    async def test_number_key_lookup_by_text(self, counters):
        await counters.create({"id": 3, "label": "a"})
        assert (await counters.find_by_id("3"))["label"] == "a"

    @pytest.mark.asyncio
    async def test_text_key_duplicate_given_as_number(self, orders, store):
        await orders.create({"id": 7, "customer": "A"})
        with pytest.raises(ValidationError) as exc_info:
            await orders.create({"id": 7, "customer": "B"})
        assert exc_info.value.fields == ["id"]
        assert len(store.snapshot("Orders")) == 2

    @pytest.mark.asyncio
    async def test_text_key_find_update_delete_by_number(self, orders, store):
        await orders.create({"id": "7", "customer": "A"})
        assert (await orders.find_by_id(7))["customer"] == "A"
        assert (await orders.update(7, {"customer": "B"}))["customer"] == "B"
        await orders.delete(7)
        assert store.snapshot("Orders") == [ORDERS_HEADER]

    @pytest.mark.asyncio
    async def test_blank_id_matches_nothing(self, seeded):
        assert await seeded.repo("Orders").find_by_id("") is None


# ------------------------------------------------------------------ #
# bulk
# ------------------------------------------------------------------ #


class TestBulk:
    @pytest.mark.asyncio
    async def test_write_all_replaces(self, seeded, store):
        await seeded.repo("Orders").write_all(
            [{"id": "n1", "customer": "New", "total": 1, "paid": False}]
        )
        assert store.snapshot("Orders") == [ORDERS_HEADER, ["n1", "New", 1, "", False]]
        assert store.call_names == ["clear_range", "write_range"]

    @pytest.mark.asyncio
    async def test_write_all_empty_writes_header(self, seeded, store):
        await seeded.repo("Orders").write_all([])
        assert store.snapshot("Orders") == [ORDERS_HEADER]
        assert store.calls[-1].args[1] == [ORDERS_HEADER]

    @pytest.mark.asyncio
    async def test_write_all_validates_first(self, seeded, store):
        with pytest.raises(ValidationError):
            await seeded.repo("Orders").write_all([{"id": "x"}])
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_append_keeps_existing(self, conn, store):
        notes = conn.repo("Notes")
        await notes.append([{"text": "a"}])
        await notes.append([{"text": "b", "author": "me"}, {"text": "c"}])
        assert store.snapshot("Notes") == [["text", "author"], ["a"], ["b", "me"], ["c"]]
        assert "clear_range" not in store.call_names

    @pytest.mark.asyncio
    async def test_append_empty_list(self, conn, store):
        await conn.repo("Notes").append([])
        assert store.call_names == ["read_range"]

    @pytest.mark.asyncio
    async def test_append_opt_out(self, store):
        log = TableSchema("Log", [Column("line")], append_supported=False)
        store.add_tab("Log", [["line"]])
        conn = Connection("s", [log], auth="t", transport=store)
        with pytest.raises(SchemaError):
            await conn.repo("Log").append([{"line": "x"}])
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_append_opt_out_read_only_is_permission_error(self, store):
        log = TableSchema("Log", [Column("line")], append_supported=False)
        store.add_tab("Log", [["line"]])
        conn = Connection("s", [log], api_key="k", transport=store)
        with pytest.raises(PermissionDeniedError):
            await conn.repo("Log").append([{"line": "x"}])
        assert store.calls == []
