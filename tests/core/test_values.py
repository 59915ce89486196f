"""Tests for tabspine.core.values — cell helpers and id generation."""

from datetime import datetime

from tabspine.core.values import (
    find_missing_headers,
    generate_id,
    is_valid_date,
    normalize_date,
    parse_amount,
    serial_to_iso_date,
    try_repair_date,
    utc_now_iso,
)


class TestDates:
    def test_is_valid_date(self):
        assert is_valid_date("2024-03-01")
        assert not is_valid_date("03/01/2024")
        assert not is_valid_date("2024-3-1")

    def test_serial_to_iso(self):
        assert serial_to_iso_date(45352) == "2024-03-01"
        assert serial_to_iso_date(1) == "1899-12-31"

    def test_serial_fraction_is_dropped(self):
        assert serial_to_iso_date(45352.75) == "2024-03-01"

    def test_try_repair(self):
        assert try_repair_date(" 2024-03-01 ") == "2024-03-01"
        assert try_repair_date("45352") == "2024-03-01"
        assert try_repair_date("not a date") is None
        assert try_repair_date("0") is None
        assert try_repair_date("5000000") is None

    def test_normalize(self):
        assert normalize_date(45352) == "2024-03-01"
        assert normalize_date("2024-03-01") == "2024-03-01"
        assert normalize_date(None) is None
        assert normalize_date(True) is None


class TestParseAmount:
    def test_currency_text(self):
        assert parse_amount("$1,234.50") == 1234.5

    def test_numbers_pass_through(self):
        assert parse_amount(12) == 12.0
        assert parse_amount(2.5) == 2.5

    def test_unparseable(self):
        assert parse_amount("n/a") is None
        assert parse_amount(None) is None
        assert parse_amount(True) is None
        assert parse_amount(float("nan")) is None


class TestHeaders:
    def test_case_insensitive(self):
        assert find_missing_headers([" ID ", "Name"], ["id", "name"]) == []

    def test_reports_in_required_order(self):
        assert find_missing_headers(["id"], ["email", "id", "name"]) == ["email", "name"]


class TestIds:
    def test_shape(self):
        value = generate_id()
        assert len(value) == 26
        assert set(value) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")

    def test_unique(self):
        assert len({generate_id() for _ in range(200)}) == 200

    def test_utc_now_iso_parses(self):
        parsed = datetime.fromisoformat(utc_now_iso())
        assert parsed.utcoffset() is not None
        assert parsed.utcoffset().total_seconds() == 0
