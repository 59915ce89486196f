"""Tests for tabspine.core.ranges — A1 notation helpers."""

import pytest

from tabspine.core.errors import StoreError
from tabspine.core.ranges import (
    A1Range,
    column_index,
    column_letter,
    parse_range,
    quote_sheet,
    table_ranges,
)


class TestColumnLetters:
    @pytest.mark.parametrize(
        "index, letters",
        [
            (0, "A"),
            (2, "C"),
            (25, "Z"),
            (26, "AA"),
            (27, "AB"),
            (51, "AZ"),
            (52, "BA"),
            (701, "ZZ"),
            (702, "AAA"),
        ],
    )
    def test_letter_and_back(self, index, letters):
        assert column_letter(index) == letters
        assert column_index(letters) == index

    def test_lowercase_letters(self):
        assert column_index("ab") == 27

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            column_letter(-1)

    def test_bad_letters_rejected(self):
        with pytest.raises(ValueError):
            column_index("A1")


class TestTableRanges:
    def test_three_columns(self):
        assert table_ranges("Orders", 3) == ("Orders!A2:C", "Orders!A1:C", "Orders!A2:C")

    def test_wide_table_goes_past_z(self):
        read, write, clear = table_ranges("Wide", 28)
        assert read == "Wide!A2:AB"
        assert write == "Wide!A1:AB"

    def test_quoted_sheet_name(self):
        assert table_ranges("Line Items", 2)[0] == "'Line Items'!A2:B"


class TestQuoteSheet:
    def test_plain(self):
        assert quote_sheet("Orders_2024") == "Orders_2024"

    def test_space(self):
        assert quote_sheet("My Orders") == "'My Orders'"

    def test_embedded_quote_doubled(self):
        assert quote_sheet("Bob's") == "'Bob''s'"


class TestParseRange:
    def test_data_range(self):
        assert parse_range("Orders!A2:C") == A1Range("Orders", 1, 0, None, 2)

    def test_whole_sheet(self):
        assert parse_range("Orders") == A1Range("Orders")

    def test_row_range(self):
        assert parse_range("Orders!1:1") == A1Range("Orders", 0, 0, 0, None)

    def test_column_range(self):
        assert parse_range("Orders!B:C") == A1Range("Orders", 0, 1, None, 2)

    def test_single_cell(self):
        assert parse_range("Orders!B3") == A1Range("Orders", 2, 1, 2, 1)

    def test_bounded_box(self):
        assert parse_range("Orders!A1:C10") == A1Range("Orders", 0, 0, 9, 2)

    def test_quoted_sheet(self):
        assert parse_range("'Bob''s Items'!A2:B").sheet == "Bob's Items"

    def test_round_trips_quoted_table_range(self):
        read, _, _ = table_ranges("Line Items", 4)
        assert parse_range(read) == A1Range("Line Items", 1, 0, None, 3)

    @pytest.mark.parametrize("text", ["", "!A1", "Orders!A1:B:C", "Orders!1A", "'Open!A1"])
    def test_garbage_is_store_error(self, text):
        with pytest.raises(StoreError) as exc_info:
            parse_range(text)
        assert exc_info.value.status == 400
