"""Tests for the currency / percentage display helpers."""

import pytest

from fin_compete.formatting import clean_percentage, format_currency


class TestFormatCurrency:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("1234.5", "$1,234.50"),
            ("1,234.5", "$1,234.50"),
            ("0.125", "$0.13"),
            ("-42", "-$42.00"),
            (1234.5, "$1,234.50"),
        ],
    )
    def test_formats_numbers(self, value, expected):
        assert format_currency(value) == expected

    @pytest.mark.parametrize("value", ["$1,234.50", "€12.00", "£3", "¥100"])
    def test_already_formatted_unchanged(self, value):
        assert format_currency(value) == value

    @pytest.mark.parametrize("value", ["", None])
    def test_empty(self, value):
        assert format_currency(value) == "-"

    def test_unparseable_unchanged(self):
        assert format_currency("N/A") == "N/A"
        assert format_currency("-") == "-"

    def test_exponent_letters_are_stripped(self):
        assert format_currency("2.5B") == "$2.50"


class TestCleanPercentage:
    def test_rounds_to_two_decimals(self):
        assert clean_percentage("12.345") == "12.35%"
        assert clean_percentage("7") == "7.00%"
        assert clean_percentage("-0.5") == "-0.50%"

    def test_already_percentage_unchanged(self):
        assert clean_percentage("5%") == "5%"

    def test_leading_number_is_used(self):
        assert clean_percentage("15.2 (TTM)") == "15.20%"

    def test_unparseable_unchanged(self):
        assert clean_percentage("abc") == "abc"

    def test_out_of_range_unchanged(self):
        assert clean_percentage("1e40") == "1e40"

    @pytest.mark.parametrize("value", ["", None])
    def test_empty(self, value):
        assert clean_percentage(value) == "-"
