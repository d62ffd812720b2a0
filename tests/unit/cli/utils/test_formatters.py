"""Unit tests for CLI output formatters and parameter parsing."""

import datetime as dt
from decimal import Decimal

import click
import pytest

from shp_billing.cli.utils.formatters import (
    format_error,
    format_hours,
    format_info,
    format_money,
    format_success,
    format_table,
    format_warning,
)
from shp_billing.cli.utils.service import DECIMAL, parse_datetime


class TestFormatters:
    """Test suite for CLI output formatters."""

    def test_format_success_contains_message(self):
        """Test that success formatter includes the message."""
        assert "Time logged" in format_success("Time logged")

    def test_format_error_contains_message(self):
        """Test that error formatter includes the message."""
        assert "Client not found" in format_error("Client not found")

    def test_format_warning_contains_message(self):
        """Test that warning formatter includes the message."""
        assert "New calendar year" in format_warning("New calendar year")

    def test_format_info_contains_message(self):
        """Test that info formatter includes the message."""
        assert "Entry ID: e-1" in format_info("Entry ID: e-1")

    def test_format_money(self):
        assert format_money(Decimal("1234.5")) == "1,234.50"
        assert format_money(Decimal("0")) == "0.00"
        assert format_money(None) == "-"

    def test_format_hours(self):
        assert format_hours(Decimal("1.5000")) == "1.50 h"
        assert format_hours(Decimal("0.3333")) == "0.33 h"
        assert format_hours(None) == "-"

    def test_format_table_with_headers_and_rows(self):
        """Test table formatting with headers and data."""
        result = format_table(
            ["Client", "Used"], [["acme.example", "9.00 h"], ["b.example", "1.00 h"]]
        )

        lines = result.splitlines()
        assert lines[1] == "| Client       | Used   |"
        assert "| acme.example | 9.00 h |" in lines
        assert len(lines) == 6

    def test_format_table_with_empty_rows(self):
        """Test table formatting with no data rows."""
        result = format_table(["Client", "Used"], [])

        assert "Client" in result
        assert len(result.splitlines()) == 3

    def test_format_table_truncates_long_values(self):
        """Test table formatting with long cell values."""
        result = format_table(["Notes"], [["x" * 30]], max_width=10)

        assert "x" * 10 in result
        assert "x" * 11 not in result

    def test_format_table_without_headers(self):
        assert format_table([], [["a"]]) == ""


class TestParseDatetime:
    """Test command line date parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-03-03", dt.datetime(2025, 3, 3)),
            ("2025-03-03T09:30", dt.datetime(2025, 3, 3, 9, 30)),
            ("2025-03-03 09:30", dt.datetime(2025, 3, 3, 9, 30)),
            ("2025-03-03T09:30:15", dt.datetime(2025, 3, 3, 9, 30, 15)),
        ],
    )
    def test_accepted_formats(self, value, expected):
        assert parse_datetime(value) == expected

    def test_invalid_value(self):
        with pytest.raises(click.BadParameter, match="Invalid date/time"):
            parse_datetime("03/03/2025")


class TestDecimalType:
    """Test the decimal parameter type."""

    def test_converts_strings(self):
        assert DECIMAL.convert("82.50", None, None) == Decimal("82.50")

    def test_passes_decimals_through(self):
        value = Decimal("1.5")
        assert DECIMAL.convert(value, None, None) is value

    def test_rejects_garbage(self):
        with pytest.raises(click.BadParameter, match="not a valid number"):
            DECIMAL.convert("lots", None, None)

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf", Decimal("NaN")])
    def test_rejects_non_finite(self, value):
        with pytest.raises(click.BadParameter, match="not a finite number"):
            DECIMAL.convert(value, None, None)
