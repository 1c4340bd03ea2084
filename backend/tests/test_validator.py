"""Tests for row validation.

Tests cover:
- Date and number parsing helpers
- Campaign name and date requirements
- Missing numeric policy (zero / error)
- Negative, non-numeric and fractional count values
- Report window checks

Run with: pytest tests/test_validator.py -v
"""

import pytest

from config import MissingNumericPolicy
from ingestion.columns import map_columns
from ingestion.validator import (
    InvalidValue,
    RowError,
    RowValidator,
    ValidatedRow,
    parse_date,
    parse_number,
)

HEADER = ["campaign_name", "date", "impressions", "clicks", "spend", "conversions", "revenue"]


def validator(header=HEADER, **kwargs) -> RowValidator:
    return RowValidator(map_columns(header), **kwargs)


class TestParseDate:
    """Tests for parse_date."""

    @pytest.mark.parametrize("value", [
        "2025-11-30",
        "11/30/2025",
        "2025/11/30",
        "30.11.2025",
        "20251130",
        "Nov 30, 2025",
        "30 Nov 2025",
        "2025-11-30 00:00:00",
        "2025-11-30T12:30:00.000Z",
    ])
    def test_supported_formats(self, value):
        assert parse_date(value) == "2025-11-30"

    def test_unparseable(self):
        assert parse_date("yesterday") is None

    def test_blank(self):
        assert parse_date("  ") is None


class TestParseNumber:
    """Tests for parse_number."""

    def test_plain(self):
        assert parse_number("250.50") == 250.5

    def test_currency_and_thousands(self):
        assert parse_number("$1,234.50") == 1234.5
        assert parse_number("€ 99") == 99.0
        assert parse_number("1,234,567") == 1234567.0

    @pytest.mark.parametrize("value", ["250,50", "1,23", "12,3456", ",5"])
    def test_decimal_comma_rejected(self, value):
        with pytest.raises(InvalidValue):
            parse_number(value)

    @pytest.mark.parametrize("value", ["", "  ", "-", "--", "N/A", "null"])
    def test_blank_markers(self, value):
        assert parse_number(value) is None

    @pytest.mark.parametrize("value", ["abc", "12abc", "inf", "nan"])
    def test_invalid(self, value):
        with pytest.raises(InvalidValue):
            parse_number(value)


class TestRowValidator:
    """Tests for RowValidator.validate."""

    def test_valid_row(self):
        row = ["Alpha", "2024-01-01", "1,000", "50", "$25.50", "2", "100"]
        outcome = validator().validate(row, 1)

        assert isinstance(outcome, ValidatedRow)
        assert outcome.campaign_name == "Alpha"
        assert outcome.date == "2024-01-01"
        assert outcome.impressions == 1000
        assert isinstance(outcome.impressions, int)
        assert outcome.clicks == 50
        assert outcome.spend == 25.5
        assert outcome.conversions == 2.0
        assert outcome.revenue == 100.0

    def test_invalid_number_names_field(self):
        row = ["Alpha", "2024-01-01", "abc", "50", "10", "1", "0"]
        outcome = validator().validate(row, 2)

        assert isinstance(outcome, RowError)
        assert outcome.row_number == 2
        assert outcome.reason == "impressions is not a valid number"

    def test_decimal_comma_spend_is_row_error(self):
        row = ["Alpha", "2024-01-01", "100", "5", "250,50", "1", "0"]
        outcome = validator().validate(row, 3)

        assert isinstance(outcome, RowError)
        assert outcome.reason == "spend is not a valid number"

    def test_negative_value(self):
        row = ["Alpha", "2024-01-01", "10", "5", "-1", "0", "0"]
        outcome = validator().validate(row, 1)
        assert outcome.reason == "spend must not be negative"

    def test_fractional_count(self):
        row = ["Alpha", "2024-01-01", "10.5", "5", "1", "0", "0"]
        outcome = validator().validate(row, 1)
        assert outcome.reason == "impressions must be a whole number"

    def test_fractional_conversions_allowed(self):
        row = ["Alpha", "2024-01-01", "10", "5", "1", "2.5", "0"]
        outcome = validator().validate(row, 1)
        assert outcome.conversions == 2.5

    def test_empty_campaign_name(self):
        row = ["  ", "2024-01-01", "10", "5", "1", "0", "0"]
        outcome = validator().validate(row, 3)
        assert outcome == RowError(3, "campaign_name is empty")

    def test_campaign_name_not_mapped(self):
        v = validator(header=["impressions", "spend"])
        outcome = v.validate(["10", "1"], 1)
        assert isinstance(outcome, RowError)
        assert "campaign_name" in outcome.reason

    def test_campaign_name_trimmed(self):
        row = ["  Alpha  ", "2024-01-01", "10", "5", "1", "0", "0"]
        assert validator().validate(row, 1).campaign_name == "Alpha"

    def test_blank_date(self):
        row = ["Alpha", "", "10", "5", "1", "0", "0"]
        assert validator().validate(row, 1).reason == "date is empty"

    def test_invalid_date(self):
        row = ["Alpha", "someday", "10", "5", "1", "0", "0"]
        outcome = validator().validate(row, 1)
        assert outcome.reason.startswith("date is not a valid date")

    def test_no_date_column_uses_default(self):
        v = validator(header=["campaign_name", "spend"], default_date="2024-03-05")
        outcome = v.validate(["Alpha", "10"], 1)
        assert outcome.date == "2024-03-05"

    def test_date_before_window(self):
        v = validator(date_from="2024-01-10", date_to="2024-01-20")
        row = ["Alpha", "2024-01-09", "10", "5", "1", "0", "0"]
        assert "before the upload window" in v.validate(row, 1).reason

    def test_date_after_window(self):
        v = validator(date_from="2024-01-10", date_to="2024-01-20")
        row = ["Alpha", "2024-01-21", "10", "5", "1", "0", "0"]
        assert "after the upload window" in v.validate(row, 1).reason

    def test_date_inside_window(self):
        v = validator(date_from="2024-01-10", date_to="2024-01-20")
        row = ["Alpha", "2024-01-20", "10", "5", "1", "0", "0"]
        assert isinstance(v.validate(row, 1), ValidatedRow)

    def test_missing_numeric_zero_policy(self):
        """Test unmapped and blank numeric fields become zero by default."""
        v = validator(header=["campaign_name", "date", "spend", "clicks"])
        outcome = v.validate(["Alpha", "2024-01-01", "", "3"], 1)

        assert isinstance(outcome, ValidatedRow)
        assert outcome.spend == 0.0
        assert outcome.impressions == 0
        assert outcome.revenue == 0.0

    def test_missing_numeric_error_policy_blank_cell(self):
        v = validator(missing_numeric_policy=MissingNumericPolicy.ERROR)
        row = ["Alpha", "2024-01-01", "10", "5", "", "0", "0"]
        assert v.validate(row, 1).reason == "spend is missing"

    def test_missing_numeric_error_policy_unmapped_column(self):
        v = validator(
            header=["campaign_name", "date", "impressions", "clicks", "spend", "conversions"],
            missing_numeric_policy="error",
        )
        row = ["Alpha", "2024-01-01", "10", "5", "1", "0"]
        assert v.validate(row, 1).reason == "revenue is missing"

    def test_short_row_reads_blank(self):
        row = ["Alpha", "2024-01-01", "10"]
        outcome = validator().validate(row, 1)
        assert isinstance(outcome, ValidatedRow)
        assert outcome.spend == 0.0

    def test_identity_fields(self):
        header = ["campaign_name", "campaign_id", "ad_set_name", "ad_name", "spend"]
        v = validator(header=header, default_date="2024-01-01")
        outcome = v.validate(["Alpha", " 123 ", "Set A", "", "1"], 1)

        assert outcome.platform_campaign_id == "123"
        assert outcome.ad_set_name == "Set A"
        assert outcome.ad_name is None
