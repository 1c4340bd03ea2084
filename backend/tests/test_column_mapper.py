"""Tests for column mapping.

Tests cover:
- Header normalization
- Alias detection across platform export layouts
- First-match-wins and one-field-per-column rules
- Template mappings (trimmed, case-insensitive)
- NoMappableColumnsError

Run with: pytest tests/test_column_mapper.py -v
"""

import pytest

from ingestion.columns import ColumnMapping, map_columns, normalize_header
from ingestion.errors import NoMappableColumnsError


class TestNormalizeHeader:
    """Tests for normalize_header."""

    def test_spaces_and_case(self):
        assert normalize_header("Campaign Name") == "campaign_name"

    def test_punctuation(self):
        assert normalize_header("Amount Spent (USD)") == "amount_spent_usd"

    def test_hash_prefix(self):
        assert normalize_header("#Impressions") == "impressions"

    def test_surrounding_whitespace(self):
        assert normalize_header("  Clicks  ") == "clicks"


class TestAliasMapping:
    """Tests for automatic column detection."""

    def test_canonical_headers(self):
        header = ["campaign_name", "impressions", "clicks", "spend", "conversions"]
        mapping = map_columns(header)

        assert mapping.source == "auto"
        assert mapping.fields == {
            "campaign_name": 0,
            "impressions": 1,
            "clicks": 2,
            "spend": 3,
            "conversions": 4,
        }
        assert mapping.unmapped == []

    def test_facebook_export(self):
        header = ["Campaign name", "Reporting starts", "Impressions", "Link clicks",
                  "Amount spent (USD)", "Purchases", "Purchases conversion value"]
        mapping = map_columns(header)

        assert mapping.fields["campaign_name"] == 0
        assert mapping.fields["date"] == 1
        assert mapping.fields["clicks"] == 3
        assert mapping.fields["spend"] == 4
        assert mapping.fields["conversions"] == 5
        assert mapping.fields["revenue"] == 6

    def test_google_export(self):
        header = ["Campaign", "Campaign ID", "Ad group", "Day", "Impr.", "Cost", "Conv. value"]
        mapping = map_columns(header)

        assert mapping.fields["campaign_name"] == 0
        assert mapping.fields["platform_campaign_id"] == 1
        assert mapping.fields["ad_set_name"] == 2
        assert mapping.fields["date"] == 3
        assert mapping.fields["impressions"] == 4
        assert mapping.fields["spend"] == 5
        assert mapping.fields["revenue"] == 6

    def test_first_matching_column_wins(self):
        """Test two columns that both look like spend map the first one."""
        mapping = map_columns(["campaign", "Cost", "Spend"])
        assert mapping.fields["spend"] == 1
        assert mapping.unmapped == ["Spend"]

    def test_column_feeds_one_field(self):
        mapping = map_columns(["Campaign", "Campaign Name"])
        assert mapping.fields == {"campaign_name": 0}
        assert mapping.unmapped == ["Campaign Name"]

    def test_unknown_columns_reported(self):
        mapping = map_columns(["campaign_name", "Reach", "Frequency"])
        assert mapping.unmapped == ["Reach", "Frequency"]

    def test_no_mappable_columns(self):
        with pytest.raises(NoMappableColumnsError) as exc_info:
            map_columns(["foo", "bar"])
        assert "foo, bar" in str(exc_info.value)

    def test_identity_columns_alone_not_mappable(self):
        with pytest.raises(NoMappableColumnsError):
            map_columns(["Campaign ID", "Reach"])


class TestTemplateMapping:
    """Tests for template-driven mapping."""

    def test_trimmed_case_insensitive_match(self):
        header = ["  CAMPAIGN  ", "Money"]
        entries = [("campaign", "campaign_name"), (" money ", "spend")]
        mapping = map_columns(header, entries)

        assert mapping.source == "template"
        assert mapping.fields == {"campaign_name": 0, "spend": 1}

    def test_template_ignores_aliases(self):
        """Test alias detection is not mixed into a template mapping."""
        mapping = map_columns(["Name", "Impressions"], [("Name", "campaign_name")])
        assert mapping.fields == {"campaign_name": 0}
        assert mapping.unmapped == ["Impressions"]

    def test_first_entry_for_field_wins(self):
        entries = [("Cost", "spend"), ("Spend", "spend")]
        mapping = map_columns(["Spend", "Cost"], entries)
        assert mapping.fields["spend"] == 1

    def test_missing_source_columns_skipped(self):
        entries = [("Not There", "clicks"), ("Name", "campaign_name")]
        mapping = map_columns(["Name"], entries)
        assert mapping.fields == {"campaign_name": 0}

    def test_template_maps_nothing(self):
        with pytest.raises(NoMappableColumnsError):
            map_columns(["a", "b"], [("c", "campaign_name")])

    def test_template_maps_only_identity_field(self):
        with pytest.raises(NoMappableColumnsError):
            map_columns(["Ad", "Spend"], [("Ad", "ad_name")])


class TestColumnMapping:
    """Tests for ColumnMapping accessors."""

    def test_get_unmapped_field(self):
        mapping = ColumnMapping(fields={"campaign_name": 0})
        assert mapping.get(["Alpha"], "spend") is None

    def test_get_short_row(self):
        mapping = ColumnMapping(fields={"campaign_name": 0, "spend": 3})
        assert mapping.get(["Alpha"], "spend") == ""

    def test_by_index(self):
        mapping = ColumnMapping(fields={"campaign_name": 0, "spend": 2})
        assert mapping.by_index == {0: "campaign_name", 2: "spend"}
