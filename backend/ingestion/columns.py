"""Column mapping for platform exports.

Resolves which header column feeds which canonical field, either from a saved
mapping template or by matching headers against known export aliases.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import NoMappableColumnsError

# ============================================================================
# FIELD CONFIGURATION
# ============================================================================

CANONICAL_FIELDS = (
    "campaign_name",
    "impressions",
    "clicks",
    "spend",
    "conversions",
    "revenue",
    "date",
)

# Optional hierarchy fields - used for campaign identity and ad sets/ads
IDENTITY_FIELDS = (
    "platform_campaign_id",
    "ad_set_name",
    "ad_name",
)

ALL_FIELDS = CANONICAL_FIELDS + IDENTITY_FIELDS

NUMERIC_FIELDS = ("impressions", "clicks", "spend", "conversions", "revenue")

# Stored as whole numbers
COUNT_FIELDS = ("impressions", "clicks")

# Aliases in normalized form (see normalize_header). Order within a field
# does not matter; the first header column that matches wins.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "campaign_name": (
        "campaign_name", "campaign", "campaign_title",
    ),
    "platform_campaign_id": (
        "campaign_id", "platform_campaign_id", "campaign_external_id",
    ),
    "ad_set_name": (
        "ad_set_name", "adset_name", "ad_set", "adset", "ad_group",
        "ad_group_name", "adgroup_name", "adgroup",
    ),
    "ad_name": (
        "ad_name", "ad", "creative_name",
    ),
    "impressions": (
        "impressions", "impression", "impr", "imps",
    ),
    "clicks": (
        "clicks", "click", "link_clicks", "clicks_all", "swipe_ups",
    ),
    "spend": (
        "spend", "cost", "amount_spent", "amount_spent_usd", "spent",
        "total_spend", "spend_usd", "cost_usd", "media_cost", "total_cost",
    ),
    "conversions": (
        "conversions", "conversion", "conv", "purchases", "results",
        "total_conversions", "leads",
    ),
    "revenue": (
        "revenue", "conversion_value", "conv_value", "purchase_value",
        "purchases_conversion_value", "total_conversion_value", "sales",
        "total_revenue",
    ),
    "date": (
        "date", "day", "reporting_starts", "reporting_date", "report_date",
        "stat_time_day", "start_date",
    ),
}

_SEPARATORS = re.compile(r"[\W_]+")


def normalize_header(header: str) -> str:
    """Normalize a header cell for alias matching.

    "Amount Spent (USD)" -> "amount_spent_usd", "#Impressions" -> "impressions"
    """
    value = header.strip().casefold().lstrip("#")
    return _SEPARATORS.sub("_", value).strip("_")


# ============================================================================
# MAPPING
# ============================================================================

@dataclass
class ColumnMapping:
    """Resolved column assignment for one file.

    Attributes:
        fields: Canonical field -> column index.
        source: "template" or "auto".
        unmapped: Header cells that feed no field.
    """

    fields: Dict[str, int] = field(default_factory=dict)
    source: str = "auto"
    unmapped: List[str] = field(default_factory=list)

    @property
    def by_index(self) -> Dict[int, str]:
        """Column index -> canonical field."""
        return {index: name for name, index in self.fields.items()}

    def has(self, field_name: str) -> bool:
        return field_name in self.fields

    def get(self, row: List[str], field_name: str) -> Optional[str]:
        """Cell value for a field, None when the field is unmapped.

        Short rows read as blank cells.
        """
        index = self.fields.get(field_name)
        if index is None:
            return None
        return row[index] if index < len(row) else ""


def map_columns(
    header: List[str],
    template_entries: Optional[Iterable[Tuple[str, str]]] = None,
) -> ColumnMapping:
    """Map header columns to canonical fields.

    Args:
        header: Header row cells.
        template_entries: Ordered (source_column, target_field) pairs from a
            mapping template. When None, aliases are used.

    Raises:
        NoMappableColumnsError: If no column maps to a canonical field. Identity
            columns alone (campaign id, ad set, ad) do not make a file usable.
    """
    if template_entries is not None:
        mapping = _map_from_template(header, template_entries)
    else:
        mapping = _map_from_aliases(header)

    if not any(name in mapping.fields for name in CANONICAL_FIELDS):
        where = "the mapping template" if mapping.source == "template" else "any known column name"
        raise NoMappableColumnsError(
            f"No columns could be mapped using {where}. Found: {', '.join(header) or '(none)'}"
        )

    mapping.unmapped = [
        header[i] for i in range(len(header)) if i not in mapping.by_index
    ]
    return mapping


def _map_from_template(
    header: List[str],
    entries: Iterable[Tuple[str, str]],
) -> ColumnMapping:
    keys = [cell.strip().casefold() for cell in header]
    mapping = ColumnMapping(source="template")
    taken = set()

    for source_column, target_field in entries:
        if target_field not in ALL_FIELDS or target_field in mapping.fields:
            continue
        wanted = source_column.strip().casefold()
        for index, key in enumerate(keys):
            if key == wanted and index not in taken:
                mapping.fields[target_field] = index
                taken.add(index)
                break

    return mapping


def _map_from_aliases(header: List[str]) -> ColumnMapping:
    keys = [normalize_header(cell) for cell in header]
    mapping = ColumnMapping(source="auto")
    taken = set()

    for field_name in ALL_FIELDS:
        aliases = FIELD_ALIASES[field_name]
        for index, key in enumerate(keys):
            if key in aliases and index not in taken:
                mapping.fields[field_name] = index
                taken.add(index)
                break

    return mapping
