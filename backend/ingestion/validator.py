"""Row validation.

Each data row becomes either a ValidatedRow, ready to be written, or a
RowError carrying the 1-based data row number and a readable reason. Row
problems never abort an upload.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from config import MissingNumericPolicy

from .columns import COUNT_FIELDS, NUMERIC_FIELDS, ColumnMapping

DATE_FORMATS = [
    "%Y-%m-%d",            # 2025-11-30
    "%m/%d/%Y",            # 11/30/2025
    "%m/%d/%y",            # 11/30/25
    "%d/%m/%Y",            # 30/11/2025
    "%Y/%m/%d",            # 2025/11/30
    "%d.%m.%Y",            # 30.11.2025
    "%Y%m%d",              # 20251130
    "%b %d, %Y",           # Nov 30, 2025
    "%d %b %Y",            # 30 Nov 2025
    "%Y-%m-%dT%H:%M:%S",   # 2025-11-30T00:00:00
    "%Y-%m-%d %H:%M:%S",   # 2025-11-30 00:00:00
]

# Cells platforms use for "no value"
BLANK_MARKERS = {"", "-", "--", "n/a", "na", "null", "none"}

_CURRENCY = re.compile(r"[$€£¥₹\s]")

# 1,234 or 1,234,567.89
_THOUSANDS = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")


@dataclass
class ValidatedRow:
    """A row that passed validation."""

    row_number: int
    campaign_name: str
    date: str
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    platform_campaign_id: Optional[str] = None
    ad_set_name: Optional[str] = None
    ad_name: Optional[str] = None


@dataclass
class RowError:
    """A row rejected by validation."""

    row_number: int
    reason: str


RowOutcome = Union[ValidatedRow, RowError]


class InvalidValue(ValueError):
    pass


def parse_date(value: str) -> Optional[str]:
    """Parse date from various formats to YYYY-MM-DD, None if unparseable."""
    text = value.strip()
    if not text:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue

    # ISO timestamps with fractions or offsets, e.g. 2025-11-30T00:00:00.000Z
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None


def parse_number(value: str) -> Optional[float]:
    """Parse a numeric cell, None for blank cells.

    Currency symbols and whitespace are ignored. Commas are accepted only as
    thousands separators; "250,50" is rejected rather than read as 25050.

    Raises:
        InvalidValue: If the cell is not a finite number.
    """
    text = value.strip()
    if text.casefold() in BLANK_MARKERS:
        return None

    cleaned = _CURRENCY.sub("", text)
    if "," in cleaned:
        if not _THOUSANDS.match(cleaned):
            raise InvalidValue("is not a valid number")
        cleaned = cleaned.replace(",", "")
    try:
        number = float(cleaned)
    except ValueError:
        raise InvalidValue("is not a valid number") from None
    if not math.isfinite(number):
        raise InvalidValue("is not a valid number")
    return number


class RowValidator:
    """Validates data rows against a resolved column mapping.

    Args:
        mapping: Column mapping for the file.
        missing_numeric_policy: What to do with numeric fields that have no
            value (unmapped column or blank cell).
        date_from: Optional earliest accepted date (ISO).
        date_to: Optional latest accepted date (ISO).
        default_date: Report date for files without a date column.
    """

    def __init__(
        self,
        mapping: ColumnMapping,
        missing_numeric_policy: MissingNumericPolicy = MissingNumericPolicy.ZERO,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        default_date: Optional[str] = None,
    ):
        self.mapping = mapping
        self.policy = MissingNumericPolicy(missing_numeric_policy)
        self.date_from = date_from
        self.date_to = date_to
        self.default_date = default_date or date.today().isoformat()

    def validate(self, row: List[str], row_number: int) -> RowOutcome:
        """Validate one data row (row_number is 1-based, header excluded)."""
        if not self.mapping.has("campaign_name"):
            return RowError(row_number, "campaign_name column is not mapped")

        campaign_name = self.mapping.get(row, "campaign_name").strip()
        if not campaign_name:
            return RowError(row_number, "campaign_name is empty")

        if self.mapping.has("date"):
            raw_date = self.mapping.get(row, "date")
            if not raw_date.strip():
                return RowError(row_number, "date is empty")
            row_date = parse_date(raw_date)
            if row_date is None:
                return RowError(row_number, f"date is not a valid date ({raw_date.strip()!r})")
        else:
            row_date = self.default_date

        if self.date_from and row_date < self.date_from:
            return RowError(row_number, f"date {row_date} is before the upload window start {self.date_from}")
        if self.date_to and row_date > self.date_to:
            return RowError(row_number, f"date {row_date} is after the upload window end {self.date_to}")

        values = {}
        for field_name in NUMERIC_FIELDS:
            raw = self.mapping.get(row, field_name)
            try:
                number = parse_number(raw) if raw is not None else None
            except InvalidValue as e:
                return RowError(row_number, f"{field_name} {e}")

            if number is None:
                if self.policy == MissingNumericPolicy.ERROR:
                    return RowError(row_number, f"{field_name} is missing")
                number = 0.0

            if number < 0:
                return RowError(row_number, f"{field_name} must not be negative")
            if field_name in COUNT_FIELDS:
                if not number.is_integer():
                    return RowError(row_number, f"{field_name} must be a whole number")
                number = int(number)
            values[field_name] = number

        return ValidatedRow(
            row_number=row_number,
            campaign_name=campaign_name,
            date=row_date,
            platform_campaign_id=self._optional_text(row, "platform_campaign_id"),
            ad_set_name=self._optional_text(row, "ad_set_name"),
            ad_name=self._optional_text(row, "ad_name"),
            **values,
        )

    def _optional_text(self, row: List[str], field_name: str) -> Optional[str]:
        value = self.mapping.get(row, field_name)
        if value is None:
            return None
        return value.strip() or None
