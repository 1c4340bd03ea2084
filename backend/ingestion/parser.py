"""Upload file parser.

Turns the raw bytes of a platform export into a header row plus data rows,
every cell a string. CSV and XLSX are supported.

Usage:
    from ingestion.parser import parse_upload

    parsed = parse_upload(content, "text/csv", "report.csv")
    print(parsed.header, parsed.row_count)
"""

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Iterable, List, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from .errors import EmptyFileError, UnsupportedFormatError

logger = logging.getLogger(__name__)

FORMAT_CSV = "csv"
FORMAT_XLSX = "xlsx"

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/comma-separated-values",
    "text/plain",
}
XLSX_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
# Browsers send these when they don't know better; the extension decides
GENERIC_CONTENT_TYPES = {
    "",
    "application/octet-stream",
    "application/vnd.ms-excel",
    "binary/octet-stream",
}

EXTENSION_FORMATS = {
    ".csv": FORMAT_CSV,
    ".txt": FORMAT_CSV,
    ".xlsx": FORMAT_XLSX,
}

CSV_DELIMITERS = (",", ";", "\t")


@dataclass
class ParsedFile:
    """Header and data rows of an uploaded file."""

    format: str
    header: List[str]
    rows: List[List[str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def detect_format(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """Resolve the file format from the declared MIME type.

    Raises:
        UnsupportedFormatError: If neither the MIME type nor the extension
            names CSV or XLSX.
    """
    mime = (content_type or "").split(";")[0].strip().lower()

    if mime in CSV_CONTENT_TYPES:
        return FORMAT_CSV
    if mime in XLSX_CONTENT_TYPES:
        return FORMAT_XLSX
    if mime in GENERIC_CONTENT_TYPES and filename:
        extension = PurePath(filename).suffix.lower()
        if extension in EXTENSION_FORMATS:
            return EXTENSION_FORMATS[extension]

    raise UnsupportedFormatError(
        f"Unsupported file type {mime or 'unknown'!r}"
        + (f" for {filename}" if filename else "")
        + "; upload a CSV or XLSX export"
    )


def parse_upload(
    content: bytes,
    content_type: Optional[str],
    filename: Optional[str] = None,
) -> ParsedFile:
    """Parse an uploaded file into header and data rows.

    Fully blank rows are skipped and never counted.

    Raises:
        UnsupportedFormatError: Unknown type or undecodable content.
        EmptyFileError: No data rows follow the header.
    """
    file_format = detect_format(content_type, filename)
    if file_format == FORMAT_XLSX:
        raw_rows = _read_xlsx(content)
    else:
        raw_rows = _read_csv(content)

    rows = [row for row in raw_rows if not _is_blank(row)]
    if not rows:
        raise EmptyFileError("File is empty")

    header = [cell.strip() for cell in rows[0]]
    data = rows[1:]
    if not data:
        raise EmptyFileError("File has a header row but no data rows")

    logger.debug(f"Parsed {filename or 'upload'} as {file_format}: {len(data)} data rows")
    return ParsedFile(format=file_format, header=header, rows=data)


def _is_blank(row: List[str]) -> bool:
    return all(not cell.strip() for cell in row)


# ============================================================================
# CSV
# ============================================================================

def _read_csv(content: bytes) -> List[List[str]]:
    try:
        # utf-8-sig drops a byte-order mark if present
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnsupportedFormatError(f"CSV file is not valid UTF-8 text: {e}") from e

    delimiter = _guess_delimiter(text)
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    try:
        return [row for row in reader]
    except csv.Error as e:
        raise UnsupportedFormatError(f"Malformed CSV: {e}") from e


def _guess_delimiter(text: str) -> str:
    """Pick the delimiter that appears most often in the first line."""
    first_line = text.split("\n", 1)[0]
    counts = {d: first_line.count(d) for d in CSV_DELIMITERS}
    best = max(CSV_DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


# ============================================================================
# XLSX
# ============================================================================

def _read_xlsx(content: bytes) -> List[List[str]]:
    """Read the first worksheet with cached formula values."""
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise UnsupportedFormatError(f"File is not a readable XLSX workbook: {e}") from e

    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [_cells_to_strings(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _cells_to_strings(values: Iterable) -> List[str]:
    return [_cell_to_string(v) for v in values]


def _cell_to_string(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
