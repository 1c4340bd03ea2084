"""PulseDeck - Ingestion Module.

Parses uploaded platform exports, maps their columns, validates rows and
writes daily campaign metrics.
"""

from .columns import CANONICAL_FIELDS, ColumnMapping, map_columns
from .errors import (
    EmptyFileError,
    IngestionError,
    NoMappableColumnsError,
    UnsupportedFormatError,
)
from .parser import ParsedFile, detect_format, parse_upload
from .pipeline import run_upload_job
from .validator import RowError, RowValidator, ValidatedRow
from .writer import IngestionWriter, WriteResult

__all__ = [
    "CANONICAL_FIELDS",
    "ColumnMapping",
    "map_columns",
    "EmptyFileError",
    "IngestionError",
    "NoMappableColumnsError",
    "UnsupportedFormatError",
    "ParsedFile",
    "detect_format",
    "parse_upload",
    "run_upload_job",
    "RowError",
    "RowValidator",
    "ValidatedRow",
    "IngestionWriter",
    "WriteResult",
]
