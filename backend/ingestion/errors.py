"""Job-level ingestion errors.

Any of these ends an upload job as failed with the message as its error_text.
Row-level problems are not exceptions; they are RowError values.
"""


class IngestionError(Exception):
    """Base class for errors that make a whole upload unusable."""

    pass


class UnsupportedFormatError(IngestionError):
    """The file is neither CSV nor XLSX, or cannot be decoded as either."""

    pass


class EmptyFileError(IngestionError):
    """The file has no data rows after the header."""

    pass


class NoMappableColumnsError(IngestionError):
    """No header column maps to a known field."""

    pass
