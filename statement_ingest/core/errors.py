"""
Typed failures raised by the ingestion pipeline.

Row-level problems (blank rows, subtotal rows, unparseable dates, zero amounts)
are never raised; they are skipped by the row extractor.
"""
from typing import List, Optional


class StatementParseError(ValueError):
    """Base class for every failure surfaced to callers of parse_statement."""

    user_message = "Could not read this statement file."


class UnsupportedFileType(StatementParseError):
    """The bytes could not be decoded as .xls, .xlsx or .csv."""

    user_message = "Unsupported file type. Please export the statement as .xls, .xlsx or .csv."


class EmptyWorkbook(StatementParseError):
    """The workbook has no sheets, or the selected sheet has no rows."""

    user_message = "The statement file contains no data."


class HeaderNotFound(StatementParseError):
    """No row in the scan window satisfied either header detection strategy."""

    user_message = "Could not detect the statement format (no header row found)."

    def __init__(self, sheet_name: str, scan_limit: int):
        self.sheet_name = sheet_name
        self.scan_limit = scan_limit
        super().__init__(
            f"No header row found in the first {scan_limit} rows of sheet '{sheet_name}'"
        )


class ColumnMappingIncomplete(StatementParseError):
    """A header row was found but the date or amount columns could not be resolved."""

    user_message = "Could not detect the date or amount columns of this statement."

    def __init__(self, header_map, missing: List[str], sheet_name: Optional[str] = None):
        self.header_map = header_map
        self.missing = missing
        self.sheet_name = sheet_name
        super().__init__(
            f"Header row is missing required columns: {', '.join(missing)}"
        )
