"""
End-to-end statement ingestion.
"""
from pathlib import Path
from typing import Optional, Union
import logging

from pydantic import BaseModel

from .anchors import locate_header, merge_subheaders
from .columns import map_columns, require_complete
from .detectors import detect_issuer, select_sheet
from .duplicates import remove_duplicate_transactions
from .errors import EmptyWorkbook
from .loader import RawWorkbook, load_workbook
from .rules import ParserRules, load_rules
from .tables import extract_rows
from ..models.schema import ParseDiagnostics, StatementImport

logger = logging.getLogger(__name__)

Source = Union[bytes, str, Path, RawWorkbook]


class ParseOptions(BaseModel):
    """Caller-controlled parsing behaviour."""
    deduplicate: bool = False
    strict_duplicates: bool = False
    merge_subheaders: bool = True
    detect_issuer: bool = True


class StatementParser:
    """Runs the ingestion pipeline with one set of rules and options."""

    def __init__(self, rules: Optional[ParserRules] = None, options: Optional[ParseOptions] = None):
        self.rules = rules or load_rules()
        self.options = options or ParseOptions()

    def parse(self, source: Source, filename: Optional[str] = None) -> StatementImport:
        """
        Parse a statement file.

        Args:
            source: File bytes, a path, or an already loaded RawWorkbook
            filename: Original file name when `source` is bytes

        Returns:
            StatementImport with transactions in file order

        Raises:
            StatementParseError: the file could not be decoded or its
                table could not be located
        """
        if isinstance(source, RawWorkbook):
            workbook = source
        else:
            if filename is None and isinstance(source, (str, Path)):
                filename = Path(source).name
            workbook = load_workbook(source, filename)
        return self.parse_workbook(workbook, filename)

    def parse_workbook(self, workbook: RawWorkbook, filename: Optional[str] = None) -> StatementImport:
        """Parse an already loaded workbook."""
        selection = select_sheet(workbook, self.rules)
        sheet = selection.sheet
        if not sheet.rows:
            raise EmptyWorkbook(f"Sheet '{sheet.name}' has no rows")

        location = locate_header(sheet.rows, self.rules, sheet.name)

        if self.options.merge_subheaders:
            headers, merged = merge_subheaders(
                sheet.rows, location.row_index, self.rules.max_subheader_rows
            )
        else:
            headers, merged = list(sheet.rows[location.row_index]), 0

        header_map = require_complete(map_columns(headers, self.rules), sheet.name)
        logger.info(f"Columns: {header_map.describe()}")

        data_start = location.row_index + merged + 1
        transactions, stats = extract_rows(sheet.rows, header_map, data_start, self.rules)

        duplicates_removed = 0
        if self.options.deduplicate:
            transactions, duplicates_removed = remove_duplicate_transactions(
                transactions, strict=self.options.strict_duplicates
            )

        issuer = detect_issuer(workbook, filename) if self.options.detect_issuer else None

        marker = location.marker
        diagnostics = ParseDiagnostics(
            sheet_name=sheet.name,
            sheet_reason=selection.reason,
            marker_row=marker.row_index if marker else None,
            marker_text=marker.text if marker else None,
            section_format=marker.section_format if marker else None,
            strategy=location.strategy,
            header_row=location.row_index,
            subheader_rows_merged=merged,
            data_start_row=data_start,
            header_map=header_map,
            issuer=issuer,
            rows_scanned=stats.rows_scanned,
            rows_skipped=stats.rows_skipped,
            duplicates_removed=duplicates_removed,
        )

        logger.info(f"Parsed {len(transactions)} transaction(s) from sheet '{sheet.name}'")
        return StatementImport(transactions=transactions, diagnostics=diagnostics)


def parse_workbook(workbook: RawWorkbook, filename: Optional[str] = None,
                   options: Optional[ParseOptions] = None,
                   rules: Optional[ParserRules] = None) -> StatementImport:
    """Parse an already loaded workbook with default rules."""
    return StatementParser(rules, options).parse_workbook(workbook, filename)


def parse_statement(source: Source, filename: Optional[str] = None,
                    options: Optional[ParseOptions] = None,
                    rules: Optional[ParserRules] = None) -> StatementImport:
    """
    Parse a Korean bank or card statement export.

    Args:
        source: File bytes, a path, or an already loaded RawWorkbook
        filename: Original file name, used for type sniffing and issuer detection
        options: Parsing options
        rules: Detection rules; the bundled defaults when omitted

    Returns:
        StatementImport
    """
    return StatementParser(rules, options).parse(source, filename)
