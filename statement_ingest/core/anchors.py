"""
Section marker and header row location.

A statement's header row is found either at a fixed offset below a section
marker ("이용상세내역", "거래내역", ...) or, when no marker exists, as the
first row holding both a date keyword and an amount keyword.
"""
import re
from typing import List, Optional, Sequence, Tuple
import logging

from .errors import HeaderNotFound
from .loader import Row
from .normalize import cell_text, clean_cell, clean_header, looks_like_date
from .rules import ParserRules
from ..models.schema import DetectionStrategy, SectionFormat

logger = logging.getLogger(__name__)

_LONG_NUMBER = re.compile(r'^\d{5,}$')
SUBHEADER_MAX_CELL_LENGTH = 20
SUBHEADER_NUMERIC_RATIO = 0.3


class MarkerHit:
    """A section marker found in a sheet."""
    def __init__(self, row_index: int, text: str, section_format: SectionFormat):
        self.row_index = row_index
        self.text = text
        self.section_format = section_format

    def __repr__(self):
        return f"MarkerHit(row={self.row_index}, text='{self.text}', format={self.section_format.value})"

    @property
    def header_row(self) -> int:
        return self.row_index + self.section_format.header_offset


class HeaderLocation:
    """Where the header row is and how it was found."""
    def __init__(self, row_index: int, strategy: DetectionStrategy,
                 marker: Optional[MarkerHit] = None):
        self.row_index = row_index
        self.strategy = strategy
        self.marker = marker

    def __repr__(self):
        return f"HeaderLocation(row={self.row_index}, strategy={self.strategy.value})"


def classify_marker(text: str, rules: ParserRules) -> SectionFormat:
    """Pick the layout family for a marker cell's text."""
    if any(marker in text for marker in rules.detailed_markers):
        return SectionFormat.DETAILED_WITH_SUBHEADER
    return SectionFormat.GENERIC


def find_section_marker(rows: Sequence[Row], rules: ParserRules) -> Optional[MarkerHit]:
    """
    Find the first cell containing a section marker.

    Args:
        rows: Sheet rows
        rules: Detection rules (markers and scan window)

    Returns:
        MarkerHit for the first matching cell, None when no marker is present
    """
    for index, row in enumerate(rows[:rules.scan_limit]):
        for cell in row:
            text = cell_text(cell)
            if text and any(marker in text for marker in rules.section_markers):
                return MarkerHit(index, text, classify_marker(text, rules))
    return None


def row_has_header_keywords(row: Row, rules: ParserRules) -> bool:
    """True when the row has a date-keyword cell and an amount-keyword cell."""
    cells = [clean_cell(cell) for cell in row]
    date_keywords = [keyword.lower() for keyword in rules.header_keywords.date]
    amount_keywords = [keyword.lower() for keyword in rules.header_keywords.amount]

    has_date = any(keyword in cell for cell in cells for keyword in date_keywords)
    has_amount = any(keyword in cell for cell in cells for keyword in amount_keywords)
    return has_date and has_amount


def find_keyword_header(rows: Sequence[Row], rules: ParserRules) -> Optional[int]:
    """Index of the first keyword co-occurrence row in the scan window."""
    for index, row in enumerate(rows[:rules.scan_limit]):
        if row and row_has_header_keywords(row, rules):
            return index
    return None


def _is_blank(row: Row) -> bool:
    return not any(cell_text(cell) for cell in row)


def locate_header(rows: Sequence[Row], rules: ParserRules,
                  sheet_name: str = "") -> HeaderLocation:
    """
    Locate the header row of a sheet.

    Marker offset is tried first; keyword co-occurrence is the fallback.

    Args:
        rows: Sheet rows
        rules: Detection rules
        sheet_name: Sheet name, for error reporting

    Returns:
        HeaderLocation

    Raises:
        HeaderNotFound: neither strategy found a header in the scan window
    """
    marker = find_section_marker(rows, rules)
    if marker:
        header_row = marker.header_row
        if header_row < len(rows) and not _is_blank(rows[header_row]):
            logger.info(
                f"Section marker '{marker.text}' at row {marker.row_index + 1}, "
                f"{marker.section_format.value} format, header at row {header_row + 1}"
            )
            return HeaderLocation(header_row, DetectionStrategy.MARKER_OFFSET, marker)
        logger.warning(
            f"Section marker at row {marker.row_index + 1} points to a missing or blank "
            f"header row {header_row + 1}, falling back to keyword search"
        )

    header_row = find_keyword_header(rows, rules)
    if header_row is not None:
        logger.info(f"Header found by keywords at row {header_row + 1}")
        return HeaderLocation(header_row, DetectionStrategy.KEYWORD, marker)

    raise HeaderNotFound(sheet_name, rules.scan_limit)


def _is_data_row(row: Row) -> bool:
    if any(looks_like_date(cell) for cell in row):
        return True
    values = [cell_text(cell) for cell in row]
    values = [value for value in values if value]
    numeric = [value for value in values if _LONG_NUMBER.match(value)]
    return len(values) >= 3 and len(numeric) / len(values) >= SUBHEADER_NUMERIC_RATIO


def _is_header_continuation(row: Row) -> bool:
    return any(
        0 < len(cell_text(cell)) <= SUBHEADER_MAX_CELL_LENGTH
        for cell in row
    )


def merge_subheaders(rows: Sequence[Row], header_row: int,
                     max_rows: int) -> Tuple[List[str], int]:
    """
    Merge continuation rows below a header into the header labels.

    Two-row headers ("이용금액" over "원금" / "수수료") are flattened by
    appending the lower label to the upper one. Merging stops at the first row
    that looks like data.

    Args:
        rows: Sheet rows
        header_row: Index of the detected header row
        max_rows: Maximum number of continuation rows to merge

    Returns:
        Tuple of (merged header labels, number of rows merged)
    """
    headers = [clean_header(cell) for cell in rows[header_row]]
    merged = 0

    for offset in range(1, max_rows + 1):
        index = header_row + offset
        if index >= len(rows):
            break
        next_row = rows[index]
        if _is_blank(next_row) or _is_data_row(next_row) or not _is_header_continuation(next_row):
            break

        width = max(len(headers), len(next_row))
        headers.extend([""] * (width - len(headers)))
        for column in range(width):
            below = clean_header(next_row[column]) if column < len(next_row) else ""
            above = headers[column]
            if below and below != above and below not in above:
                headers[column] = f"{above}{below}" if above else below
        merged += 1
        logger.debug(f"Merged subheader row {index + 1} into header")

    return headers, merged
