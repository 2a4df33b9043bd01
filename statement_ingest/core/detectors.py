"""
Sheet selection and issuer detection.
"""
import re
from pathlib import Path
from typing import List, Optional, Sequence
import logging

from .anchors import MarkerHit, find_keyword_header, find_section_marker
from .errors import EmptyWorkbook
from .loader import RawSheet, RawWorkbook, Row
from .normalize import cell_text
from .rules import ParserRules

logger = logging.getLogger(__name__)

CARD_ISSUERS = ['하나카드', '신한카드', '현대카드', '삼성카드', 'KB국민카드', '롯데카드', '우리카드', 'NH농협카드']
BANKS = ['신한은행', '하나은행', 'KB국민은행', '국민은행', '우리은행', '농협은행', 'NH농협은행']

# Order matters: longer bank names before the names they contain.
_BANK_NAME = re.compile(r'(KB국민은행|NH농협은행|국민은행|우리은행|하나은행|농협은행)', re.IGNORECASE)

_CARD_PATTERNS = [
    ('현대카드', re.compile(r'현대.*카드')),
    ('신한카드', re.compile(r'신한.*카드')),
    ('삼성카드', re.compile(r'삼성.*카드')),
    ('KB국민카드', re.compile(r'(KB|국민).*카드', re.IGNORECASE)),
    ('롯데카드', re.compile(r'롯데.*카드')),
    ('하나카드', re.compile(r'하나.*카드')),
    ('우리카드', re.compile(r'우리.*카드')),
    ('NH농협카드', re.compile(r'(NH|농협).*카드', re.IGNORECASE)),
]

# Hana Card prefixes merchant names with a 5-6 digit merchant code: "009844_SK텔레콤"
_HANA_MERCHANT = re.compile(r'^\d{5,6}_[가-힣a-zA-Z]')
HANA_PATTERN_MIN_COUNT = 2
STRUCTURE_SCAN_ROWS = 50
CONTENT_SCAN_ROWS = 20


class SheetSelection:
    """The sheet chosen for parsing and why."""
    def __init__(self, sheet: RawSheet, reason: str, marker: Optional[MarkerHit] = None):
        self.sheet = sheet
        self.reason = reason
        self.marker = marker

    def __repr__(self):
        return f"SheetSelection(sheet='{self.sheet.name}', reason={self.reason})"


def select_sheet(workbook: RawWorkbook, rules: ParserRules) -> SheetSelection:
    """
    Choose the sheet holding the transaction table.

    The first sheet with a section marker wins. Otherwise the first sheet with
    a keyword header row, and failing that the first sheet.

    Args:
        workbook: Loaded workbook
        rules: Detection rules

    Returns:
        SheetSelection

    Raises:
        EmptyWorkbook: the workbook has no sheets
    """
    if not workbook.sheets:
        raise EmptyWorkbook("Workbook has no sheets")

    for sheet in workbook.sheets:
        marker = find_section_marker(sheet.rows, rules)
        if marker:
            logger.info(f"Selected sheet '{sheet.name}' (marker '{marker.text}' at row {marker.row_index + 1})")
            return SheetSelection(sheet, 'marker', marker)

    for sheet in workbook.sheets:
        if find_keyword_header(sheet.rows, rules) is not None:
            logger.info(f"Selected sheet '{sheet.name}' (keyword header)")
            return SheetSelection(sheet, 'keyword')

    sheet = workbook.sheets[0]
    logger.warning(f"No marker or header keywords in any sheet, using first sheet '{sheet.name}'")
    return SheetSelection(sheet, 'first_sheet')


def _match_card(text: str) -> Optional[str]:
    for name in CARD_ISSUERS:
        if name in text:
            return name
    if '국민카드' in text:
        return 'KB국민카드'
    if '농협카드' in text:
        return 'NH농협카드'
    for name, pattern in _CARD_PATTERNS:
        if pattern.search(text):
            return name
    return None


def _match_bank(text: str) -> Optional[str]:
    if '신한은행' in text or re.search(r'신한.*은행', text):
        return '신한은행'
    match = _BANK_NAME.search(text)
    return match.group(0) if match else None


def issuer_from_filename(filename: str) -> Optional[str]:
    """
    Issuer named in the leading token of a file name.

    "신한카드_거래내역.xlsx" -> "신한카드"
    """
    stem = Path(filename).stem if filename else ""
    first_part = re.split(r'[_\-]', stem)[0].strip()
    if not first_part:
        return None
    return _match_card(first_part) or _match_bank(first_part)


def issuer_from_structure(rows: Sequence[Row]) -> Optional[str]:
    """Infer the issuer from cell layout patterns when the logo is an image."""
    hana_count = sum(
        1
        for row in rows[:STRUCTURE_SCAN_ROWS]
        for cell in row
        if _HANA_MERCHANT.match(cell_text(cell))
    )
    if hana_count >= HANA_PATTERN_MIN_COUNT:
        logger.debug(f"Hana Card merchant code pattern found {hana_count} times")
        return '하나카드'
    return None


def issuer_from_content(rows: Sequence[Row]) -> Optional[str]:
    """Issuer mentioned in the first rows of a sheet; cards win over banks."""
    found: List[str] = []
    for row in rows[:CONTENT_SCAN_ROWS]:
        for cell in row:
            text = cell_text(cell)
            if not text:
                continue
            name = _match_card(text) or _match_bank(text)
            if name and name not in found:
                found.append(name)

    for name in CARD_ISSUERS + BANKS:
        if name in found:
            return name
    return None


def detect_issuer(workbook: RawWorkbook, filename: Optional[str] = None) -> Optional[str]:
    """
    Detect the card issuer or bank a statement came from.

    Structure patterns are checked first, then issuer names in the first
    sheet's top rows, then the file name.

    Args:
        workbook: Loaded workbook
        filename: Original file name, if known

    Returns:
        Issuer name, or None when it cannot be told
    """
    if workbook.sheets:
        rows = workbook.sheets[0].rows
        issuer = issuer_from_structure(rows) or issuer_from_content(rows)
        if issuer:
            logger.info(f"Detected issuer: {issuer}")
            return issuer

    if filename:
        issuer = issuer_from_filename(filename)
        if issuer:
            logger.info(f"Detected issuer from file name: {issuer}")
        return issuer
    return None
