"""
Cell normalization: raw spreadsheet values to canonical dates, amounts and text.

None of these functions raise on bad input. An unrecognized date is None and
an unreadable amount is 0, which lets the row extractor make uniform skip
decisions.
"""
import math
import re
from datetime import date, datetime
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


_ISO_DATE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
_DOTTED_DATE = re.compile(r'^(\d{4})([./])(\d{1,2})\2(\d{1,2})\.?$')
_COMPACT_DATE = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
_SHORT_DOTTED_DATE = re.compile(r'^(\d{2})\.(\d{2})\.(\d{2})$')
_US_SHORT_DATE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{2})$')

# Two-digit years at or above the pivot belong to the 1900s.
YEAR_PIVOT = 70


def _expand_year(yy: str) -> int:
    value = int(yy)
    return 1900 + value if value >= YEAR_PIVOT else 2000 + value


def _format_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def cell_text(value: Any) -> str:
    """Render a raw cell as stripped text; absent cells become an empty string."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def clean_header(value: Any) -> str:
    """
    Clean a header cell: drop embedded newlines and trim.

    Issuer exports often wrap long header labels ("이용\\n금액").
    """
    return re.sub(r'[\n\r]', '', cell_text(value)).strip()


def clean_cell(value: Any) -> str:
    """Header cleanup plus lowercasing, for keyword scans."""
    return clean_header(value).lower()


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize a raw date cell to YYYY-MM-DD.

    Accepts date/datetime objects, YYYY-MM-DD, YYYY.MM.DD, YYYY/MM/DD,
    YYYYMMDD, YY.MM.DD and M/D/YY. A whole number is read as YYYYMMDD, as
    spreadsheet exports often store compact dates as numeric cells. Any
    trailing time-of-day portion (text after the first space) is ignored.
    Components must form a real calendar date.

    Args:
        value: Raw cell value

    Returns:
        Canonical date string, or None when the value is not a date
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not value.is_integer():
            return None
        match = _COMPACT_DATE.match(cell_text(value))
        if match:
            year, month, day = match.groups()
            return _format_date(int(year), int(month), int(day))
        return None

    text = str(value).strip()
    if not text:
        return None
    text = text.split(' ')[0]

    match = _ISO_DATE.match(text) or _COMPACT_DATE.match(text)
    if match:
        year, month, day = match.groups()
        return _format_date(int(year), int(month), int(day))

    match = _DOTTED_DATE.match(text)
    if match:
        year, _, month, day = match.groups()
        return _format_date(int(year), int(month), int(day))

    match = _SHORT_DOTTED_DATE.match(text)
    if match:
        yy, month, day = match.groups()
        return _format_date(_expand_year(yy), int(month), int(day))

    match = _US_SHORT_DATE.match(text)
    if match:
        month, day, yy = match.groups()
        return _format_date(_expand_year(yy), int(month), int(day))

    return None


def normalize_amount(value: Any) -> float:
    """
    Normalize a raw amount cell to a number.

    Strips thousands separators, whitespace, a trailing '원', a leading '₩'
    and surrounding double quotes. Empty strings and a lone '-' are zero.

    Args:
        value: Raw cell value

    Returns:
        Numeric amount, 0 when the value is not numeric
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    cleaned = re.sub(r'[,\s]', '', str(value))
    cleaned = cleaned.strip('"')
    cleaned = re.sub(r'원$', '', cleaned)
    cleaned = re.sub(r'^₩', '', cleaned)

    if cleaned in ('', '-'):
        return 0.0

    try:
        number = float(cleaned)
    except ValueError:
        logger.debug(f"Non-numeric amount cell: {value!r}")
        return 0.0

    return number if math.isfinite(number) else 0.0


def looks_like_date(value: Any) -> bool:
    """Loose check used to tell data rows from header continuation rows."""
    if isinstance(value, (date, datetime)):
        return True
    text = cell_text(value)
    return bool(
        re.match(r'^\d{1,2}/\d{1,2}/\d{2}$', text)
        or re.match(r'^\d{4}[./-]\d{2}[./-]\d{2}', text)
        or re.match(r'^\d{2}[./-]\d{2}[./-]\d{2}$', text)
    )
