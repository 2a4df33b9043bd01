"""
Header cell classification into column roles.
"""
from typing import Dict, List, Optional, Sequence
import logging

from .errors import ColumnMappingIncomplete
from .normalize import clean_header
from .rules import ParserRules
from ..models.schema import HeaderMap, Role

logger = logging.getLogger(__name__)


def classify_header(header: str, rules: ParserRules) -> Optional[Role]:
    """
    Classify one cleaned header cell.

    Rules are evaluated in order and the first match wins.

    Args:
        header: Cleaned header text
        rules: Detection rules

    Returns:
        Role of the column, None when no rule matches
    """
    if not header:
        return None
    for rule in rules.column_rules:
        if rule.matches(header):
            return rule.role
    return None


def map_columns(header_cells: Sequence, rules: ParserRules) -> HeaderMap:
    """
    Build a HeaderMap from a header row.

    Each role keeps the first column classified into it; every classified
    column is also recorded as a candidate for its role. Columns matched by
    an ignore rule are dropped.

    Args:
        header_cells: Header row cells (raw or already cleaned)
        rules: Detection rules

    Returns:
        HeaderMap
    """
    headers = [clean_header(cell) for cell in header_cells]
    columns: Dict[Role, int] = {}
    candidates: Dict[Role, List[int]] = {}

    for index, header in enumerate(headers):
        role = classify_header(header, rules)
        if role is None:
            continue
        if role == Role.IGNORE:
            logger.debug(f"Ignoring column {index} '{header}'")
            continue
        logger.debug(f"Column {index} '{header}' -> {role.value}")
        columns.setdefault(role, index)
        candidates.setdefault(role, []).append(index)

    return HeaderMap(headers=headers, columns=columns, candidates=candidates)


def require_complete(header_map: HeaderMap, sheet_name: Optional[str] = None) -> HeaderMap:
    """
    Check that a HeaderMap can drive row extraction.

    Raises:
        ColumnMappingIncomplete: date or every amount-bearing role is missing
    """
    missing = header_map.missing_roles()
    if missing:
        raise ColumnMappingIncomplete(header_map, missing, sheet_name)
    return header_map
