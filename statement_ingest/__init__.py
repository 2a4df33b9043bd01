"""
Korean bank and card statement ingestion

Normalizes .xls, .xlsx and .csv statement exports from Korean banks and card
issuers into one canonical transaction shape, with diagnostics describing how
the sheet, header row and columns were detected.
"""

__version__ = "1.0.0"

from .core.runner import parse_statement, parse_workbook, ParseOptions, StatementParser
from .core.loader import load_workbook, RawWorkbook, RawSheet
from .core.detectors import detect_issuer
from .core.errors import (
    StatementParseError,
    HeaderNotFound,
    ColumnMappingIncomplete,
    EmptyWorkbook,
    UnsupportedFileType,
)
from .models.schema import CanonicalTransaction, HeaderMap, ParseDiagnostics, Role, StatementImport

__all__ = [
    "parse_statement",
    "parse_workbook",
    "ParseOptions",
    "StatementParser",
    "load_workbook",
    "RawWorkbook",
    "RawSheet",
    "detect_issuer",
    "StatementParseError",
    "HeaderNotFound",
    "ColumnMappingIncomplete",
    "EmptyWorkbook",
    "UnsupportedFileType",
    "CanonicalTransaction",
    "HeaderMap",
    "ParseDiagnostics",
    "Role",
    "StatementImport",
]
