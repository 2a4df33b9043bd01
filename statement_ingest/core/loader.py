"""
Workbook loading: statement file bytes to an in-memory RawWorkbook.

.xlsx goes through openpyxl, .xls through xlrd and .csv through the csv
module. Every sheet becomes an immutable tuple of row tuples.
"""
import csv
import io
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union
import logging

import openpyxl
import xlrd

from .errors import EmptyWorkbook, UnsupportedFileType

logger = logging.getLogger(__name__)

Cell = Any
Row = Tuple[Cell, ...]

XLSX_MAGIC = b'PK\x03\x04'
XLS_MAGIC = b'\xd0\xcf\x11\xe0'
CSV_ENCODINGS = ('utf-8-sig', 'cp949', 'euc-kr')


class RawSheet:
    """A named sheet holding rows of raw cell values."""
    def __init__(self, name: str, rows: Iterable[Sequence[Cell]]):
        self.name = name
        self.rows: Tuple[Row, ...] = tuple(tuple(row) for row in rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self):
        return f"RawSheet('{self.name}', rows={len(self.rows)})"

    def head(self, limit: int) -> Tuple[Row, ...]:
        """First `limit` rows of the sheet."""
        return self.rows[:limit]


class RawWorkbook:
    """Ordered collection of sheets decoded from one statement file."""
    def __init__(self, sheets: Iterable[RawSheet]):
        self.sheets: Tuple[RawSheet, ...] = tuple(sheets)

    def __repr__(self):
        return f"RawWorkbook(sheets={[sheet.name for sheet in self.sheets]})"

    @property
    def sheet_names(self) -> List[str]:
        return [sheet.name for sheet in self.sheets]

    def get_sheet(self, name: str) -> Optional[RawSheet]:
        """Get a sheet by name."""
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None

    @classmethod
    def from_rows(cls, *sheets: Tuple[str, Iterable[Sequence[Cell]]]) -> 'RawWorkbook':
        """Build a workbook from (name, rows) pairs."""
        return cls(RawSheet(name, rows) for name, rows in sheets)


def sniff_file_type(data: bytes, filename: Optional[str] = None) -> str:
    """
    Decide how to decode statement bytes.

    Args:
        data: Raw file content
        filename: Original file name, used for its extension when present

    Returns:
        One of "xlsx", "xls", "csv"
    """
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix in ('.xlsx', '.xlsm'):
            return 'xlsx'
        if suffix == '.xls':
            # Some issuers ship xlsx content under a .xls name.
            if data.startswith(XLSX_MAGIC):
                return 'xlsx'
            return 'xls'
        if suffix in ('.csv', '.txt'):
            return 'csv'

    if data.startswith(XLSX_MAGIC):
        return 'xlsx'
    if data.startswith(XLS_MAGIC):
        return 'xls'
    return 'csv'


class WorkbookLoader:
    """Decodes statement file bytes into a RawWorkbook."""

    def __init__(self, data: bytes, filename: Optional[str] = None):
        self.data = data
        self.filename = filename
        self.file_type = sniff_file_type(data, filename)

    def load(self) -> RawWorkbook:
        """Decode every sheet of the file."""
        if not self.data:
            raise EmptyWorkbook("Statement file is empty")

        if self.file_type == 'xlsx':
            workbook = self._load_xlsx()
        elif self.file_type == 'xls':
            workbook = self._load_xls()
        else:
            workbook = self._load_csv()

        logger.info(f"Loaded {self.file_type} workbook with {len(workbook.sheets)} sheet(s)")
        return workbook

    def _load_xlsx(self) -> RawWorkbook:
        try:
            book = openpyxl.load_workbook(io.BytesIO(self.data), read_only=True, data_only=True)
        except Exception as e:
            raise UnsupportedFileType(f"Could not open .xlsx file: {e}") from e

        try:
            sheets = []
            for worksheet in book.worksheets:
                rows = [list(row) for row in worksheet.iter_rows(values_only=True)]
                sheets.append(RawSheet(worksheet.title, rows))
                logger.debug(f"Sheet '{worksheet.title}': {len(rows)} rows")
            return RawWorkbook(sheets)
        finally:
            book.close()

    def _load_xls(self) -> RawWorkbook:
        try:
            book = xlrd.open_workbook(file_contents=self.data)
        except Exception as e:
            raise UnsupportedFileType(f"Could not open .xls file: {e}") from e

        try:
            sheets = []
            for worksheet in book.sheets():
                rows = [
                    [self._xls_cell_value(worksheet.cell(r, c), book.datemode)
                     for c in range(worksheet.ncols)]
                    for r in range(worksheet.nrows)
                ]
                sheets.append(RawSheet(worksheet.name, rows))
                logger.debug(f"Sheet '{worksheet.name}': {len(rows)} rows")
            return RawWorkbook(sheets)
        finally:
            book.release_resources()

    @staticmethod
    def _xls_cell_value(cell, datemode: int) -> Cell:
        """Convert an xlrd cell to a plain Python value."""
        if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
            return None
        if cell.ctype == xlrd.XL_CELL_DATE:
            try:
                return xlrd.xldate_as_datetime(cell.value, datemode)
            except (ValueError, OverflowError, xlrd.xldate.XLDateError):
                return cell.value
        if cell.ctype == xlrd.XL_CELL_ERROR:
            return None
        return cell.value

    def _load_csv(self) -> RawWorkbook:
        text = None
        for encoding in CSV_ENCODINGS:
            try:
                text = self.data.decode(encoding)
                break
            except UnicodeDecodeError:
                continue

        if text is None:
            raise UnsupportedFileType("Could not decode CSV file with any known encoding")

        rows = [[cell if cell != '' else None for cell in row]
                for row in csv.reader(io.StringIO(text))]
        name = Path(self.filename).stem if self.filename else 'Sheet1'
        return RawWorkbook([RawSheet(name, rows)])


def load_workbook(source: Union[bytes, str, Path], filename: Optional[str] = None) -> RawWorkbook:
    """
    Load a statement from raw bytes or from a file path.

    Args:
        source: File content or a path to the file
        filename: Original file name when `source` is bytes

    Returns:
        RawWorkbook
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        return WorkbookLoader(path.read_bytes(), filename or path.name).load()
    return WorkbookLoader(source, filename).load()
