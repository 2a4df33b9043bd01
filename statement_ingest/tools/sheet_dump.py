"""
Sheet dump tool for checking how a statement export will be read.

Renders the first rows of every sheet as a rich table, marking the section
marker row and the detected header row.
"""
from typing import List, Optional
import logging

from rich.console import Console
from rich.table import Table

from ..core.anchors import find_section_marker, locate_header
from ..core.errors import HeaderNotFound
from ..core.loader import RawSheet, RawWorkbook
from ..core.normalize import cell_text
from ..core.rules import ParserRules, load_rules

logger = logging.getLogger(__name__)

MAX_CELL_WIDTH = 24


class SheetDump:
    """Builds annotated rich tables for the sheets of a workbook."""

    def __init__(self, workbook: RawWorkbook, rules: Optional[ParserRules] = None):
        self.workbook = workbook
        self.rules = rules or load_rules()

    def build_tables(self, max_rows: int = 20) -> List[Table]:
        """One table per sheet, in workbook order."""
        return [self._build_sheet_table(sheet, max_rows) for sheet in self.workbook.sheets]

    def _build_sheet_table(self, sheet: RawSheet, max_rows: int) -> Table:
        marker = find_section_marker(sheet.rows, self.rules)
        try:
            header_row = locate_header(sheet.rows, self.rules, sheet.name).row_index
        except HeaderNotFound:
            header_row = None

        rows = sheet.head(max_rows)
        width = max((len(row) for row in rows), default=0)

        table = Table(title=f"{sheet.name} ({len(sheet)} rows)", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("", style="bold")
        for column in range(width):
            table.add_column(str(column), overflow="ellipsis", max_width=MAX_CELL_WIDTH)

        for index, row in enumerate(rows):
            note = ""
            style = None
            if marker and index == marker.row_index:
                note, style = "marker", "yellow"
            elif index == header_row:
                note, style = "header", "green"
            cells = [cell_text(cell) for cell in row]
            cells.extend([""] * (width - len(cells)))
            table.add_row(str(index + 1), note, *cells, style=style)

        return table

    def render(self, console: Console, max_rows: int = 20):
        for table in self.build_tables(max_rows):
            console.print(table)


def dump_workbook(workbook: RawWorkbook, max_rows: int = 20,
                  console: Optional[Console] = None,
                  rules: Optional[ParserRules] = None):
    """
    Print annotated tables for every sheet of a workbook.

    Args:
        workbook: Loaded workbook
        max_rows: Rows to show per sheet
        console: Target console, a new one when omitted
        rules: Detection rules used for the annotations
    """
    SheetDump(workbook, rules).render(console or Console(), max_rows)
