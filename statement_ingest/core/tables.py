"""
Row extraction: data rows below the header to canonical transactions.
"""
from typing import List, Optional, Sequence, Tuple
import logging

from .loader import Row
from .normalize import cell_text, normalize_amount, normalize_date
from .rules import ParserRules
from ..models.schema import CanonicalTransaction, HeaderMap, Role

logger = logging.getLogger(__name__)


class ExtractionStats:
    """Counters from one extraction pass."""
    def __init__(self):
        self.rows_scanned = 0
        self.rows_skipped = 0
        self.grand_total_row: Optional[int] = None

    def __repr__(self):
        return f"ExtractionStats(scanned={self.rows_scanned}, skipped={self.rows_skipped})"


class RowExtractor:
    """Turns sheet rows into transactions using a resolved HeaderMap."""

    def __init__(self, header_map: HeaderMap, rules: ParserRules):
        self.header_map = header_map
        self.rules = rules
        self.stats = ExtractionStats()
        self._grand_total = [keyword.lower() for keyword in rules.grand_total_keywords]
        self._subtotal = [keyword.lower() for keyword in rules.subtotal_keywords]

    def extract(self, rows: Sequence[Row], start: int) -> List[CanonicalTransaction]:
        """
        Extract transactions from rows[start:], in file order.

        Extraction stops at a grand total row. Subtotal rows, blank rows and
        rows without a valid date or a positive amount are skipped.

        Args:
            rows: Sheet rows
            start: Index of the first data row

        Returns:
            List of CanonicalTransaction
        """
        transactions = []

        for index in range(start, len(rows)):
            row = rows[index]
            first_cell = cell_text(row[0]).lower() if row else ""

            if first_cell and any(keyword in first_cell for keyword in self._grand_total):
                logger.debug(f"Grand total at row {index + 1}, stopping")
                self.stats.grand_total_row = index
                break

            self.stats.rows_scanned += 1
            transaction = self._extract_row(row, index, first_cell)
            if transaction is None:
                self.stats.rows_skipped += 1
                continue
            transactions.append(transaction)

        return transactions

    def _extract_row(self, row: Row, index: int, first_cell: str) -> Optional[CanonicalTransaction]:
        if not any(cell_text(cell) for cell in row):
            logger.debug(f"Row {index + 1}: blank")
            return None

        if any(keyword in first_cell for keyword in self._subtotal):
            logger.debug(f"Row {index + 1}: subtotal '{first_cell}'")
            return None

        date = normalize_date(self._cell(row, self.header_map.get(Role.DATE)))
        if date is None:
            logger.debug(f"Row {index + 1}: no valid date")
            return None

        amount, tx_type = self._resolve_amount(row)
        if amount <= 0:
            logger.debug(f"Row {index + 1}: no positive amount")
            return None

        time_column = self.header_map.get(Role.TIME)
        time = cell_text(self._cell(row, time_column)) if time_column is not None else None

        return CanonicalTransaction(
            date=date,
            amount=amount,
            type=tx_type,
            merchant=self._first_text(row, self.header_map.candidate_columns(Role.MERCHANT)),
            memo=cell_text(self._cell(row, self.header_map.get(Role.MEMO))),
            time=time or None,
            source_row=index,
        )

    def _resolve_amount(self, row: Row) -> Tuple[float, str]:
        """
        Amount and transaction type for one row; amount 0 means none found.

        Split columns decide the type by which side holds a value. A single
        amount column is an expense unless a type-hint cell says otherwise;
        a negative value there is a cancellation or refund, kept as income
        with its absolute amount.
        """
        if self.header_map.has_split_amount:
            deposit = normalize_amount(self._cell(row, self.header_map.get(Role.DEPOSIT_AMOUNT)))
            withdrawal = normalize_amount(self._cell(row, self.header_map.get(Role.WITHDRAWAL_AMOUNT)))
            if deposit != 0:
                return deposit, 'income'
            if withdrawal != 0:
                return withdrawal, 'expense'
            return 0.0, 'expense'

        for column in self.header_map.candidate_columns(Role.AMOUNT):
            amount = normalize_amount(self._cell(row, column))
            if amount == 0:
                continue
            hinted = self._hinted_type(row)
            if hinted is not None:
                return abs(amount), hinted
            if amount < 0:
                return -amount, 'income'
            return amount, 'expense'
        return 0.0, 'expense'

    def _hinted_type(self, row: Row) -> Optional[str]:
        column = self.header_map.get(Role.TYPE_HINT)
        if column is None:
            return None
        hint = cell_text(self._cell(row, column))
        return self.rules.type_hints.resolve(hint) if hint else None

    def _first_text(self, row: Row, columns: List[int]) -> str:
        for column in columns:
            text = cell_text(self._cell(row, column))
            if text:
                return text
        return ""

    @staticmethod
    def _cell(row: Row, column: Optional[int]):
        if column is None or column >= len(row):
            return None
        return row[column]


def extract_rows(rows: Sequence[Row], header_map: HeaderMap, start: int,
                 rules: ParserRules) -> Tuple[List[CanonicalTransaction], ExtractionStats]:
    """
    Extract transactions below a header.

    Args:
        rows: Sheet rows
        header_map: Resolved column roles
        start: Index of the first data row
        rules: Detection rules (total/subtotal keywords)

    Returns:
        Tuple of (transactions, stats)
    """
    extractor = RowExtractor(header_map, rules)
    transactions = extractor.extract(rows, start)
    return transactions, extractor.stats
