"""
Pydantic models for normalized statement imports.
"""
import re
from datetime import date
from enum import Enum
from typing import Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Semantic role of a statement column."""
    DATE = "date"
    WITHDRAWAL_AMOUNT = "withdrawalAmount"
    DEPOSIT_AMOUNT = "depositAmount"
    AMOUNT = "amount"
    MERCHANT = "merchant"
    TIME = "time"
    MEMO = "memo"
    TYPE_HINT = "typeHint"
    IGNORE = "ignore"


AMOUNT_ROLES = (Role.WITHDRAWAL_AMOUNT, Role.DEPOSIT_AMOUNT, Role.AMOUNT)


class DetectionStrategy(str, Enum):
    """How the header row was located."""
    MARKER_OFFSET = "marker_offset"
    KEYWORD = "keyword"


class SectionFormat(str, Enum):
    """Layout family of a section marker, each with its own header offset."""
    GENERIC = "generic"
    DETAILED_WITH_SUBHEADER = "detailed_with_subheader"

    @property
    def header_offset(self) -> int:
        return _SECTION_HEADER_OFFSETS[self]


_SECTION_HEADER_OFFSETS = {
    SectionFormat.GENERIC: 1,
    SectionFormat.DETAILED_WITH_SUBHEADER: 3,
}


class HeaderMap(BaseModel):
    """Column roles resolved from a header row."""
    headers: List[str] = Field(default_factory=list)
    columns: Dict[Role, int] = Field(default_factory=dict)
    candidates: Dict[Role, List[int]] = Field(default_factory=dict)

    def get(self, role: Role) -> Optional[int]:
        return self.columns.get(role)

    def has(self, role: Role) -> bool:
        return role in self.columns

    def candidate_columns(self, role: Role) -> List[int]:
        """All columns classified into `role`, in sheet order."""
        return self.candidates.get(role, [])

    @property
    def has_split_amount(self) -> bool:
        """
        True when a withdrawal or a deposit column exists.

        One of the two is enough: the absent side reads as zero, and any
        generic amount column is then not consulted.
        """
        return self.has(Role.WITHDRAWAL_AMOUNT) or self.has(Role.DEPOSIT_AMOUNT)

    def missing_roles(self) -> List[str]:
        missing = []
        if not self.has(Role.DATE):
            missing.append(Role.DATE.value)
        if not any(self.has(role) for role in AMOUNT_ROLES):
            missing.append("withdrawalAmount|depositAmount|amount")
        return missing

    @property
    def is_valid(self) -> bool:
        return not self.missing_roles()

    def describe(self) -> Dict[str, str]:
        """Role to header text, for display."""
        return {
            role.value: self.headers[index] if index < len(self.headers) else ""
            for role, index in self.columns.items()
        }


class CanonicalTransaction(BaseModel):
    """Issuer-agnostic transaction record."""
    date: str
    amount: Union[int, float]
    type: Literal["income", "expense"]
    merchant: str = ""
    memo: str = ""
    time: Optional[str] = None
    source_row: Optional[int] = None

    @field_validator('date')
    @classmethod
    def validate_date(cls, v):
        if not re.match(r'^\d{4}-\d{2}-\d{2}$', v):
            raise ValueError(f"Date must be YYYY-MM-DD: {v}")
        date.fromisoformat(v)
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if not v > 0:
            raise ValueError(f"Transaction amount must be positive: {v}")
        # Whole currency units serialize without a fractional part.
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class ParseDiagnostics(BaseModel):
    """How a statement was interpreted, for import review screens."""
    sheet_name: str
    sheet_reason: Literal["marker", "keyword", "first_sheet"]
    marker_row: Optional[int] = None
    marker_text: Optional[str] = None
    section_format: Optional[SectionFormat] = None
    strategy: DetectionStrategy
    header_row: int
    subheader_rows_merged: int = 0
    data_start_row: int
    header_map: HeaderMap
    issuer: Optional[str] = None
    rows_scanned: int = 0
    rows_skipped: int = 0
    duplicates_removed: int = 0


class StatementImport(BaseModel):
    """Complete result of parsing one statement file."""
    transactions: List[CanonicalTransaction]
    diagnostics: ParseDiagnostics

    def summary(self) -> Dict[str, float]:
        """Income/expense totals over the parsed transactions."""
        income = sum(tx.amount for tx in self.transactions if tx.type == "income")
        expense = sum(tx.amount for tx in self.transactions if tx.type == "expense")
        return {
            'transaction_count': len(self.transactions),
            'income': income,
            'expense': expense,
            'net': income - expense,
        }
