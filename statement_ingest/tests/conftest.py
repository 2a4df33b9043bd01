"""
Shared fixtures for statement ingestion tests.
"""
import pytest

from ..core.loader import RawWorkbook
from ..core.rules import default_rules


@pytest.fixture
def rules():
    """Bundled Korean bank/card rules."""
    return default_rules()


@pytest.fixture
def bank_rows():
    """Bank export with separate withdrawal/deposit columns."""
    return [
        ["", "", "", ""],
        ["거래일자", "출금(원)", "입금(원)", "내용"],
        ["2024-01-15", "10,000", "", "커피숍"],
        ["2024-01-16", "", "50,000", "급여"],
    ]


@pytest.fixture
def bank_workbook(bank_rows):
    """Blank first sheet, bank table on the second."""
    return RawWorkbook.from_rows(("Sheet1", []), ("Sheet2", bank_rows))


@pytest.fixture
def card_rows():
    """Card export with a detailed section marker and a two-row header."""
    return [
        ["하나카드 이용상세내역"],
        ["이용기간: 2024.01.01 ~ 2024.01.31"],
        [None],
        ["이용일자", "이용가맹점", "이용금액", None, "혜택금액"],
        [None, None, "원금", "수수료", None],
        ["2024.01.05", "009844_SK텔레콤", "55,000", "0", "1,000"],
        ["2024.01.07", "173903_롯데쇼핑", "32,500", "0", "0"],
        ["일시불 합계", None, "87,500", None, None],
        ["2024.01.09", "스타벅스", "4,800", "0", "0"],
        ["총합계", None, "92,300", None, None],
        ["2024.01.10", "이후 행", "1,000", "0", "0"],
    ]
