"""
End-to-end tests for statement parsing.
"""
import io
from datetime import datetime

import pytest
import openpyxl
import xlwt
from pydantic import ValidationError

from ..core.errors import ColumnMappingIncomplete, EmptyWorkbook, HeaderNotFound, UnsupportedFileType
from ..core.loader import RawWorkbook, load_workbook, sniff_file_type
from ..core.runner import ParseOptions, StatementParser, parse_statement, parse_workbook
from ..models.schema import CanonicalTransaction, DetectionStrategy, SectionFormat, StatementImport


def _xlsx_bytes(*sheets) -> bytes:
    book = openpyxl.Workbook()
    book.remove(book.active)
    for name, rows in sheets:
        worksheet = book.create_sheet(name)
        for row in rows:
            worksheet.append(row)
    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()


class TestBankStatement:
    """Bank exports with separate withdrawal/deposit columns."""

    def test_end_to_end(self, bank_workbook):
        result = parse_statement(bank_workbook)

        assert isinstance(result, StatementImport)
        assert [
            (tx.date, tx.amount, tx.type, tx.merchant) for tx in result.transactions
        ] == [
            ("2024-01-15", 10000, "expense", "커피숍"),
            ("2024-01-16", 50000, "income", "급여"),
        ]

    def test_diagnostics(self, bank_workbook):
        diagnostics = parse_statement(bank_workbook).diagnostics
        assert diagnostics.sheet_name == "Sheet2"
        assert diagnostics.sheet_reason == "keyword"
        assert diagnostics.strategy == DetectionStrategy.KEYWORD
        assert diagnostics.header_row == 1
        assert diagnostics.data_start_row == 2
        assert diagnostics.marker_row is None
        assert diagnostics.rows_scanned == 2
        assert diagnostics.rows_skipped == 0

    def test_income_expense_inference(self):
        workbook = RawWorkbook.from_rows(("거래내역조회", [
            ["거래일자", "출금", "입금", "적요"],
            ["2024-02-01", "0", "30,000", "이자"],
            ["2024-02-02", "7,500", "0", "편의점"],
            ["2024-02-03", "0", "0", "조회"],
        ]))
        transactions = parse_statement(workbook).transactions
        assert [(tx.type, tx.amount) for tx in transactions] == [("income", 30000), ("expense", 7500)]
        assert transactions[0].memo == "이자"
        assert transactions[0].merchant == ""

    def test_suffixed_split_headers(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["거래일자", "출금액(원)", "입금액(원)", "적요"],
            ["2024-01-15", "10,000", "", "커피숍"],
            ["2024-01-16", "", "50,000", "급여"],
        ]))
        transactions = parse_statement(workbook).transactions
        assert [(tx.date, tx.amount, tx.type) for tx in transactions] == [
            ("2024-01-15", 10000, "expense"),
            ("2024-01-16", 50000, "income"),
        ]

    def test_single_split_column_ignores_generic_amount(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["거래일자", "입금", "거래금액", "적요"],
            ["2024-01-16", "50,000", "50,000", "급여"],
            ["2024-01-17", "", "8,000", "편의점"],
        ]))
        result = parse_statement(workbook)
        assert [(tx.amount, tx.type) for tx in result.transactions] == [(50000, "income")]
        assert result.diagnostics.rows_skipped == 1

    def test_malformed_date_row_skipped(self, bank_rows):
        rows = bank_rows + [["2024-13-45", "1,000", "", "오류"]]
        result = parse_statement(RawWorkbook.from_rows(("Sheet1", rows)))
        assert len(result.transactions) == 2
        assert all(tx.date != "2024-13-45" for tx in result.transactions)
        assert result.diagnostics.rows_skipped == 1

    def test_source_rows(self, bank_workbook):
        transactions = parse_statement(bank_workbook).transactions
        assert [tx.source_row for tx in transactions] == [2, 3]

    def test_deterministic(self, bank_rows):
        data = _xlsx_bytes(("Sheet1", bank_rows[1:]))
        first = parse_statement(data, filename="statement.xlsx")
        second = parse_statement(data, filename="statement.xlsx")
        assert first.model_dump() == second.model_dump()


class TestCardStatement:
    """Card exports with a detailed marker, subheaders and totals."""

    def test_detailed_layout(self, card_rows):
        result = parse_statement(RawWorkbook.from_rows(("Sheet1", card_rows)))
        diagnostics = result.diagnostics

        assert diagnostics.sheet_reason == "marker"
        assert diagnostics.strategy == DetectionStrategy.MARKER_OFFSET
        assert diagnostics.section_format == SectionFormat.DETAILED_WITH_SUBHEADER
        assert diagnostics.marker_row == 0
        assert diagnostics.header_row == 3
        assert diagnostics.subheader_rows_merged == 1
        assert diagnostics.data_start_row == 5
        assert diagnostics.issuer == "하나카드"

        assert [(tx.date, tx.amount, tx.merchant) for tx in result.transactions] == [
            ("2024-01-05", 55000, "009844_SK텔레콤"),
            ("2024-01-07", 32500, "173903_롯데쇼핑"),
            ("2024-01-09", 4800, "스타벅스"),
        ]
        assert all(tx.type == "expense" for tx in result.transactions)

    def test_grand_total_stops_extraction(self, card_rows):
        result = parse_statement(RawWorkbook.from_rows(("Sheet1", card_rows)))
        assert "이후 행" not in [tx.merchant for tx in result.transactions]
        assert result.diagnostics.rows_scanned == 4
        assert result.diagnostics.rows_skipped == 1

    def test_first_nonzero_amount_column(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["카드사용내역"],
            ["이용일자", "가맹점", "이용금액", "결제금액"],
            ["2024.03.01", "주유소", "", "60,000"],
            ["2024.03.02", "서점", "15,000", "0"],
        ]))
        transactions = parse_statement(workbook).transactions
        assert [tx.amount for tx in transactions] == [60000, 15000]

    def test_negative_amount_is_refund(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["카드사용내역"],
            ["이용일자", "가맹점명", "이용금액"],
            ["2024.03.01", "마트", "12,000"],
            ["2024.03.02", "마트 취소", "-12,000"],
        ]))
        transactions = parse_statement(workbook).transactions
        assert [(tx.amount, tx.type, tx.merchant) for tx in transactions] == [
            (12000, "expense", "마트"),
            (12000, "income", "마트 취소"),
        ]

    def test_type_hint_column(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["이용일자", "가맹점명", "이용금액", "취소여부"],
            ["2024.03.01", "마트", "12,000", "정상"],
            ["2024.03.02", "마트", "12,000", "취소"],
            ["2024.03.03", "서점", "-5,000", "정상"],
        ]))
        transactions = parse_statement(workbook).transactions
        assert [(tx.amount, tx.type) for tx in transactions] == [
            (12000, "expense"),
            (12000, "income"),
            (5000, "income"),
        ]

    def test_bank_type_hint_column(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["거래일자", "거래구분", "거래금액", "내용"],
            ["2024-02-01", "입금", "30,000", "이자"],
            ["2024-02-02", "출금", "7,500", "편의점"],
        ]))
        transactions = parse_statement(workbook).transactions
        assert [(tx.type, tx.amount) for tx in transactions] == [("income", 30000), ("expense", 7500)]

    def test_without_subheader_merge(self, card_rows):
        options = ParseOptions(merge_subheaders=False)
        result = parse_statement(RawWorkbook.from_rows(("Sheet1", card_rows)), options=options)
        assert result.diagnostics.subheader_rows_merged == 0
        assert result.diagnostics.data_start_row == 4
        assert len(result.transactions) == 3

    def test_time_passthrough(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [
            ["이용일", "이용시간", "이용처", "이용금액"],
            ["2024-04-01", "12:30", "식당", "9,000"],
        ]))
        transaction = parse_statement(workbook).transactions[0]
        assert transaction.time == "12:30"
        assert transaction.merchant == "식당"


class TestParseOptions:
    """Deduplication and issuer options."""

    @pytest.fixture
    def repeated_workbook(self):
        return RawWorkbook.from_rows(("Sheet1", [
            ["거래일자", "출금", "입금", "내용"],
            ["2024-01-15", "10,000", "", "커피숍"],
            ["2024-01-15", "10,000", "", "커피 숍"],
            ["2024-01-15", "10,000", "", "빵집"],
        ]))

    def test_duplicates_kept_by_default(self, repeated_workbook):
        assert len(parse_statement(repeated_workbook).transactions) == 3

    def test_deduplicate(self, repeated_workbook):
        result = parse_statement(repeated_workbook, options=ParseOptions(deduplicate=True))
        assert [tx.merchant for tx in result.transactions] == ["커피숍", "빵집"]
        assert result.diagnostics.duplicates_removed == 1

    def test_strict_deduplicate(self, repeated_workbook):
        options = ParseOptions(deduplicate=True, strict_duplicates=True)
        result = parse_statement(repeated_workbook, options=options)
        assert len(result.transactions) == 1
        assert result.diagnostics.duplicates_removed == 2

    def test_issuer_detection_disabled(self, card_rows):
        parser = StatementParser(options=ParseOptions(detect_issuer=False))
        result = parser.parse(RawWorkbook.from_rows(("Sheet1", card_rows)))
        assert result.diagnostics.issuer is None


class TestFailures:
    """Typed failures surface to the caller."""

    def test_header_not_found(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [["안내문"], ["내용 없음"]]))
        with pytest.raises(HeaderNotFound):
            parse_workbook(workbook)

    def test_column_mapping_incomplete(self):
        workbook = RawWorkbook.from_rows(("Sheet1", [["거래내역"], ["번호", "가맹점", "비고"]]))
        with pytest.raises(ColumnMappingIncomplete) as exc_info:
            parse_statement(workbook)
        assert exc_info.value.header_map.headers == ["번호", "가맹점", "비고"]

    def test_empty_workbook(self):
        with pytest.raises(EmptyWorkbook):
            parse_statement(RawWorkbook([]))
        with pytest.raises(EmptyWorkbook):
            parse_statement(RawWorkbook.from_rows(("Sheet1", [])))
        with pytest.raises(EmptyWorkbook):
            parse_statement(b"", filename="empty.xlsx")

    def test_corrupt_xlsx(self):
        with pytest.raises(UnsupportedFileType):
            parse_statement(b"PK\x03\x04 not really a zip", filename="broken.xlsx")


class TestTransactionModel:
    """Canonical record validation and serialization."""

    def test_whole_amount_serializes_without_fraction(self):
        tx = CanonicalTransaction(date="2024-01-15", amount=10000.0, type="expense")
        assert isinstance(tx.amount, int)
        assert '"amount":10000,' in tx.model_dump_json()

    def test_fractional_amount_kept(self):
        tx = CanonicalTransaction(date="2024-01-15", amount=12.5, type="expense")
        assert tx.amount == 12.5

    @pytest.mark.parametrize("amount", [0, -100.0])
    def test_rejects_non_positive_amount(self, amount):
        with pytest.raises(ValidationError):
            CanonicalTransaction(date="2024-01-15", amount=amount, type="expense")

    def test_parsed_amounts_are_whole(self, bank_workbook):
        data = parse_statement(bank_workbook).model_dump(mode="json")
        assert [tx["amount"] for tx in data["transactions"]] == [10000, 50000]
        assert all(isinstance(tx["amount"], int) for tx in data["transactions"])


class TestLoader:
    """Statement bytes to RawWorkbook."""

    def test_sniff_file_type(self):
        assert sniff_file_type(b"anything", "a.xlsx") == "xlsx"
        assert sniff_file_type(b"PK\x03\x04rest", "a.xls") == "xlsx"
        assert sniff_file_type(b"\xd0\xcf\x11\xe0rest", "a.xls") == "xls"
        assert sniff_file_type(b"a,b", "a.csv") == "csv"
        assert sniff_file_type(b"PK\x03\x04rest") == "xlsx"
        assert sniff_file_type(b"\xd0\xcf\x11\xe0rest") == "xls"
        assert sniff_file_type(b"a,b") == "csv"

    def test_xlsx_workbook(self, bank_rows):
        data = _xlsx_bytes(("요약", [["조회 결과"]]), ("거래내역조회", [row for row in bank_rows[1:]]))
        result = parse_statement(data, filename="신한은행_거래내역.xlsx")

        assert result.diagnostics.sheet_name == "거래내역조회"
        assert result.diagnostics.issuer == "신한은행"
        assert [(tx.date, tx.amount, tx.type) for tx in result.transactions] == [
            ("2024-01-15", 10000, "expense"),
            ("2024-01-16", 50000, "income"),
        ]

    def test_xlsx_native_values(self):
        data = _xlsx_bytes(("Sheet1", [
            ["이용일자", "가맹점명", "이용금액"],
            [None, None, None],
            ["2024/05/01", "마트", 12000],
        ]))
        workbook = load_workbook(data, "card.xlsx")
        assert workbook.sheet_names == ["Sheet1"]
        result = parse_statement(workbook)
        assert [(tx.date, tx.amount) for tx in result.transactions] == [("2024-05-01", 12000)]

    def test_xlsx_numeric_compact_date(self):
        data = _xlsx_bytes(("Sheet1", [
            ["이용일자", "가맹점명", "이용금액"],
            [20240115, "마트", 12000],
        ]))
        result = parse_statement(data, filename="card.xlsx")
        assert [(tx.date, tx.amount, tx.merchant) for tx in result.transactions] == [
            ("2024-01-15", 12000, "마트")
        ]
        assert result.diagnostics.rows_skipped == 0

    def test_xls_workbook(self):
        book = xlwt.Workbook()
        sheet = book.add_sheet("Sheet1")
        date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
        for column, header in enumerate(["거래일자", "출금", "입금", "내용"]):
            sheet.write(0, column, header)
        sheet.write(1, 0, datetime(2024, 1, 15), date_style)
        sheet.write(1, 1, "10,000")
        sheet.write(1, 3, "커피숍")
        sheet.write(2, 0, datetime(2024, 1, 16), date_style)
        sheet.write(2, 2, 50000)
        sheet.write(2, 3, "급여")
        buffer = io.BytesIO()
        book.save(buffer)
        data = buffer.getvalue()

        assert sniff_file_type(data, "bank.xls") == "xls"
        workbook = load_workbook(data, "bank.xls")
        assert workbook.sheet_names == ["Sheet1"]
        assert workbook.sheets[0].rows[1] == (datetime(2024, 1, 15), "10,000", None, "커피숍")
        assert workbook.sheets[0].rows[2][1] is None

        result = parse_statement(data, filename="bank.xls")
        assert [(tx.date, tx.amount, tx.type) for tx in result.transactions] == [
            ("2024-01-15", 10000, "expense"),
            ("2024-01-16", 50000, "income"),
        ]

    def test_csv_cp949(self):
        text = '거래일자,출금(원),입금(원),내용\n2024-01-15,"10,000",,커피숍\n2024-01-16,,"50,000",급여\n'
        workbook = load_workbook(text.encode("cp949"), "국민은행_거래내역.csv")

        assert workbook.sheet_names == ["국민은행_거래내역"]
        assert workbook.sheets[0].rows[1] == ("2024-01-15", "10,000", None, "커피숍")

        result = parse_statement(text.encode("cp949"), filename="국민은행_거래내역.csv")
        assert len(result.transactions) == 2
        assert result.diagnostics.issuer == "국민은행"

    def test_csv_utf8_bom(self):
        text = '\ufeff이용일,가맹점명,이용금액\n2024.06.01,편의점,"3,300"\n'
        result = parse_statement(text.encode("utf-8"), filename="export.csv")
        assert [(tx.date, tx.amount, tx.merchant) for tx in result.transactions] == [
            ("2024-06-01", 3300, "편의점")
        ]

    def test_path_source(self, tmp_path, bank_rows):
        path = tmp_path / "statement.xlsx"
        path.write_bytes(_xlsx_bytes(("Sheet1", bank_rows[1:])))
        result = parse_statement(path)
        assert len(result.transactions) == 2
