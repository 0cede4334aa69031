"""Tests for statement format dispatch."""
import io
import unittest
from datetime import datetime
from decimal import Decimal
from unittest import mock

from openpyxl import Workbook

from ledgerflow.models import Source
from ledgerflow.parsing.statement import (
    StatementFile,
    decode_text,
    extract_pdf_text_chunks,
    finalize,
    is_csv,
    is_excel,
    is_pdf,
    parse_bank_statement,
    parse_csv,
    read_csv_rows,
)
from ledgerflow.pdf.processor import PDFProcessor
from ledgerflow.utils.exceptions import (
    CsvParseError,
    NoReadableTextError,
    NoValidTransactionsError,
    UnsupportedFormatError,
)

SCENARIO_CSV = (
    "Date,Description,Amount\n"
    "2024-01-05,Grocery Store,-54.32\n"
    "2024-01-15,Employer Payroll,2000.00\n"
    "2024-01-20,(120.50)\n"
)

PDF_TEXT = """First National Bank
Statement Period 01/01/2024 - 01/31/2024
Date Description Amount
01/05/2024 WHOLE FOODS MARKET 54.32
01/15/2024 ACME PAYROLL DEPOSIT 2,000.00
Page 1 of 1
"""


def make_workbook() -> bytes:
    workbook = Workbook()
    first = workbook.active
    first.title = "January"
    first.append(["Checking statement"])
    first.append([])
    first.append(["Posted Date", "Payee", "Amount"])
    first.append([datetime(2024, 1, 3), "SHELL OIL 5541", -45.5])
    first.append([datetime(2024, 1, 9), "ACME PAYROLL", 2500])

    second = workbook.create_sheet("February")
    second.append(["Date", "Description", "Withdrawal", "Deposit"])
    second.append(["02/02/2024", "MONTHLY RENT", 1800, None])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestFormatDetection(unittest.TestCase):
    """Test format checks by name and MIME type."""

    def test_by_extension(self):
        self.assertTrue(is_csv(StatementFile("a.CSV", b"")))
        self.assertTrue(is_excel(StatementFile("a.xlsx", b"")))
        self.assertTrue(is_excel(StatementFile("a.xls", b"")))
        self.assertTrue(is_pdf(StatementFile("a.Pdf", b"")))

    def test_by_mime_type(self):
        self.assertTrue(is_csv(StatementFile("upload", b"", "text/csv")))
        self.assertTrue(is_excel(StatementFile(
            "upload", b"", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )))
        self.assertTrue(is_pdf(StatementFile("upload", b"", "application/pdf")))

    def test_unsupported_format(self):
        with self.assertRaises(UnsupportedFormatError):
            parse_bank_statement(StatementFile("notes.txt", b"hello"))


class TestCsvStatements(unittest.TestCase):
    """Test CSV parsing end to end."""

    def test_scenario(self):
        result = parse_bank_statement(StatementFile("statement.csv", SCENARIO_CSV.encode("utf-8")))

        self.assertEqual(len(result.transactions), 2)
        self.assertEqual(result.total_income, Decimal("2000.00"))
        self.assertEqual(result.total_expenses, Decimal("54.32"))
        self.assertEqual(result.date_range.start, "2024-01-05")
        self.assertEqual(result.date_range.end, "2024-01-15")
        self.assertEqual(result.source, Source.FALLBACK)

    def test_header_only_raises(self):
        with self.assertRaises(NoValidTransactionsError):
            parse_bank_statement(StatementFile("statement.csv", b"Date,Description,Amount\n"))

    def test_empty_file_raises(self):
        with self.assertRaises(NoValidTransactionsError):
            parse_bank_statement(StatementFile("statement.csv", b""))

    def test_bom_and_legacy_encoding(self):
        self.assertTrue(decode_text("\ufeffDate".encode("utf-8")).startswith("Date"))
        self.assertEqual(decode_text("Caf\xe9".encode("cp1252")), "Caf\xe9")

    def test_blank_lines_skipped(self):
        rows = read_csv_rows(b"a,b\n\n , \nc,d\n")
        self.assertEqual(rows, [["a", "b"], ["c", "d"]])

    def test_malformed_quoting_raises(self):
        with self.assertRaises(CsvParseError):
            read_csv_rows(b'Date,Description,Amount\n2024-01-05,"Unclosed quote,-5.00\n')

    def test_transactions_sorted_by_date(self):
        content = (
            "Date,Description,Amount\n"
            "2024-02-10,Later,-1.00\n"
            "2024-02-01,Earlier,-2.00\n"
        ).encode("utf-8")

        result = parse_csv(StatementFile("s.csv", content))

        self.assertEqual([tx.description for tx in result.transactions], ["Earlier", "Later"])

    def test_parse_csv_rejects_other_formats(self):
        with self.assertRaises(UnsupportedFormatError):
            parse_csv(StatementFile("s.pdf", b"%PDF"))


class TestExcelStatements(unittest.TestCase):
    """Test Excel parsing across sheets."""

    def test_every_sheet_parsed(self):
        result = parse_bank_statement(StatementFile("statement.xlsx", make_workbook()))

        self.assertEqual(len(result.transactions), 3)
        by_description = {tx.description: tx for tx in result.transactions}
        self.assertEqual(by_description["SHELL OIL 5541"].amount, Decimal("-45.50"))
        self.assertEqual(by_description["SHELL OIL 5541"].date, "2024-01-03")
        self.assertEqual(by_description["SHELL OIL 5541"].category, "transportation")
        self.assertEqual(by_description["ACME PAYROLL"].amount, Decimal("2500"))
        self.assertEqual(by_description["MONTHLY RENT"].amount, Decimal("-1800"))
        self.assertEqual(by_description["MONTHLY RENT"].category, "housing")
        self.assertEqual(result.date_range.end, "2024-02-02")

    def test_corrupt_workbook(self):
        with self.assertRaises(UnsupportedFormatError):
            parse_bank_statement(StatementFile("statement.xlsx", b"not a workbook"))

    def test_workbook_without_rows(self):
        workbook = Workbook()
        workbook.active.append(["Date", "Description", "Amount"])
        buffer = io.BytesIO()
        workbook.save(buffer)

        with self.assertRaises(NoValidTransactionsError) as ctx:
            parse_bank_statement(StatementFile("empty.xlsx", buffer.getvalue()))
        self.assertIn("Excel", str(ctx.exception))


class TestPdfStatements(unittest.TestCase):
    """Test PDF dispatch with text extraction mocked."""

    def setUp(self):
        self.processor = PDFProcessor()

    def test_pdf_heuristics(self):
        with mock.patch.object(self.processor, "extract_text", return_value=PDF_TEXT):
            result = parse_bank_statement(StatementFile("statement.pdf", b"%PDF-1.4"), self.processor)

        self.assertEqual(len(result.transactions), 2)
        self.assertEqual(result.transactions[0].amount, Decimal("-54.32"))
        self.assertEqual(result.transactions[0].category, "groceries")
        self.assertEqual(result.transactions[1].amount, Decimal("2000.00"))
        self.assertEqual(result.total_income, Decimal("2000.00"))
        self.assertTrue(result.source_chunks)

    def test_pdf_without_text(self):
        with mock.patch.object(self.processor, "extract_text", side_effect=NoReadableTextError("empty")):
            with self.assertRaises(NoReadableTextError):
                parse_bank_statement(StatementFile("scan.pdf", b"%PDF-1.4"), self.processor)

    def test_pdf_without_transactions(self):
        with mock.patch.object(self.processor, "extract_text", return_value="Account Summary\nNothing here"):
            with self.assertRaises(NoValidTransactionsError) as ctx:
                parse_bank_statement(StatementFile("statement.pdf", b"%PDF-1.4"), self.processor)
        self.assertIn("PDF", str(ctx.exception))

    def test_extract_chunks(self):
        with mock.patch.object(self.processor, "extract_text", return_value="line one\nline two"):
            chunks = extract_pdf_text_chunks(StatementFile("s.pdf", b"%PDF"), 2000, self.processor)
        self.assertEqual(chunks, ["line one\nline two"])

    def test_extract_chunks_rejects_csv(self):
        with self.assertRaises(UnsupportedFormatError):
            extract_pdf_text_chunks(StatementFile("s.csv", b""))


class TestFinalize(unittest.TestCase):
    """Test finalize functionality."""

    def test_empty_raises_with_message(self):
        with self.assertRaises(NoValidTransactionsError) as ctx:
            finalize([], empty_message="nothing usable")
        self.assertEqual(str(ctx.exception), "nothing usable")


if __name__ == "__main__":
    unittest.main()
