"""Tests for PDF text heuristics."""
import unittest
from decimal import Decimal

from ledgerflow.models import Transaction
from ledgerflow.pdf.heuristics import (
    build_pdf_transaction_from_text,
    extract_amount_tokens,
    is_likely_amount_token,
    is_non_transaction_description,
    merge_pdf_strategies,
    parse_block_strategy,
    parse_line_strategy,
    parse_pdf_text,
    parse_table_strategy,
    transaction_key,
)


def tx(description, amount="-10.00", date="2024-01-05", category="other"):
    return Transaction(date=date, description=description, amount=Decimal(amount), category=category)


class TestAmountTokens(unittest.TestCase):
    """Test amount token filtering."""

    def test_likely_amounts(self):
        for token in ("1,250.00", "54.32", "500", "(45.00)", "10.00CR", "-12.50", "$7.00"):
            with self.subTest(token=token):
                self.assertTrue(is_likely_amount_token(token))

    def test_date_fragments_rejected(self):
        for token in ("12", "2024", "01/05", "01-05", "-7", "", "45"):
            with self.subTest(token=token):
                self.assertFalse(is_likely_amount_token(token))

    def test_dates_never_become_amounts(self):
        tokens = extract_amount_tokens("01-05-2024 COFFEE 4.50 Balance 1,000.00")
        self.assertEqual(tokens, ["4.50", "1,000.00"])


class TestBuildTransaction(unittest.TestCase):
    """Test building one transaction from text."""

    def test_unsigned_amount_becomes_outflow(self):
        result = build_pdf_transaction_from_text("01/05/2024 WHOLE FOODS MARKET 54.32")

        self.assertEqual(result.date, "2024-01-05")
        self.assertEqual(result.description, "WHOLE FOODS MARKET")
        self.assertEqual(result.amount, Decimal("-54.32"))
        self.assertEqual(result.category, "groceries")

    def test_positive_wording_keeps_inflow(self):
        result = build_pdf_transaction_from_text("01/07/2024 REFUND AMAZON 25.00")
        self.assertEqual(result.amount, Decimal("25.00"))
        self.assertEqual(result.category, "income_other")

    def test_credit_marker_keeps_inflow(self):
        result = build_pdf_transaction_from_text("01/08/2024 TRANSFER FROM SAVINGS 300.00 CR")
        self.assertEqual(result.amount, Decimal("300.00"))

    def test_balance_column_skipped(self):
        """With a balance on the line the second to last amount is the transaction."""
        result = build_pdf_transaction_from_text("01/05/2024 COFFEE SHOP 4.50 Balance 995.50")
        self.assertEqual(result.amount, Decimal("-4.50"))

    def test_boilerplate_rejected(self):
        self.assertIsNone(build_pdf_transaction_from_text("01/31/2024 ENDING BALANCE 1,234.56"))
        self.assertIsNone(build_pdf_transaction_from_text("01/31/2024 Total Deposits 2,000.00"))

    def test_missing_parts_rejected(self):
        self.assertIsNone(build_pdf_transaction_from_text("WHOLE FOODS 54.32"))
        self.assertIsNone(build_pdf_transaction_from_text("01/05/2024 WHOLE FOODS"))
        self.assertIsNone(build_pdf_transaction_from_text("01/05/2024 54.32"))

    def test_non_transaction_description(self):
        self.assertTrue(is_non_transaction_description("ab"))
        self.assertTrue(is_non_transaction_description("1234 5678"))
        self.assertTrue(is_non_transaction_description("Page 2 of 4"))
        self.assertFalse(is_non_transaction_description("SHELL OIL"))


class TestStrategies(unittest.TestCase):
    """Test the individual strategies."""

    def test_line_strategy_joins_following_lines(self):
        lines = ["01/10/2024 AMAZON MARKETPLACE", "ONLINE ORDER", "89.99"]

        result = parse_line_strategy(lines)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].description, "AMAZON MARKETPLACE ONLINE ORDER")
        self.assertEqual(result[0].amount, Decimal("-89.99"))

    def test_block_strategy_stops_at_next_date(self):
        lines = [
            "01/10/2024 CITY PARKING",
            "GARAGE 4",
            "12.00",
            "01/11/2024 ACME PAYROLL 1,500.00",
        ]

        result = parse_block_strategy(lines)

        self.assertEqual(len(result), 2)
        self.assertEqual(result[0].description, "CITY PARKING GARAGE 4")
        self.assertEqual(result[0].amount, Decimal("-12.00"))
        self.assertEqual(result[1].amount, Decimal("1500.00"))

    def test_table_strategy_reads_wide_columns(self):
        text = (
            "Date        Description          Amount\n"
            "01/05/2024  COFFEE SHOP          -4.50\n"
            "01/06/2024  PAYROLL DEPOSIT      2,000.00\n"
        )

        result = parse_table_strategy(text)

        self.assertEqual(len(result), 2)
        self.assertEqual(result[0].amount, Decimal("-4.50"))
        self.assertEqual(result[1].category, "income_salary")


class TestMergeStrategies(unittest.TestCase):
    """Test max-count reconciliation."""

    def test_max_not_sum(self):
        a = tx("COFFEE")
        merged = merge_pdf_strategies([[a, tx("COFFEE")], [tx("COFFEE")], []])
        self.assertEqual(len(merged), 2)

    def test_distinct_keys_kept(self):
        merged = merge_pdf_strategies([
            [tx("COFFEE"), tx("COFFEE")],
            [tx("COFFEE"), tx("RENT", category="housing")],
        ])

        keys = sorted(transaction_key(t) for t in merged)
        self.assertEqual(len(merged), 3)
        self.assertEqual(keys.count(transaction_key(tx("COFFEE"))), 2)

    def test_order_independent(self):
        first = [tx("COFFEE"), tx("COFFEE")]
        second = [tx("COFFEE"), tx("BOOKS", "-5.00")]

        forward = sorted(transaction_key(t) for t in merge_pdf_strategies([first, second]))
        backward = sorted(transaction_key(t) for t in merge_pdf_strategies([second, first]))
        self.assertEqual(forward, backward)

    def test_merge_returns_copies(self):
        original = tx("COFFEE")
        merged = merge_pdf_strategies([[original]])
        merged[0].description = "CHANGED"
        self.assertEqual(original.description, "COFFEE")

    def test_key_is_case_insensitive(self):
        self.assertEqual(transaction_key(tx("Coffee")), transaction_key(tx("COFFEE")))
        self.assertEqual(transaction_key(tx("X", "-10")), transaction_key(tx("X", "-10.00")))


class TestParsePdfText(unittest.TestCase):
    """Test the combined heuristic parse."""

    def test_strategies_do_not_double_count(self):
        text = (
            "Account Summary\n"
            "01/05/2024 WHOLE FOODS MARKET 54.32\n"
            "01/06/2024 SHELL OIL 40.00\n"
            "01/31/2024 Ending Balance 1,905.68\n"
        )

        result = parse_pdf_text(text)

        self.assertEqual(sorted(t.description for t in result), ["SHELL OIL", "WHOLE FOODS MARKET"])

    def test_empty_text(self):
        self.assertEqual(parse_pdf_text(""), [])


if __name__ == "__main__":
    unittest.main()
