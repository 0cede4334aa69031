"""Tests for transaction aggregator."""
import unittest
from decimal import Decimal

from ledgerflow.ledger.aggregator import Aggregator, income_source, month_key
from ledgerflow.models import MonthlySummary, Transaction


class TestAggregator(unittest.TestCase):
    """Test Aggregator functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.aggregator = Aggregator()

    def test_summarize_month(self):
        """Test totals, counts and breakdowns of one month."""
        transactions = [
            Transaction("2024-01-02", "ACME PAYROLL", Decimal("3000.00"), "income_salary"),
            Transaction("2024-01-10", "BROKER DIVIDEND", Decimal("25.50"), "income_investment"),
            Transaction("2024-01-03", "WHOLE FOODS", Decimal("-80.25"), "groceries"),
            Transaction("2024-01-17", "WHOLE FOODS", Decimal("-19.75"), "groceries"),
            Transaction("2024-01-05", "MONTHLY RENT", Decimal("-1500.00"), "housing"),
        ]

        summary = self.aggregator.summarize(transactions, "2024-01-01")

        self.assertEqual(summary.month, "2024-01-01")
        self.assertEqual(summary.total_income, Decimal("3025.50"))
        self.assertEqual(summary.total_expenses, Decimal("1600.00"))
        self.assertEqual(summary.income_count, 2)
        self.assertEqual(summary.expense_count, 3)
        self.assertEqual(summary.income_by_source, {
            "salary": Decimal("3000.00"),
            "investment": Decimal("25.50"),
        })
        self.assertEqual(summary.expenses_by_category, {
            "groceries": Decimal("100.00"),
            "housing": Decimal("1500.00"),
        })
        self.assertEqual(summary.top_merchants[0].name, "MONTHLY RENT")
        self.assertEqual(summary.top_merchants[1].amount, Decimal("100.00"))
        self.assertEqual(summary.top_merchants[1].count, 2)
        self.assertEqual(len(summary.all_transactions), 5)

    def test_top_merchants_limited(self):
        transactions = [
            Transaction("2024-03-01", f"MERCHANT {i}", Decimal(f"-{i}0.00"), "other")
            for i in range(1, 9)
        ]

        summary = self.aggregator.summarize(transactions, "2024-03-01")

        self.assertEqual(len(summary.top_merchants), 5)
        self.assertEqual(
            [m.name for m in summary.top_merchants],
            ["MERCHANT 8", "MERCHANT 7", "MERCHANT 6", "MERCHANT 5", "MERCHANT 4"],
        )

    def test_merchant_name_truncated(self):
        long_name = "X" * 80
        summary = self.aggregator.summarize(
            [Transaction("2024-03-01", long_name, Decimal("-1.00"), "other")], "2024-03-01"
        )
        self.assertEqual(summary.top_merchants[0].name, "X" * 50)

    def test_group_by_month(self):
        transactions = [
            Transaction("2024-02-14", "FLOWERS", Decimal("-30.00"), "other"),
            Transaction("2024-01-31", "RENT", Decimal("-1000.00"), "housing"),
            Transaction("2024-02-01", "PAYROLL", Decimal("2000.00"), "income_salary"),
        ]

        summaries = self.aggregator.group_by_month(transactions)

        self.assertEqual(list(summaries), ["2024-01-01", "2024-02-01"])
        self.assertEqual(summaries["2024-02-01"].total_income, Decimal("2000.00"))
        self.assertEqual(summaries["2024-02-01"].total_expenses, Decimal("30.00"))

    def test_empty_month(self):
        summary = self.aggregator.summarize([], "2024-05-01")
        self.assertEqual(summary.total_income, Decimal("0.00"))
        self.assertEqual(summary.top_merchants, [])

    def test_summary_round_trip(self):
        summary = self.aggregator.summarize(
            [Transaction("2024-01-02", "PAYROLL", Decimal("10.00"), "income_salary", "doc-1")],
            "2024-01-01",
        )
        restored = MonthlySummary.from_dict(summary.to_dict())
        self.assertEqual(restored, summary)

    def test_helpers(self):
        self.assertEqual(month_key("2024-01-15"), "2024-01-01")
        self.assertEqual(income_source("income_other"), "other")
        self.assertEqual(income_source("income_"), "other")


if __name__ == "__main__":
    unittest.main()
