"""Transaction aggregation module."""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List

from ledgerflow.models import INCOME_PREFIX, MerchantTotal, MonthlySummary, Transaction, money
from ledgerflow.utils.logger import get_logger

logger = get_logger()

MERCHANT_KEY_LENGTH = 50
DEFAULT_TOP_MERCHANTS = 5


def month_key(date: str) -> str:
    """'2024-01-15' -> '2024-01-01'."""
    return f"{date[:7]}-01"


def income_source(category: str) -> str:
    source = category[len(INCOME_PREFIX):] if category.startswith(INCOME_PREFIX) else category
    return source or "other"


class Aggregator:
    """Aggregates transactions into monthly summaries."""

    def summarize(self, transactions: List[Transaction], month: str,
                  top_n: int = DEFAULT_TOP_MERCHANTS) -> MonthlySummary:
        """
        Compute every aggregate of one month from its transactions.

        Args:
            transactions: Transactions of the month
            month: Month key (YYYY-MM-01)
            top_n: Number of merchants kept in top_merchants

        Returns:
            MonthlySummary with rounded totals
        """
        income = Decimal("0")
        expenses = Decimal("0")
        income_count = 0
        expense_count = 0
        by_source: Dict[str, Decimal] = defaultdict(Decimal)
        by_category: Dict[str, Decimal] = defaultdict(Decimal)
        merchants: Dict[str, List] = {}

        for txn in transactions:
            if txn.amount > 0:
                income += txn.amount
                income_count += 1
                by_source[income_source(txn.category)] += txn.amount
                continue

            spent = abs(txn.amount)
            expenses += spent
            expense_count += 1
            by_category[txn.category] += spent

            name = txn.description[:MERCHANT_KEY_LENGTH]
            bucket = merchants.setdefault(name, [Decimal("0"), 0])
            bucket[0] += spent
            bucket[1] += 1

        ranked = sorted(merchants.items(), key=lambda item: item[1][0], reverse=True)
        top_merchants = [
            MerchantTotal(name=name, amount=money(total), count=count)
            for name, (total, count) in ranked[:top_n]
        ]

        return MonthlySummary(
            month=month,
            total_income=money(income),
            total_expenses=money(expenses),
            income_count=income_count,
            expense_count=expense_count,
            income_by_source={k: money(v) for k, v in by_source.items()},
            expenses_by_category={k: money(v) for k, v in by_category.items()},
            top_merchants=top_merchants,
            all_transactions=list(transactions),
        )

    def group_by_month(self, transactions: List[Transaction],
                       top_n: int = DEFAULT_TOP_MERCHANTS) -> Dict[str, MonthlySummary]:
        """Bucket transactions by calendar month and summarize each bucket."""
        buckets: Dict[str, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            buckets[month_key(txn.date)].append(txn)

        summaries = {
            month: self.summarize(items, month, top_n)
            for month, items in sorted(buckets.items())
        }

        logger.info(f"Aggregated {len(transactions)} transactions into {len(summaries)} months")
        return summaries
