"""Idempotent merge of a document's transactions into persisted months."""
from collections import defaultdict
from typing import Dict, List, Sequence

from ledgerflow.models import MonthlySummary, Transaction
from .aggregator import Aggregator, month_key

MERGE_TOP_MERCHANTS = 10


def merge_month(existing: Sequence[Transaction], incoming: Sequence[Transaction],
                source_document_id: str) -> List[Transaction]:
    """
    Replace a document's contribution to one month.

    Rows previously tagged with source_document_id are dropped, incoming
    rows are tagged with it, and the result is sorted by date. Inputs are
    not modified.
    """
    kept = [txn for txn in existing if txn.source_document_id != source_document_id]
    tagged = [
        Transaction(
            date=txn.date,
            description=txn.description,
            amount=txn.amount,
            category=txn.category,
            source_document_id=source_document_id,
        )
        for txn in incoming
    ]
    return sorted(kept + tagged, key=lambda txn: txn.date)


def transactions_by_month(transactions: Sequence[Transaction]) -> Dict[str, List[Transaction]]:
    grouped: Dict[str, List[Transaction]] = defaultdict(list)
    for txn in transactions:
        grouped[month_key(txn.date)].append(txn)
    return dict(grouped)


def recompute_summary(month: str, merged: Sequence[Transaction],
                      top_n: int = MERGE_TOP_MERCHANTS) -> MonthlySummary:
    """Rebuild every aggregate of a month from its full merged transaction set."""
    return Aggregator().summarize(list(merged), month, top_n)
