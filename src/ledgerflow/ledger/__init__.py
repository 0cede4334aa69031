"""Monthly aggregation, idempotent merge and storage sanitization."""
from .aggregator import Aggregator, month_key
from .merge import merge_month, recompute_summary, transactions_by_month
from .sanitizer import (
    build_parse_result,
    clamp_numeric,
    normalize_stored_transactions,
    round_money,
    sanitize_transactions,
)

__all__ = [
    "Aggregator",
    "month_key",
    "merge_month",
    "recompute_summary",
    "transactions_by_month",
    "build_parse_result",
    "clamp_numeric",
    "normalize_stored_transactions",
    "round_money",
    "sanitize_transactions",
]
