"""LedgerFlow: statement parsing and monthly ledger aggregation."""

__version__ = "0.1.0"
