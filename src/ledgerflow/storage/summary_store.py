"""Monthly summary and document status persistence using SQLite."""
import json
import sqlite3
import threading
from contextlib import closing, contextmanager
from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from ledgerflow.ledger.merge import merge_month, recompute_summary
from ledgerflow.ledger.sanitizer import (
    DEFAULT_MAX_TRANSACTION_ABS,
    clamp_numeric,
    normalize_stored_transactions,
)
from ledgerflow.models import MonthlySummary, Transaction
from ledgerflow.utils.exceptions import StorageError
from ledgerflow.utils.logger import get_logger

logger = get_logger()

DOCUMENT_STATUSES = ("pending", "processing", "completed", "failed")


@dataclass
class DocumentRecord:
    document_id: str
    user_id: str
    file_name: str
    blob_id: str
    mime_type: str = ""
    encryption_key_id: Optional[str] = None
    status: str = "pending"
    transaction_count: int = 0
    date_range_start: Optional[str] = None
    date_range_end: Optional[str] = None
    total_income: Optional[Decimal] = None
    total_expenses: Optional[Decimal] = None
    error: Optional[str] = None
    processed_at: Optional[datetime] = None


_DOCUMENT_COLUMNS = [f.name for f in fields(DocumentRecord)]
_UPDATABLE_COLUMNS = set(_DOCUMENT_COLUMNS) - {"document_id", "user_id"}


def _to_db(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class SummaryStore:
    """One merged summary row per (user, month) plus per-document status records."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create database directory {self.db_path.parent}: {e}")
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(sqlite3.connect(self.db_path, isolation_level=None)) as conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}")

    def _init_db(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS monthly_summaries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    summary_month TEXT NOT NULL,
                    document_id TEXT,
                    total_income TEXT,
                    total_expenses TEXT,
                    data TEXT NOT NULL,
                    updated_at TEXT,
                    UNIQUE(user_id, summary_month)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    document_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    file_name TEXT,
                    blob_id TEXT,
                    mime_type TEXT,
                    encryption_key_id TEXT,
                    status TEXT,
                    transaction_count INTEGER,
                    date_range_start TEXT,
                    date_range_end TEXT,
                    total_income TEXT,
                    total_expenses TEXT,
                    error TEXT,
                    processed_at TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_summary_user ON monthly_summaries(user_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_document_user ON documents(user_id)")

    # Documents

    def register_document(self, record: DocumentRecord) -> None:
        placeholders = ", ".join("?" for _ in _DOCUMENT_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO documents ({', '.join(_DOCUMENT_COLUMNS)}) VALUES ({placeholders})",
                [_to_db(getattr(record, name)) for name in _DOCUMENT_COLUMNS],
            )

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_DOCUMENT_COLUMNS)} FROM documents WHERE document_id = ?",
                (document_id,),
            ).fetchone()
        return self._row_to_document(row) if row else None

    def get_user_documents(self, user_id: str) -> List[DocumentRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(_DOCUMENT_COLUMNS)} FROM documents WHERE user_id = ? "
                "ORDER BY processed_at DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def blob_in_use(self, blob_id: str) -> bool:
        """Whether any registered document still points at blob_id."""
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM documents WHERE blob_id = ? LIMIT 1", (blob_id,)).fetchone()
        return row is not None

    def update_document(self, document_id: str, **changes) -> None:
        """Update selected document columns."""
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise StorageError(f"Unknown document fields: {sorted(unknown)}")
        if "status" in changes and changes["status"] not in DOCUMENT_STATUSES:
            raise StorageError(f"Invalid document status: {changes['status']}")
        if not changes:
            return

        assignments = ", ".join(f"{name} = ?" for name in changes)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE documents SET {assignments} WHERE document_id = ?",
                [_to_db(value) for value in changes.values()] + [document_id],
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Document not found: {document_id}")

    @staticmethod
    def _row_to_document(row) -> DocumentRecord:
        data = dict(zip(_DOCUMENT_COLUMNS, row))
        for name in ("total_income", "total_expenses"):
            if data[name] is not None:
                data[name] = Decimal(data[name])
        if data["processed_at"]:
            try:
                data["processed_at"] = datetime.fromisoformat(data["processed_at"])
            except ValueError:
                data["processed_at"] = None
        data["transaction_count"] = int(data["transaction_count"] or 0)
        return DocumentRecord(**data)

    # Monthly summaries

    def get_month_summaries(self, user_id: str, months: Sequence[str]) -> Dict[str, MonthlySummary]:
        if not months:
            return {}
        placeholders = ", ".join("?" for _ in months)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT summary_month, data FROM monthly_summaries "
                f"WHERE user_id = ? AND summary_month IN ({placeholders})",
                [user_id, *months],
            ).fetchall()
        return {month: MonthlySummary.from_dict(json.loads(data)) for month, data in rows}

    def list_summaries(self, user_id: str, limit: int = 12) -> List[MonthlySummary]:
        """Most recent months first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data FROM monthly_summaries WHERE user_id = ? ORDER BY summary_month DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [MonthlySummary.from_dict(json.loads(data)) for (data,) in rows]

    def merge_document_months(self, user_id: str, document_id: str,
                              incoming_by_month: Dict[str, List[Transaction]],
                              max_abs: Decimal = DEFAULT_MAX_TRANSACTION_ABS,
                              top_n: int = 10) -> Dict[str, MonthlySummary]:
        """
        Replace a document's transactions across the user's months and
        recompute each touched month's aggregates.

        Months that held rows of the document but get no incoming rows are
        recomputed too; a month left with no transactions is deleted. The
        read-merge-write runs in one IMMEDIATE transaction, so concurrent
        ingestions for the same user cannot lose each other's rows.

        Returns:
            The stored summaries keyed by month
        """
        stored: Dict[str, MonthlySummary] = {}
        now = datetime.now().isoformat()

        with self._lock, self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                rows = conn.execute(
                    "SELECT summary_month, data FROM monthly_summaries WHERE user_id = ?",
                    (user_id,),
                ).fetchall()
                previous_by_month = {
                    month: normalize_stored_transactions(json.loads(data).get("all_transactions"), max_abs)
                    for month, data in rows
                }
                stale_months = {
                    month for month, previous in previous_by_month.items()
                    if any(txn.source_document_id == document_id for txn in previous)
                }

                for month in sorted(stale_months | set(incoming_by_month)):
                    merged = merge_month(
                        previous_by_month.get(month, []),
                        incoming_by_month.get(month, []),
                        document_id,
                    )
                    if not merged:
                        conn.execute(
                            "DELETE FROM monthly_summaries WHERE user_id = ? AND summary_month = ?",
                            (user_id, month),
                        )
                        logger.info(f"Removed month {month} emptied by document {document_id}")
                        continue

                    summary = recompute_summary(month, merged, top_n)
                    summary.total_income = clamp_numeric(summary.total_income)
                    summary.total_expenses = clamp_numeric(summary.total_expenses)

                    conn.execute("""
                        INSERT INTO monthly_summaries
                        (user_id, summary_month, document_id, total_income, total_expenses, data, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(user_id, summary_month) DO UPDATE SET
                            document_id = excluded.document_id,
                            total_income = excluded.total_income,
                            total_expenses = excluded.total_expenses,
                            data = excluded.data,
                            updated_at = excluded.updated_at
                    """, (
                        user_id,
                        month,
                        document_id,
                        str(summary.total_income),
                        str(summary.total_expenses),
                        json.dumps(summary.to_dict()),
                        now,
                    ))
                    if month in incoming_by_month:
                        stored[month] = summary

                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.info(f"Merged document {document_id} into {len(stored)} months for user {user_id}")
        return stored

    def clear_user(self, user_id: str) -> int:
        """Delete all summaries and documents of a user. Returns rows removed."""
        with self._connect() as conn:
            removed = conn.execute("DELETE FROM monthly_summaries WHERE user_id = ?", (user_id,)).rowcount
            removed += conn.execute("DELETE FROM documents WHERE user_id = ?", (user_id,)).rowcount
        return removed
