"""Data models for statement parsing and monthly aggregation."""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional

CATEGORIES = (
    "income_salary",
    "income_investment",
    "income_other",
    "housing",
    "groceries",
    "dining",
    "transportation",
    "subscriptions",
    "healthcare",
    "insurance",
    "education",
    "other",
)

INCOME_PREFIX = "income_"

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Round a numeric value to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal) -> str:
    """Fixed two-decimal string used for keys and persisted JSON."""
    return str(money(value))


class Source(Enum):
    """Which path produced a result."""
    MODEL = "model"
    FALLBACK = "fallback"


@dataclass
class Transaction:
    """Single ledger transaction; positive amounts are inflows."""
    date: str
    description: str
    amount: Decimal
    category: str
    source_document_id: Optional[str] = None

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "date": self.date,
            "description": self.description,
            "amount": money_str(self.amount),
            "category": self.category,
        }
        if self.source_document_id is not None:
            data["source_document_id"] = self.source_document_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            date=str(data["date"]),
            description=str(data["description"]),
            amount=Decimal(str(data["amount"])),
            category=str(data.get("category") or "other"),
            source_document_id=data.get("source_document_id"),
        )


@dataclass
class MerchantTotal:
    """Expense total for one merchant bucket."""
    name: str
    amount: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "amount": money_str(self.amount), "count": self.count}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MerchantTotal":
        return cls(name=data["name"], amount=Decimal(str(data["amount"])), count=int(data["count"]))


@dataclass
class MonthlySummary:
    """Aggregate for one calendar month (month key is YYYY-MM-01)."""
    month: str
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    income_count: int = 0
    expense_count: int = 0
    income_by_source: Dict[str, Decimal] = field(default_factory=dict)
    expenses_by_category: Dict[str, Decimal] = field(default_factory=dict)
    top_merchants: List[MerchantTotal] = field(default_factory=list)
    all_transactions: List[Transaction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "total_income": money_str(self.total_income),
            "total_expenses": money_str(self.total_expenses),
            "income_count": self.income_count,
            "expense_count": self.expense_count,
            "income_by_source": {k: money_str(v) for k, v in self.income_by_source.items()},
            "expenses_by_category": {k: money_str(v) for k, v in self.expenses_by_category.items()},
            "top_merchants": [m.to_dict() for m in self.top_merchants],
            "all_transactions": [t.to_dict() for t in self.all_transactions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonthlySummary":
        return cls(
            month=data["month"],
            total_income=Decimal(str(data.get("total_income", "0"))),
            total_expenses=Decimal(str(data.get("total_expenses", "0"))),
            income_count=int(data.get("income_count", 0)),
            expense_count=int(data.get("expense_count", 0)),
            income_by_source={k: Decimal(str(v)) for k, v in (data.get("income_by_source") or {}).items()},
            expenses_by_category={
                k: Decimal(str(v)) for k, v in (data.get("expenses_by_category") or {}).items()
            },
            top_merchants=[MerchantTotal.from_dict(m) for m in data.get("top_merchants") or []],
            all_transactions=[Transaction.from_dict(t) for t in data.get("all_transactions") or []],
        )


@dataclass
class DateRange:
    start: str
    end: str


@dataclass
class ParseResult:
    """Per-file parse output."""
    transactions: List[Transaction]
    total_income: Decimal
    total_expenses: Decimal
    date_range: DateRange
    source_chunks: List[str] = field(default_factory=list)
    source: Source = Source.FALLBACK
