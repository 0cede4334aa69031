"""Keyword-based transaction categorization."""
import re
from decimal import Decimal
from typing import Tuple

# Checked in order for outflows; first match wins
EXPENSE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("transportation", ("uber", "lyft", "gas", "shell", "chevron", "parking", "transit")),
    ("housing", ("rent", "mortgage", "hoa ")),
    ("groceries", (
        "walmart", "costco", "target", "whole foods", "trader joe",
        "grocery", "supermarket", "safeway", "kroger",
    )),
    ("dining", ("restaurant", "doordash", "grubhub", "coffee", "cafe", "starbucks")),
    ("subscriptions", ("netflix", "spotify", "hulu", "prime", "subscription")),
    ("healthcare", ("hospital", "clinic", "pharmacy", "dental", "medical")),
    ("insurance", ("insurance",)),
    ("education", ("tuition", "student loan")),
)

SALARY_KEYWORDS = ("payroll", "salary", "wage")
INVESTMENT_KEYWORDS = ("interest", "dividend")

_POSITIVE_WORDING = re.compile(
    r"\b(credit|deposit|payroll|salary|refund|interest|dividend|transfer in|ach credit)\b",
    re.IGNORECASE,
)


def classify(description: str, amount: Decimal) -> str:
    """
    Assign a category from description keywords and amount sign.

    Args:
        description: Transaction description
        amount: Signed amount, positive for inflows

    Returns:
        One of the known category names
    """
    desc = (description or "").lower()

    if amount > 0:
        if any(word in desc for word in SALARY_KEYWORDS):
            return "income_salary"
        if any(word in desc for word in INVESTMENT_KEYWORDS):
            return "income_investment"
        return "income_other"

    for category, keywords in EXPENSE_KEYWORDS:
        if any(word in desc for word in keywords):
            return category

    return "other"


def looks_like_positive_description(text: str) -> bool:
    """True when the text reads like an inflow (deposit, refund, payroll...)."""
    return bool(_POSITIVE_WORDING.search(text or ""))
