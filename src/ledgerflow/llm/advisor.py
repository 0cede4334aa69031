"""
Financial analysis, optimization insights and goals.

Each stage asks the completion service first and substitutes a
deterministic result when the service is missing, fails, or answers with
something unusable. Results are tagged with the path that produced them.
"""
import json
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ledgerflow.ledger.sanitizer import clamp_numeric, to_decimal, to_nullable_numeric
from ledgerflow.models import MonthlySummary, Source, money
from ledgerflow.parsing.normalizer import normalize_date
from ledgerflow.utils.exceptions import InvalidDateError
from ledgerflow.utils.logger import get_logger
from .client import CompletionClient
from .json_utils import parse_json

logger = get_logger()

GOAL_CATEGORIES = ("savings", "debt", "investing", "emergency_fund", "income", "retirement", "other")
MAX_GOALS = 6
MAX_GOAL_NAME = 80
MAX_GOAL_DESCRIPTION = 2000
MAX_DOCUMENT_EXCERPTS = 8

FALLBACK_SUMMARY = "Generated fallback analysis due to temporary AI unavailability."


class CategoryShare(BaseModel):
    category: str
    amount: float
    percentage: float


class OverallAssessment(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    health_score: str = Field(alias="healthScore")
    net_worth: float = Field(default=0, alias="netWorth")
    summary: str = ""


class CashFlow(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    monthly_income: float = Field(alias="monthlyIncome")
    monthly_expenses: float = Field(alias="monthlyExpenses")
    savings_rate: float = Field(alias="savingsRate")
    assessment: str = ""
    top_categories: List[CategoryShare] = Field(default_factory=list, alias="topCategories")


class SpendingNotes(BaseModel):
    model_config = ConfigDict(extra="ignore")

    patterns: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    positives: List[str] = Field(default_factory=list)


class Analysis(BaseModel):
    """Validated shape of a comprehensive financial analysis."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    overall: OverallAssessment
    cash_flow: CashFlow = Field(alias="cashFlow")
    spending: SpendingNotes = Field(default_factory=SpendingNotes)
    recommendations: List[str] = Field(default_factory=list)


@dataclass
class Insight:
    category: str
    title: str
    description: str
    potential_savings: Optional[Decimal] = None
    potential_earnings: Optional[Decimal] = None
    impact_level: str = "medium"
    action_steps: List[str] = field(default_factory=list)
    complexity: str = "medium"
    estimated_time: Optional[str] = None


@dataclass
class Goal:
    name: str
    category: str
    target_amount: Decimal
    current_amount: Decimal = Decimal("0.00")
    description: Optional[str] = None
    target_date: Optional[str] = None
    monthly_contribution: Optional[Decimal] = None
    priority: int = 3


@dataclass
class AnalysisResult:
    analysis: Analysis
    source: Source


@dataclass
class InsightsResult:
    insights: List[Insight]
    source: Source


@dataclass
class GoalsResult:
    goals: List[Goal]
    source: Source


def _round2(value: float) -> float:
    return float(money(value))


def build_fallback_analysis(summaries: Iterable[MonthlySummary], net_worth: float = 0) -> Analysis:
    """Deterministic analysis from monthly summaries."""
    months = list(summaries)
    total_income = sum((m.total_income for m in months), Decimal("0"))
    total_expenses = sum((m.total_expenses for m in months), Decimal("0"))
    month_count = len(months) or 1

    monthly_income = float(total_income) / month_count
    monthly_expenses = float(total_expenses) / month_count
    savings_rate = (monthly_income - monthly_expenses) / monthly_income * 100 if monthly_income > 0 else 0.0

    if savings_rate >= 25:
        health_score = "Strong"
    elif savings_rate >= 15:
        health_score = "Good"
    elif savings_rate >= 5:
        health_score = "Fair"
    else:
        health_score = "Needs Improvement"

    by_category: Dict[str, Decimal] = {}
    for month in months:
        for category, amount in month.expenses_by_category.items():
            by_category[category] = by_category.get(category, Decimal("0")) + amount

    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)[:5]
    top_categories = [
        CategoryShare(
            category=category,
            amount=float(amount),
            percentage=_round2(amount / total_expenses * 100) if total_expenses > 0 else 0.0,
        )
        for category, amount in ranked
    ]

    return Analysis(
        overall=OverallAssessment(health_score=health_score, net_worth=net_worth, summary=FALLBACK_SUMMARY),
        cash_flow=CashFlow(
            monthly_income=_round2(monthly_income),
            monthly_expenses=_round2(monthly_expenses),
            savings_rate=_round2(savings_rate),
            assessment=(
                "Cash flow is healthy with stable savings potential."
                if savings_rate >= 15
                else "Expenses are absorbing most income. Focus on high-impact reductions."
            ),
            top_categories=top_categories,
        ),
        spending=SpendingNotes(
            patterns=["Monthly spending was summarized from uploaded transactions."],
            concerns=(
                ["Savings rate is below recommended 10-20% range."]
                if savings_rate < 10
                else ["No major spending concerns detected."]
            ),
            positives=(
                ["You are maintaining a strong monthly savings trend."]
                if savings_rate >= 15
                else ["Income appears stable across the analyzed months."]
            ),
        ),
        recommendations=["Prioritize high-interest debt payoff", "Automate monthly transfers to savings"],
    )


def build_fallback_insights(analysis: Analysis) -> List[Insight]:
    """Two generic insights scaled to monthly income."""
    savings_rate = analysis.cash_flow.savings_rate
    baseline = max(analysis.cash_flow.monthly_income, 1)

    return [
        Insight(
            category="cashflow",
            title="Set an automatic monthly savings transfer",
            description="Automating savings improves consistency and reduces overspending risk.",
            potential_savings=money(baseline * (0.04 if savings_rate < 10 else 0.02)),
            impact_level="high" if savings_rate < 10 else "medium",
            action_steps=["Set auto-transfer for payday", "Start with 5-10% of income"],
            complexity="easy",
            estimated_time="15 minutes",
        ),
        Insight(
            category="debt",
            title="Accelerate high-interest debt payments",
            description="Targeting high-interest balances first typically delivers the fastest guaranteed return.",
            potential_savings=money(baseline * 0.08),
            impact_level="high",
            action_steps=["List debts by APR", "Allocate extra payment to highest APR debt"],
            complexity="medium",
            estimated_time="1 hour setup",
        ),
    ]


def build_fallback_goals(analysis: Analysis) -> List[Dict[str, Any]]:
    """Six goal candidates derived from average monthly cash flow."""
    monthly_income = analysis.cash_flow.monthly_income
    monthly_expenses = analysis.cash_flow.monthly_expenses
    monthly_savings = max(monthly_income - monthly_expenses, 0)
    annual_income = max(monthly_income * 12, 12_000)
    conservative = max(monthly_savings * 0.5, 100)
    growth = max(monthly_savings * 0.3, 150)

    def goal(name, description, category, target, contribution, priority):
        return {
            "name": name,
            "description": description,
            "category": category,
            "targetAmount": _round2(target),
            "currentAmount": 0,
            "targetDate": None,
            "monthlyContribution": _round2(contribution),
            "priority": priority,
        }

    return [
        goal("Build 3-month emergency fund",
             "Create a cash buffer equal to at least three months of expenses.",
             "emergency_fund", max(monthly_expenses * 3, 3_000), conservative, 1),
        goal("Pay down high-interest debt",
             "Reduce interest costs by aggressively targeting the highest-rate debt first.",
             "debt", max(monthly_expenses * 1.5, 2_000), max(growth, 150), 2),
        goal("Increase monthly savings rate",
             "Automate recurring transfers to consistently increase monthly savings.",
             "savings", max(annual_income * 0.2, 4_000), max(monthly_savings, 200), 3),
        goal("Build long-term investment base",
             "Contribute monthly to a diversified portfolio aligned with your risk profile.",
             "investing", max(annual_income * 0.15, 5_000), max(growth, 250), 4),
        goal("Grow primary income capacity",
             "Invest in skills, certifications, or side income channels to raise earnings.",
             "income", max(monthly_income * 2, 4_000), max(conservative, 120), 5),
        goal("Increase retirement contributions",
             "Set up a consistent retirement contribution to compound long-term wealth.",
             "retirement", max(annual_income * 0.1, 6_000), max(growth, 200), 5),
    ]


def normalize_goal_name(name: str) -> str:
    return re.sub(r"\s+", " ", name.strip().lower())


def normalize_goal_category(value: Any) -> str:
    normalized = re.sub(r"\s+", "_", str(value or "").strip().lower())
    return normalized if normalized in GOAL_CATEGORIES else "other"


def _non_negative(value: Any) -> Decimal:
    numeric = to_decimal(value)
    if numeric is None:
        return Decimal("0")
    return max(numeric, Decimal("0"))


def _first_present(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _goal_date(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return normalize_date(value.strip())
    except InvalidDateError:
        return None


def _priority(value: Any) -> int:
    try:
        parsed = round(float(value))
    except (TypeError, ValueError, OverflowError):
        return 3
    return min(max(parsed, 1), 5)


def normalize_goal(raw: Any) -> Optional[Goal]:
    """Coerce a free-form goal candidate into a Goal, or None if unusable."""
    if not isinstance(raw, dict):
        return None

    name = str(raw.get("name") or "").strip()[:MAX_GOAL_NAME]
    if not name:
        return None

    target = clamp_numeric(_non_negative(_first_present(raw, "targetAmount", "target_amount")))
    if target <= 0:
        return None

    current = min(clamp_numeric(_non_negative(_first_present(raw, "currentAmount", "current_amount"))), target)

    contribution_raw = _first_present(raw, "monthlyContribution", "monthly_contribution")
    contribution = None if contribution_raw is None else clamp_numeric(_non_negative(contribution_raw))

    description = str(raw.get("description") or "").strip()[:MAX_GOAL_DESCRIPTION]

    return Goal(
        name=name,
        category=normalize_goal_category(raw.get("category")),
        target_amount=target,
        current_amount=current,
        description=description or None,
        target_date=_goal_date(_first_present(raw, "targetDate", "target_date")),
        monthly_contribution=contribution,
        priority=_priority(raw.get("priority")),
    )


def select_new_goals(candidates: Iterable[Any], existing_names: Iterable[str] = (),
                     limit: int = MAX_GOALS) -> List[Goal]:
    """Normalize candidates in order, skipping names already taken, up to limit goals."""
    seen = {normalize_goal_name(name or "") for name in existing_names}
    selected: List[Goal] = []

    for raw in candidates:
        goal = normalize_goal(raw)
        if goal is None:
            continue
        key = normalize_goal_name(goal.name)
        if key in seen:
            continue
        seen.add(key)
        selected.append(goal)
        if len(selected) >= limit:
            break

    return selected


def insight_from_raw(raw: Any) -> Optional[Insight]:
    if not isinstance(raw, dict):
        return None
    steps = raw.get("actionSteps")
    return Insight(
        category=str(raw.get("category") or "cashflow"),
        title=str(raw.get("title") or "Financial optimization recommendation"),
        description=str(raw.get("description") or "Review this recommendation to improve your finances."),
        potential_savings=to_nullable_numeric(raw.get("potentialSavings")),
        potential_earnings=to_nullable_numeric(raw.get("potentialEarnings")),
        impact_level=str(raw.get("impactLevel") or "medium"),
        action_steps=[str(step) for step in steps] if isinstance(steps, list) else [],
        complexity=str(raw.get("complexity") or "medium"),
        estimated_time=raw.get("estimatedTime") or None,
    )


ANALYSIS_SYSTEM_PROMPT = """You are an expert financial analyst providing comprehensive analysis of user financial data.

Analyze the user's complete financial situation including:
1. Overall financial health assessment
2. Cash flow analysis (income vs expenses, savings rate)
3. Spending patterns and trends
4. Debt analysis
5. Progress toward goals

Provide specific, actionable insights. Be encouraging but honest.
All monetary numbers must be represented in the user's preferred currency.

IMPORTANT: Respond ONLY with valid JSON in this exact structure:
{
  "overall": {
    "healthScore": "Strong|Good|Fair|Needs Improvement",
    "netWorth": number,
    "summary": "string"
  },
  "cashFlow": {
    "monthlyIncome": number,
    "monthlyExpenses": number,
    "savingsRate": number,
    "assessment": "string",
    "topCategories": [{"category": "string", "amount": number, "percentage": number}]
  },
  "spending": {
    "patterns": ["string"],
    "concerns": ["string"],
    "positives": ["string"]
  },
  "recommendations": ["string"]
}"""

INSIGHTS_SYSTEM_PROMPT = """You are a financial optimization expert. Provide specific, actionable recommendations.

For each recommendation:
- title: Clear action (max 50 chars)
- category: cashflow|debt|savings|investing|income
- description: Why it matters (2-3 sentences)
- potentialSavings: numeric amount in user's preferred currency (if applicable)
- potentialEarnings: numeric amount in user's preferred currency (if applicable)
- impactLevel: critical|high|medium|low
- actionSteps: Array of specific steps
- complexity: easy|medium|hard
- estimatedTime: Time to implement

Respond ONLY with valid JSON array of recommendations."""

GOALS_SYSTEM_PROMPT = """You are an expert financial planner.

Create practical SMART goals based on the user's documents, analysis, and profile.
Respond ONLY with valid JSON array.

Each goal object MUST include:
- name: string (max 80 chars)
- description: string
- category: string (savings|debt|investing|emergency_fund|income|retirement|other)
- targetAmount: number in user's preferred currency (must be > 0)
- currentAmount: number (>= 0)
- targetDate: string in YYYY-MM-DD format OR null
- monthlyContribution: number in user's preferred currency (>= 0) OR null
- priority: number (1-5, where 1 is highest)

Output 3-6 goals, highest impact first."""


def _summaries_payload(summaries: Sequence[MonthlySummary]) -> Dict[str, Any]:
    payload = {}
    for summary in summaries:
        data = summary.to_dict()
        data.pop("all_transactions", None)
        payload[summary.month] = data
    return payload


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class FinancialAdvisor:
    """Runs the analysis, insight and goal stages with deterministic fallbacks."""

    def __init__(self, client: Optional[CompletionClient] = None, currency: str = "USD"):
        self.client = client
        self.currency = (currency or "USD").upper()

    def analyze(self, summaries: Sequence[MonthlySummary], document_chunks: Sequence[str] = (),
                net_worth: float = 0) -> AnalysisResult:
        """Comprehensive analysis of the given months."""
        if self.client is not None:
            try:
                text = self.client.complete(
                    ANALYSIS_SYSTEM_PROMPT,
                    f"""Analyze this user's financial data:

MONTHLY SUMMARIES (latest available months across uploaded documents):
{_dump(_summaries_payload(summaries))}

PREFERRED CURRENCY:
{self.currency}

DOCUMENT EXCERPTS (chunked to max 2000 chars each):
{_dump(list(document_chunks)[:MAX_DOCUMENT_EXCERPTS])}

Provide comprehensive analysis in JSON format.""",
                    temperature=0.7,
                    max_tokens=4000,
                )
                analysis = Analysis.model_validate(parse_json(text, "object"))
                return AnalysisResult(analysis=analysis, source=Source.MODEL)
            except Exception as e:
                logger.error(f"Model analysis failed, using fallback analysis: {e}")

        return AnalysisResult(analysis=build_fallback_analysis(summaries, net_worth), source=Source.FALLBACK)

    def generate_insights(self, analysis: Analysis,
                          summaries: Sequence[MonthlySummary] = ()) -> InsightsResult:
        """Optimization recommendations."""
        if self.client is not None:
            try:
                text = self.client.complete(
                    INSIGHTS_SYSTEM_PROMPT,
                    f"""Generate optimization recommendations based on:

ANALYSIS:
{_dump(analysis.model_dump(by_alias=True))}

MONTHLY SUMMARIES:
{_dump(_summaries_payload(summaries))}

PREFERRED CURRENCY:
{self.currency}

Provide 5-10 high-impact recommendations in JSON format.""",
                    temperature=0.8,
                    max_tokens=4000,
                )
                insights = [i for i in map(insight_from_raw, parse_json(text, "array")) if i]
                if insights:
                    return InsightsResult(insights=insights, source=Source.MODEL)
                logger.warning("Model returned no usable insights, using fallback insights")
            except Exception as e:
                logger.error(f"Model insights failed, using fallback insights: {e}")

        return InsightsResult(insights=build_fallback_insights(analysis), source=Source.FALLBACK)

    def generate_goals(self, analysis: Analysis, insights: Sequence[Insight] = (),
                       existing_names: Iterable[str] = (),
                       summaries: Sequence[MonthlySummary] = ()) -> GoalsResult:
        """
        Up to six new goals, model candidates first, topped up from the
        fallback set; names already in use are skipped.
        """
        candidates: List[Any] = []
        source = Source.FALLBACK

        if self.client is not None:
            try:
                text = self.client.complete(
                    GOALS_SYSTEM_PROMPT,
                    f"""Generate goals from:

ANALYSIS:
{_dump(analysis.model_dump(by_alias=True))}

INSIGHTS:
{_dump([insight.__dict__ for insight in insights])}

MONTHLY SUMMARIES:
{_dump(_summaries_payload(summaries))}

PREFERRED CURRENCY:
{self.currency}
""",
                    temperature=0.6,
                    max_tokens=3500,
                )
                candidates = list(parse_json(text, "array"))
                source = Source.MODEL
            except Exception as e:
                logger.error(f"Model goals failed, using fallback goals: {e}")

        existing = list(existing_names)
        model_goals = select_new_goals(candidates, existing) if candidates else []
        if not model_goals:
            source = Source.FALLBACK

        goals = select_new_goals(candidates + build_fallback_goals(analysis), existing)
        return GoalsResult(goals=goals, source=source)
