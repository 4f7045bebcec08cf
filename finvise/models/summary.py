"""
Summary Models

Results of the aggregation engine, and the view bundles the controller
hands to the presentation layer. Plain data, no behaviour.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from finvise.models.finance import (
    Budget,
    Debt,
    DebtPayment,
    GiftRecord,
    Transaction,
)


ZERO = Decimal("0")


class SpendingSummary(BaseModel):
    """Income and expense totals over a collection."""

    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = ZERO


class CategoryTotal(BaseModel):
    """Summed expense for one category label."""

    name: str
    value: Decimal


class CashFlowPoint(BaseModel):
    """Income and expense on one exact date."""

    day: date
    income: Decimal = ZERO
    expense: Decimal = ZERO


class MonthlyTrendPoint(BaseModel):
    """Income and expense for one calendar month bucket."""

    year: int
    month: int = Field(ge=1, le=12)
    label: str
    income: Decimal = ZERO
    expense: Decimal = ZERO


class WeeklyComparison(BaseModel):
    """Expense this week against last week."""

    week_start: date
    this_week: Decimal = ZERO
    last_week: Decimal = ZERO
    change: float = Field(
        default=0.0,
        description="Percent change vs last week, 0 when last week is 0"
    )


class MonthlyOverview(BaseModel):
    """Current-month income, expense and saving rate."""

    income: Decimal = ZERO
    expense: Decimal = ZERO
    saving_rate: float = 0.0


class BudgetUtilization(BaseModel):
    """
    How much of a budget has been spent this month.

    percentage is capped at 100 for display; remaining is not clamped and
    goes negative when the budget is exceeded.
    """

    budget_id: str
    category: str
    limit: Decimal
    spent: Decimal
    percentage: float = Field(ge=0.0, le=100.0)
    remaining: Decimal
    level: str = Field(pattern="^(ok|warning|danger)$")

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0


class DebtStats(BaseModel):
    """Outstanding totals across debts."""

    receivable: Decimal = ZERO
    payable: Decimal = ZERO
    net: Decimal = ZERO


class GiftStats(BaseModel):
    """Given / received totals across gift records."""

    given: Decimal = ZERO
    received: Decimal = ZERO
    net: Decimal = ZERO


class CounterpartyBalance(GiftStats):
    """Gift totals exchanged with one person."""

    person_name: str
    record_count: int = 0


# =============================================================================
# VIEW BUNDLES
# =============================================================================

class DashboardView(BaseModel):
    """Everything the dashboard renders."""

    overview: MonthlyOverview
    weekly: WeeklyComparison
    budgets: list[BudgetUtilization] = Field(default_factory=list)
    trend: list[MonthlyTrendPoint] = Field(default_factory=list)
    categories: list[CategoryTotal] = Field(default_factory=list)

    @property
    def has_trend_data(self) -> bool:
        return any(p.income > 0 or p.expense > 0 for p in self.trend)

    @property
    def top_categories(self) -> list[CategoryTotal]:
        return self.categories[:5]


class TransactionsView(BaseModel):
    """Transaction history with its charts."""

    summary: SpendingSummary
    categories: list[CategoryTotal] = Field(default_factory=list)
    cash_flow: list[CashFlowPoint] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


class DebtsView(BaseModel):
    """Debt list with outstanding totals."""

    stats: DebtStats
    debts: list[Debt] = Field(default_factory=list)


class DebtDetailView(BaseModel):
    """One debt with its repayment history."""

    debt: Debt
    payments: list[DebtPayment] = Field(default_factory=list)


class GiftsView(BaseModel):
    """Gift ledger with totals."""

    stats: GiftStats
    gifts: list[GiftRecord] = Field(default_factory=list)


class GiftDetailView(BaseModel):
    """One gift record with the history exchanged with that person."""

    gift: GiftRecord
    balance: CounterpartyBalance
    history: list[GiftRecord] = Field(default_factory=list)


class BudgetSet(BaseModel):
    """Budgets as held in the local cache."""

    budgets: list[Budget] = Field(default_factory=list)
    saved_at: Optional[str] = None
