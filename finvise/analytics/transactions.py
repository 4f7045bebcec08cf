"""
Transaction aggregations.

Pure functions over a list of transactions. Anything that depends on "now"
takes the reference date explicitly (defaulting to today), so the same
inputs always give the same result.

Category grouping is exact string match. "Food" and "food " are two buckets.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from finvise.models.finance import Budget, Transaction, TransactionType, new_record_id
from finvise.models.summary import (
    ZERO,
    BudgetUtilization,
    CashFlowPoint,
    CategoryTotal,
    MonthlyOverview,
    MonthlyTrendPoint,
    SpendingSummary,
    WeeklyComparison,
)


MONTH_LABELS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

# Budget usage thresholds, in percent
BUDGET_DANGER_THRESHOLD = 90.0
BUDGET_WARNING_THRESHOLD = 70.0


def _expenses(transactions: list[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.type == TransactionType.EXPENSE]


def _sum(transactions: list[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


# =============================================================================
# TOTALS AND CATEGORIES
# =============================================================================

def compute_totals(transactions: list[Transaction]) -> SpendingSummary:
    """Income, expense and balance (income - expense)."""
    income = _sum([t for t in transactions if t.type == TransactionType.INCOME])
    expense = _sum(_expenses(transactions))
    return SpendingSummary(
        total_income=income,
        total_expense=expense,
        balance=income - expense,
    )


def category_spending(transactions: list[Transaction]) -> dict[str, Decimal]:
    """
    EXPENSE amounts per category label.

    Keys keep the order in which each category first appears.
    """
    spending: dict[str, Decimal] = {}
    for t in _expenses(transactions):
        spending[t.category] = spending.get(t.category, ZERO) + t.amount
    return spending


def category_breakdown(
    transactions: list[Transaction],
    sort_by_value: bool = False,
) -> list[CategoryTotal]:
    """
    category_spending() as a list of name/value pairs.

    With sort_by_value the largest category comes first (dashboard pie).
    """
    totals = [
        CategoryTotal(name=name, value=value)
        for name, value in category_spending(transactions).items()
    ]
    if sort_by_value:
        totals.sort(key=lambda c: c.value, reverse=True)
    return totals


def recent_cash_flow(
    transactions: list[Transaction],
    limit: int = 10,
) -> list[CashFlowPoint]:
    """
    Income and expense per exact date over the last `limit` transactions.

    The collection's own order is kept: take its last `limit` items, then
    bucket them by date in first-occurrence order.
    """
    if limit <= 0:
        return []

    buckets: dict[date, CashFlowPoint] = {}
    for t in transactions[-limit:]:
        point = buckets.setdefault(t.transaction_date, CashFlowPoint(day=t.transaction_date))
        if t.type == TransactionType.INCOME:
            point.income += t.amount
        else:
            point.expense += t.amount
    return list(buckets.values())


# =============================================================================
# CALENDAR WINDOWS
# =============================================================================

def current_month_transactions(
    transactions: list[Transaction],
    today: Optional[date] = None,
) -> list[Transaction]:
    """Transactions dated in today's calendar month."""
    today = today or date.today()
    return [
        t for t in transactions
        if t.transaction_date.year == today.year
        and t.transaction_date.month == today.month
    ]


def monthly_overview(
    transactions: list[Transaction],
    today: Optional[date] = None,
) -> MonthlyOverview:
    """
    Current-month income, expense and saving rate.

    saving_rate = (income - expense) / income * 100, and 0 without income.
    """
    totals = compute_totals(current_month_transactions(transactions, today))
    saving_rate = 0.0
    if totals.total_income > 0:
        saving_rate = float(
            (totals.total_income - totals.total_expense) / totals.total_income * 100
        )
    return MonthlyOverview(
        income=totals.total_income,
        expense=totals.total_expense,
        saving_rate=saving_rate,
    )


def monthly_trend(
    transactions: list[Transaction],
    today: Optional[date] = None,
    months: int = 6,
) -> list[MonthlyTrendPoint]:
    """
    Income and expense for the last `months` calendar months, oldest first.

    Every month in the window gets a bucket, empty ones with zero sums.
    Transactions outside the window are ignored.
    """
    today = today or date.today()
    first_of_month = today.replace(day=1)

    buckets: dict[tuple[int, int], MonthlyTrendPoint] = {}
    for offset in range(months - 1, -1, -1):
        month_start = first_of_month - relativedelta(months=offset)
        buckets[(month_start.year, month_start.month)] = MonthlyTrendPoint(
            year=month_start.year,
            month=month_start.month,
            label=MONTH_LABELS[month_start.month - 1],
        )

    for t in transactions:
        point = buckets.get((t.transaction_date.year, t.transaction_date.month))
        if point is None:
            continue
        if t.type == TransactionType.INCOME:
            point.income += t.amount
        else:
            point.expense += t.amount

    return list(buckets.values())


def week_start(today: Optional[date] = None) -> date:
    """Most recent Sunday; today itself when today is a Sunday."""
    today = today or date.today()
    # weekday(): Monday=0 .. Sunday=6
    return today - timedelta(days=(today.weekday() + 1) % 7)


def weekly_comparison(
    transactions: list[Transaction],
    today: Optional[date] = None,
) -> WeeklyComparison:
    """
    Expense this week against the previous week.

    This week is [week_start, today], last week the seven days before
    week_start. change is 0 when last week had no expense.
    """
    today = today or date.today()
    start = week_start(today)
    last_start = start - timedelta(days=7)
    last_end = start - timedelta(days=1)

    expenses = _expenses(transactions)
    this_week = _sum([t for t in expenses if start <= t.transaction_date <= today])
    last_week = _sum([t for t in expenses if last_start <= t.transaction_date <= last_end])

    change = 0.0
    if last_week > 0:
        change = float((this_week - last_week) / last_week * 100)

    return WeeklyComparison(
        week_start=start,
        this_week=this_week,
        last_week=last_week,
        change=change,
    )


# =============================================================================
# BUDGETS
# =============================================================================

def budget_level(percentage: float) -> str:
    if percentage >= BUDGET_DANGER_THRESHOLD:
        return "danger"
    if percentage >= BUDGET_WARNING_THRESHOLD:
        return "warning"
    return "ok"


def budget_utilization(
    budgets: list[Budget],
    transactions: list[Transaction],
    today: Optional[date] = None,
) -> list[BudgetUtilization]:
    """
    Spent vs limit for each budget over the current month.

    percentage is capped at 100; remaining is not clamped and is negative
    once the budget is exceeded.
    """
    spending = category_spending(current_month_transactions(transactions, today))

    results = []
    for budget in budgets:
        spent = spending.get(budget.category, ZERO)
        percentage = min(float(spent / budget.limit * 100), 100.0)
        results.append(BudgetUtilization(
            budget_id=budget.id,
            category=budget.category,
            limit=budget.limit,
            spent=spent,
            percentage=percentage,
            remaining=budget.limit - spent,
            level=budget_level(percentage),
        ))
    return results


def build_budget_set(
    existing: list[Budget],
    limits: dict[str, Decimal],
) -> list[Budget]:
    """
    Replace the budget set from a {category: limit} mapping.

    Categories with an empty name or a limit <= 0 are dropped. A category
    that already had a budget keeps its id; new categories get a fresh one.
    """
    ids_by_category = {b.category: b.id for b in existing}

    budgets = []
    for category, limit in limits.items():
        category = (category or "").strip()
        if not category or limit is None:
            continue
        limit = Decimal(str(limit)).quantize(Decimal("0.01"))
        if limit <= 0:
            continue
        budgets.append(Budget(
            id=ids_by_category.get(category) or new_record_id(),
            category=category,
            limit=limit,
        ))
    return budgets
