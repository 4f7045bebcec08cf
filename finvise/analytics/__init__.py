"""
Aggregation Engine

Pure functions turning record collections into the summaries the views show.
No I/O, no clock reads except the today defaults.
"""

from finvise.analytics.ledgers import (
    counterparty_balance,
    counterparty_history,
    debt_stats,
    filter_debts,
    filter_gifts,
    gift_stats,
)
from finvise.analytics.transactions import (
    MONTH_LABELS,
    budget_level,
    budget_utilization,
    build_budget_set,
    category_breakdown,
    category_spending,
    compute_totals,
    current_month_transactions,
    monthly_overview,
    monthly_trend,
    recent_cash_flow,
    week_start,
    weekly_comparison,
)

__all__ = [
    # Transactions
    "MONTH_LABELS",
    "budget_level",
    "budget_utilization",
    "build_budget_set",
    "category_breakdown",
    "category_spending",
    "compute_totals",
    "current_month_transactions",
    "monthly_overview",
    "monthly_trend",
    "recent_cash_flow",
    "week_start",
    "weekly_comparison",
    # Debts and gifts
    "counterparty_balance",
    "counterparty_history",
    "debt_stats",
    "filter_debts",
    "filter_gifts",
    "gift_stats",
]
