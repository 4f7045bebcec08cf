"""AI Agents package."""

from finvise.agents.advisor import (
    FALLBACK_SUMMARY,
    FALLBACK_TIPS,
    FinancialAdvisor,
    fallback_advice,
    summarize_transaction,
    summarize_transactions,
)

__all__ = [
    "FALLBACK_SUMMARY",
    "FALLBACK_TIPS",
    "FinancialAdvisor",
    "fallback_advice",
    "summarize_transaction",
    "summarize_transactions",
]
