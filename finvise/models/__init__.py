"""
Data Models Package

This package contains all Pydantic models used in FinVise.
All records flowing between storage, analytics and the UI conform to these schemas.
"""

from finvise.models.finance import (
    DEFAULT_CATEGORY,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    AIAdvice,
    Budget,
    BudgetPeriod,
    Debt,
    DebtDraft,
    DebtPayment,
    DebtPaymentDraft,
    DebtStatus,
    DebtType,
    GiftDirection,
    GiftDraft,
    GiftEventType,
    GiftRecord,
    ReceiptUpload,
    Transaction,
    TransactionDraft,
    TransactionType,
    derive_debt_status,
    new_record_id,
)
from finvise.models.summary import (
    BudgetSet,
    BudgetUtilization,
    CashFlowPoint,
    CategoryTotal,
    CounterpartyBalance,
    DashboardView,
    DebtDetailView,
    DebtStats,
    DebtsView,
    GiftDetailView,
    GiftStats,
    GiftsView,
    MonthlyOverview,
    MonthlyTrendPoint,
    SpendingSummary,
    TransactionsView,
    WeeklyComparison,
)
from finvise.models.session import UserSession
from finvise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORY",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "AIAdvice",
    "Budget",
    "BudgetPeriod",
    "Debt",
    "DebtDraft",
    "DebtPayment",
    "DebtPaymentDraft",
    "DebtStatus",
    "DebtType",
    "GiftDirection",
    "GiftDraft",
    "GiftEventType",
    "GiftRecord",
    "ReceiptUpload",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "derive_debt_status",
    "new_record_id",
    # Summaries and views
    "BudgetSet",
    "BudgetUtilization",
    "CashFlowPoint",
    "CategoryTotal",
    "CounterpartyBalance",
    "DashboardView",
    "DebtDetailView",
    "DebtStats",
    "DebtsView",
    "GiftDetailView",
    "GiftStats",
    "GiftsView",
    "MonthlyOverview",
    "MonthlyTrendPoint",
    "SpendingSummary",
    "TransactionsView",
    "WeeklyComparison",
    # Session
    "UserSession",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
