"""
Core Data Models for FinVise

These models define the schemas for every record the application keeps:
transactions, budgets, debts with their payments, and gift-money records.

DESIGN DECISION: Derived debt fields (remaining amount, status) are computed
properties, never stored values. A debt loaded from any source always agrees
with its own paid/original amounts.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


EXPENSE_CATEGORIES = [
    "Food",
    "Transport",
    "Housing",
    "Entertainment",
    "Shopping",
    "Health",
    "Education",
    "Other",
]

INCOME_CATEGORIES = [
    "Salary",
    "Bonus",
    "Investment",
    "Business",
    "Other",
]

DEFAULT_CATEGORY = "Other"


def new_record_id() -> str:
    """Generate an identifier for a new record."""
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class BudgetPeriod(str, Enum):
    """Budget period. Only monthly budgets are evaluated."""
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class DebtType(str, Enum):
    """
    Debt direction.

    RECEIVABLE: someone owes the user.
    PAYABLE: the user owes someone.
    """
    RECEIVABLE = "receivable"
    PAYABLE = "payable"


class DebtStatus(str, Enum):
    """Repayment status, derived from paid vs original amount."""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


class GiftDirection(str, Enum):
    """Gift money flow: GIVEN is an outflow, RECEIVED an inflow."""
    GIVEN = "given"
    RECEIVED = "received"


class GiftEventType(str, Enum):
    """Occasions gift money is recorded for."""
    WEDDING = "wedding"
    BIRTHDAY = "birthday"
    HOUSEWARMING = "housewarming"
    FUNERAL = "funeral"
    BABY = "baby"
    GRADUATION = "graduation"
    OTHER = "other"


def derive_debt_status(original_amount: Decimal, paid_amount: Decimal) -> DebtStatus:
    """
    Status for a debt given what has been repaid.

    pending when nothing is paid, completed once paid reaches original,
    partial in between.
    """
    if paid_amount <= 0:
        return DebtStatus.PENDING
    if paid_amount >= original_amount:
        return DebtStatus.COMPLETED
    return DebtStatus.PARTIAL


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    Fields the user submits for a new transaction.

    The remote store assigns the id and owner. Category labels are kept
    exactly as entered: "Food" and "Food " are two categories.
    """

    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount (positive, single implicit currency)"
    )
    category: str = Field(
        default=DEFAULT_CATEGORY,
        min_length=1,
        max_length=100,
        description="Free-form category label"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    transaction_date: date = Field(
        default_factory=date.today,
        description="Calendar date of the transaction"
    )
    type: TransactionType = Field(
        default=TransactionType.EXPENSE,
    )
    receipt_url: Optional[str] = Field(
        default=None,
        description="Public URL of the receipt image"
    )

    @field_validator('description', mode='before')
    @classmethod
    def strip_description(cls, v):
        return v.strip() if isinstance(v, str) else v


class Transaction(TransactionDraft):
    """
    A persisted transaction.

    Never edited in place: created, then possibly deleted.
    """

    id: str = Field(
        default_factory=new_record_id,
        description="Record ID (server-assigned, or generated for local-only records)"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the record"
    )
    is_local: bool = Field(
        default=False,
        description="True when the record only exists in memory (remote write failed)"
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign of its direction."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """
    Spending limit for one expense category.

    The whole budget set is replaced on save, never patched.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    limit: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Spending limit for the period"
    )
    period: BudgetPeriod = Field(default=BudgetPeriod.MONTHLY)


# =============================================================================
# DEBTS
# =============================================================================

class DebtDraft(BaseModel):
    """Fields the user submits for a new debt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: DebtType
    person_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Counterparty name"
    )
    original_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
    )
    created_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    description: Optional[str] = Field(
        default=None,
        max_length=1000,
    )

    @model_validator(mode='after')
    def validate_dates(self) -> 'DebtDraft':
        """Due date cannot precede the date the debt was created."""
        if self.due_date and self.due_date < self.created_date:
            raise ValueError("Due date cannot be before created date")
        return self


class Debt(BaseModel):
    """
    A receivable or payable debt.

    remaining_amount and status are always derived from original and paid,
    so they cannot drift from their inputs.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    user_id: str = Field(..., min_length=1)
    type: DebtType
    person_name: str = Field(..., min_length=1, max_length=200)
    original_amount: Decimal = Field(..., gt=0, decimal_places=2)
    paid_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    created_date: date
    due_date: Optional[date] = None
    description: Optional[str] = None
    is_local: bool = False

    @computed_field
    @property
    def remaining_amount(self) -> Decimal:
        return self.original_amount - self.paid_amount

    @computed_field
    @property
    def status(self) -> DebtStatus:
        return derive_debt_status(self.original_amount, self.paid_amount)

    @property
    def progress(self) -> float:
        """Repaid share of the original amount, in percent."""
        if self.original_amount <= 0:
            return 0.0
        return float(self.paid_amount / self.original_amount * 100)

    def days_until_due(self, today: Optional[date] = None) -> Optional[int]:
        """Days left until the due date (negative when past), None without one."""
        if self.due_date is None:
            return None
        today = today or date.today()
        return (self.due_date - today).days

    def is_overdue(self, today: Optional[date] = None) -> bool:
        days = self.days_until_due(today)
        return days is not None and days < 0 and self.status != DebtStatus.COMPLETED

    def is_due_soon(self, today: Optional[date] = None) -> bool:
        days = self.days_until_due(today)
        return days is not None and 0 <= days <= 7


class DebtPaymentDraft(BaseModel):
    """Fields the user submits for a repayment."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: date = Field(default_factory=date.today)
    note: Optional[str] = Field(default=None, max_length=500)

    @field_validator('note')
    @classmethod
    def empty_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class DebtPayment(DebtPaymentDraft):
    """A recorded repayment. Append-only."""

    id: str = Field(default_factory=new_record_id)
    debt_id: str = Field(..., min_length=1)


# =============================================================================
# GIFT MONEY
# =============================================================================

class GiftDraft(BaseModel):
    """Fields the user submits for a gift-money record."""
    model_config = ConfigDict(str_strip_whitespace=True)

    direction: GiftDirection = GiftDirection.GIVEN
    person_name: str = Field(..., min_length=1, max_length=200)
    event_type: GiftEventType = GiftEventType.WEDDING
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    event_date: date = Field(default_factory=date.today)
    note: Optional[str] = Field(default=None, max_length=500)

    @field_validator('note')
    @classmethod
    def empty_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class GiftRecord(GiftDraft):
    """A gift-money ledger entry. Append-only."""

    id: str = Field(default_factory=new_record_id)
    user_id: str = Field(..., min_length=1)
    is_local: bool = False


# =============================================================================
# RECEIPTS AND ADVICE
# =============================================================================

class ReceiptUpload(BaseModel):
    """A receipt image picked by the user, before upload."""

    filename: str = Field(..., min_length=1)
    mime_type: str
    size_bytes: int = Field(ge=0)
    content: bytes = Field(repr=False)

    @field_validator('mime_type')
    @classmethod
    def normalize_mime_type(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def extension(self) -> str:
        """File extension without the dot, 'jpg' when the name has none."""
        if "." not in self.filename:
            return "jpg"
        return self.filename.rsplit(".", 1)[-1].lower() or "jpg"


class AIAdvice(BaseModel):
    """Generated advice. Ephemeral, never persisted."""

    summary: str
    tips: list[str] = Field(default_factory=list)
    is_fallback: bool = Field(
        default=False,
        description="True when the fixed fallback text was returned instead of a model answer"
    )
