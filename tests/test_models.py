"""
Tests for FinVise

Test strategy:
1. Unit tests for individual components (models, aggregations)
2. Flow tests for the controller (with in-memory backends)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal

from finvise.models.finance import (
    Budget,
    Debt,
    DebtDraft,
    DebtPaymentDraft,
    DebtStatus,
    DebtType,
    GiftDraft,
    GiftEventType,
    ReceiptUpload,
    Transaction,
    TransactionDraft,
    TransactionType,
    derive_debt_status,
)
from finvise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finvise.models.session import UserSession


def make_debt(original="1000", paid="0", due=None, **kwargs) -> Debt:
    return Debt(
        user_id="user-1",
        type=DebtType.RECEIVABLE,
        person_name="Minh",
        original_amount=Decimal(original),
        paid_amount=Decimal(paid),
        created_date=date(2024, 5, 1),
        due_date=due,
        **kwargs,
    )


class TestTransactionModels:
    """Tests for transaction models."""

    def test_draft_defaults(self):
        """A draft only needs an amount."""
        draft = TransactionDraft(amount=Decimal("50000"))
        assert draft.category == "Other"
        assert draft.type == TransactionType.EXPENSE
        assert draft.description == ""
        assert draft.receipt_url is None

    def test_draft_strips_description_only(self):
        """Descriptions are trimmed; category labels are kept as entered."""
        draft = TransactionDraft(
            amount=Decimal("10"), category="Food ", description="  lunch  "
        )
        assert draft.description == "lunch"
        assert draft.category == "Food "

    def test_draft_rejects_non_positive_amount(self):
        """Amounts must be strictly positive."""
        with pytest.raises(ValueError):
            TransactionDraft(amount=Decimal("0"))
        with pytest.raises(ValueError):
            TransactionDraft(amount=Decimal("-5"))

    def test_transaction_requires_owner(self):
        """A persisted transaction always has a user id."""
        with pytest.raises(ValueError):
            Transaction(amount=Decimal("10"), user_id="")

    def test_signed_amount(self):
        """Income is positive, expense negative."""
        income = Transaction(amount=Decimal("10"), type=TransactionType.INCOME, user_id="u")
        expense = Transaction(amount=Decimal("10"), type=TransactionType.EXPENSE, user_id="u")
        assert income.signed_amount == Decimal("10")
        assert expense.signed_amount == Decimal("-10")

    def test_transaction_ids_are_unique(self):
        """Each new record gets its own id."""
        a = Transaction(amount=Decimal("1"), user_id="u")
        b = Transaction(amount=Decimal("1"), user_id="u")
        assert a.id != b.id
        assert a.is_local is False


class TestBudgetModel:
    """Tests for budgets."""

    def test_budget_defaults_to_monthly(self):
        """Budgets are monthly unless stated otherwise."""
        budget = Budget(category="Food", limit=Decimal("500"))
        assert budget.period.value == "monthly"

    def test_budget_rejects_zero_limit(self):
        """A limit of zero is not a budget."""
        with pytest.raises(ValueError):
            Budget(category="Food", limit=Decimal("0"))


class TestDebtModels:
    """Tests for debts and their derived fields."""

    def test_remaining_amount_is_derived(self):
        """remaining = original - paid."""
        debt = make_debt(original="1000", paid="300")
        assert debt.remaining_amount == Decimal("700")

    @pytest.mark.parametrize("paid,status", [
        ("0", DebtStatus.PENDING),
        ("1", DebtStatus.PARTIAL),
        ("999.99", DebtStatus.PARTIAL),
        ("1000", DebtStatus.COMPLETED),
    ])
    def test_status_is_derived(self, paid, status):
        """Status follows paid vs original."""
        assert make_debt(original="1000", paid=paid).status == status

    def test_derive_debt_status_overpaid_is_completed(self):
        """Anything at or above the original amount is completed."""
        assert derive_debt_status(Decimal("100"), Decimal("150")) == DebtStatus.COMPLETED

    def test_derived_fields_are_serialized(self):
        """Computed fields appear in model_dump."""
        data = make_debt(original="1000", paid="250").model_dump()
        assert data["remaining_amount"] == Decimal("750")
        assert data["status"] == DebtStatus.PARTIAL

    def test_progress(self):
        """Progress is paid over original in percent."""
        assert make_debt(original="1000", paid="250").progress == 25.0

    def test_due_date_helpers(self):
        """Overdue and due-soon flags depend on the reference date."""
        debt = make_debt(due=date(2024, 6, 10))
        assert debt.days_until_due(date(2024, 6, 5)) == 5
        assert debt.is_due_soon(date(2024, 6, 5))
        assert not debt.is_overdue(date(2024, 6, 5))
        assert debt.is_overdue(date(2024, 6, 11))
        assert not debt.is_due_soon(date(2024, 6, 11))

    def test_completed_debt_is_never_overdue(self):
        """A fully repaid debt past its due date is not overdue."""
        debt = make_debt(paid="1000", due=date(2024, 6, 10))
        assert not debt.is_overdue(date(2024, 7, 1))

    def test_no_due_date(self):
        """Without a due date there is nothing to count down."""
        debt = make_debt()
        assert debt.days_until_due(date(2024, 6, 1)) is None
        assert not debt.is_overdue(date(2024, 6, 1))

    def test_debt_draft_date_validation(self):
        """Due date cannot precede the creation date."""
        with pytest.raises(ValueError, match="Due date cannot be before created date"):
            DebtDraft(
                type=DebtType.PAYABLE,
                person_name="Lan",
                original_amount=Decimal("100"),
                created_date=date(2024, 5, 10),
                due_date=date(2024, 5, 1),
            )

    def test_payment_draft_empty_note_is_none(self):
        """Blank notes are stored as None."""
        draft = DebtPaymentDraft(amount=Decimal("10"), note="   ")
        assert draft.note is None


class TestGiftAndReceiptModels:
    """Tests for gift records and receipt uploads."""

    def test_gift_draft_defaults(self):
        """Gifts default to given, for a wedding."""
        draft = GiftDraft(person_name="Hoa", amount=Decimal("500000"))
        assert draft.direction.value == "given"
        assert draft.event_type == GiftEventType.WEDDING

    def test_gift_event_types(self):
        """All supported occasions exist."""
        assert {e.value for e in GiftEventType} == {
            "wedding", "birthday", "housewarming", "funeral",
            "baby", "graduation", "other",
        }

    def test_receipt_extension(self):
        """The extension comes from the filename, jpg when missing."""
        upload = ReceiptUpload(filename="Bill.PNG", mime_type="IMAGE/PNG", size_bytes=3, content=b"abc")
        assert upload.extension == "png"
        assert upload.mime_type == "image/png"
        bare = ReceiptUpload(filename="scan", mime_type="image/jpeg", size_bytes=3, content=b"abc")
        assert bare.extension == "jpg"

    def test_receipt_content_hidden_from_repr(self):
        """Raw bytes do not show up in logs."""
        upload = ReceiptUpload(filename="a.jpg", mime_type="image/jpeg", size_bytes=3, content=b"xyz")
        assert "xyz" not in repr(upload)


class TestSessionModel:
    """Tests for the user session."""

    def test_initial(self):
        session = UserSession(user_id="u1", email="ana@example.com")
        assert session.initial == "A"

    def test_tokens_hidden_from_repr(self):
        session = UserSession(user_id="u1", email="a@b.c", id_token="very-secret")
        assert "very-secret" not in repr(session)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            description="Transaction saved",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.record_created("debt", "d-1", "user-1")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "record_created"
        assert log_dict["entity_type"] == "debt"
        assert log_dict["entity_id"] == "d-1"
        assert log_dict["owner_id"] == "user-1"
        assert log_dict["is_user_action"] is True

    def test_builder_local_fallback_is_warning(self):
        """Records kept only locally are flagged as warnings."""
        event = AuditEventBuilder.record_created_locally("gift", "g-1", "user-1", "timeout")
        assert event.event_type == AuditEventType.RECORD_CREATED_LOCALLY
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "timeout"

    def test_builder_load_failed_is_error(self):
        """A failed load is an error event."""
        event = AuditEventBuilder.load_failed("transaction", "user-1", "503")
        assert event.severity == AuditSeverity.ERROR
        assert "transaction" in event.description
