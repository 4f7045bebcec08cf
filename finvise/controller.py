"""
View Controller for FinVise

This module holds the whole application state and defines every user flow:
1. Session (sign in / sign up / sign out)
2. Loading the three remote collections in parallel
3. Writes for transactions, debts, repayments and gift records
4. Budgets (local only) and AI advice
5. Derived views for the presentation layer

DESIGN DECISION: State is an explicit AppState object, mutated only here.
The presentation layer reads it and calls controller methods; it never talks
to storage directly.

WRITE POLICY (same for every entity):
- Remote create succeeds   -> the persisted record is prepended locally
- TransportError           -> a local-only record (is_local=True) is prepended
                              and reconciled by the next load
- ValidationError          -> a notice is shown, nothing is inserted

CRITICAL: A response is applied only if the session that issued the request
is still the active one. Late answers for a previous owner are discarded.
"""

import asyncio
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field

from finvise.agents import FinancialAdvisor
from finvise.analytics import (
    budget_utilization,
    build_budget_set,
    category_breakdown,
    compute_totals,
    counterparty_balance,
    counterparty_history,
    current_month_transactions,
    debt_stats,
    filter_debts,
    filter_gifts,
    gift_stats,
    monthly_overview,
    monthly_trend,
    recent_cash_flow,
    weekly_comparison,
)
from finvise.audit import AuditLogger
from finvise.config import get_settings
from finvise.models.finance import (
    AIAdvice,
    Budget,
    Debt,
    DebtDraft,
    DebtPayment,
    DebtPaymentDraft,
    DebtType,
    GiftDirection,
    GiftDraft,
    GiftRecord,
    ReceiptUpload,
    Transaction,
    TransactionDraft,
)
from finvise.models.session import UserSession
from finvise.models.summary import (
    DashboardView,
    DebtDetailView,
    DebtsView,
    GiftDetailView,
    GiftsView,
    TransactionsView,
)
from finvise.services.auth import AuthError, FirebaseAuthService
from finvise.services.receipts import CloudinaryReceiptService, ReceiptRejectedError
from finvise.services.storage import (
    DebtStorageInterface,
    GiftStorageInterface,
    GoogleSheetsClient,
    GoogleSheetsDebtStorage,
    GoogleSheetsGiftStorage,
    GoogleSheetsTransactionStorage,
    LocalCache,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    TransportError,
    ValidationError,
)


logger = structlog.get_logger(__name__)

R = TypeVar("R", Transaction, Debt, GiftRecord)


# =============================================================================
# STATE
# =============================================================================

class ViewType(str, Enum):
    """Top-level screens."""
    DASHBOARD = "dashboard"
    TRANSACTIONS = "transactions"
    DEBTS = "debts"
    GIFTS = "gifts"


class ModalName(str, Enum):
    """Dialogs that can be opened over the current view."""
    ADD_TRANSACTION = "add_transaction"
    EDIT_BUDGET = "edit_budget"
    ADD_DEBT = "add_debt"
    ADD_GIFT = "add_gift"


class ModalState(BaseModel):
    """Which dialogs are open and which record each detail viewer shows."""

    add_transaction: bool = False
    edit_budget: bool = False
    add_debt: bool = False
    add_gift: bool = False

    selected_transaction_id: Optional[str] = None
    selected_debt_id: Optional[str] = None
    selected_gift_id: Optional[str] = None


class AppState(BaseModel):
    """Everything the presentation layer renders."""

    session: Optional[UserSession] = None
    current_view: ViewType = ViewType.DASHBOARD

    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    gifts: list[GiftRecord] = Field(default_factory=list)
    debt_payments: dict[str, list[DebtPayment]] = Field(default_factory=dict)

    modals: ModalState = Field(default_factory=ModalState)

    ai_advice: Optional[AIAdvice] = None
    is_loading: bool = False
    is_ai_loading: bool = False
    auth_error: Optional[str] = None
    notices: list[str] = Field(default_factory=list)

    @property
    def owner_id(self) -> Optional[str]:
        return self.session.user_id if self.session else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None


# =============================================================================
# CONTROLLER
# =============================================================================

class FinanceController:
    """
    Owns AppState and runs every user flow against the injected services.

    Storage backends are required; receipts, auth, advice and the local cache
    are optional so the controller can run with only what is configured.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        debt_storage: DebtStorageInterface,
        gift_storage: GiftStorageInterface,
        receipt_service: Optional[CloudinaryReceiptService] = None,
        auth_service: Optional[FirebaseAuthService] = None,
        advisor: Optional[FinancialAdvisor] = None,
        cache: Optional[LocalCache] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transaction_storage
        self._debts = debt_storage
        self._gifts = gift_storage
        self._receipts = receipt_service
        self._auth = auth_service
        self._advisor = advisor
        self._cache = cache
        self._audit = audit_logger or AuditLogger()

        self.state = AppState()
        if self._cache is not None:
            # Pre-authentication placeholder; budgets are device-local
            self.state.budgets = self._cache.load_budgets()

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    # =========================================================================
    # NAVIGATION AND DIALOGS
    # =========================================================================

    def set_view(self, view: ViewType) -> None:
        self.state.current_view = ViewType(view)

    def open_modal(self, name: ModalName) -> None:
        setattr(self.state.modals, ModalName(name).value, True)

    def close_modal(self, name: ModalName) -> None:
        setattr(self.state.modals, ModalName(name).value, False)

    def select_transaction(self, transaction_id: Optional[str]) -> None:
        self.state.modals.selected_transaction_id = transaction_id

    def select_debt(self, debt_id: Optional[str]) -> None:
        self.state.modals.selected_debt_id = debt_id

    def select_gift(self, gift_id: Optional[str]) -> None:
        self.state.modals.selected_gift_id = gift_id

    def clear_selection(self) -> None:
        self.state.modals.selected_transaction_id = None
        self.state.modals.selected_debt_id = None
        self.state.modals.selected_gift_id = None

    def notify(self, message: str) -> None:
        self.state.notices.append(message)

    def pop_notices(self) -> list[str]:
        """Return pending notices and clear them."""
        notices, self.state.notices = self.state.notices, []
        return notices

    # =========================================================================
    # SESSION
    # =========================================================================

    def _require_auth(self) -> FirebaseAuthService:
        if self._auth is None:
            raise AuthError("Authentication is not configured")
        return self._auth

    async def _start_session(self, session: UserSession) -> None:
        self._clear_user_data()
        self.state.session = session
        self.state.auth_error = None
        await self._audit.log_signed_in(session.user_id, session.email)
        await self.load_all()

    async def sign_in(self, email: str, password: str) -> bool:
        """
        Sign in and load the user's data.

        On failure the session is cleared and auth_error holds the reason.
        """
        try:
            session = await self._require_auth().sign_in(email, password)
        except AuthError as e:
            self.state.session = None
            self.state.auth_error = str(e)
            await self._audit.log_auth_failed(email, str(e))
            return False

        await self._start_session(session)
        return True

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> bool:
        try:
            session = await self._require_auth().sign_up(email, password, display_name)
        except AuthError as e:
            self.state.session = None
            self.state.auth_error = str(e)
            await self._audit.log_auth_failed(email, str(e))
            return False

        await self._start_session(session)
        return True

    async def restore_session(self, session: UserSession) -> None:
        """Adopt a session kept by the presentation layer and load its data."""
        await self._start_session(session)

    async def sign_out(self) -> None:
        owner_id = self.state.owner_id
        self.state.session = None
        self.state.auth_error = None
        self._clear_user_data()
        await self._audit.log_signed_out(owner_id)

    def _clear_user_data(self) -> None:
        self.state.transactions = []
        self.state.debts = []
        self.state.gifts = []
        self.state.debt_payments = {}
        self.state.ai_advice = None
        self.state.modals = ModalState()
        self.state.current_view = ViewType.DASHBOARD

    # =========================================================================
    # LOADING
    # =========================================================================

    def _is_active(self, owner_id: str) -> bool:
        return self.state.owner_id == owner_id

    async def _fetch(
        self,
        entity_type: str,
        owner_id: str,
        fetch: Callable[[], Awaitable[list]],
    ) -> Optional[list]:
        """
        Run a list call for owner_id.

        Returns the records, [] when the call failed, or None when the
        session changed while waiting (the answer must be discarded).
        """
        try:
            records = await fetch()
        except StorageError as e:
            await self._audit.log_load_failed(entity_type, owner_id, str(e))
            records = []
        else:
            await self._audit.log_collection_loaded(entity_type, owner_id, len(records))

        if not self._is_active(owner_id):
            await self._audit.log_stale_response(entity_type, owner_id)
            return None
        return records

    async def load_transactions(self) -> bool:
        owner_id = self.state.owner_id
        if owner_id is None:
            return False

        records = await self._fetch(
            "transaction", owner_id,
            lambda: self._transactions.list_transactions(owner_id),
        )
        if records is None:
            return False

        self.state.transactions = records
        self._mirror_transactions(owner_id)
        return True

    async def load_debts(self) -> bool:
        owner_id = self.state.owner_id
        if owner_id is None:
            return False

        records = await self._fetch(
            "debt", owner_id, lambda: self._debts.list_debts(owner_id)
        )
        if records is None:
            return False

        self.state.debts = records
        return True

    async def load_gifts(self) -> bool:
        owner_id = self.state.owner_id
        if owner_id is None:
            return False

        records = await self._fetch(
            "gift", owner_id, lambda: self._gifts.list_gifts(owner_id)
        )
        if records is None:
            return False

        self.state.gifts = records
        return True

    async def load_all(self) -> None:
        """
        Load transactions, debts and gift records concurrently.

        A failing collection comes back empty; the others are unaffected.
        """
        if self.state.owner_id is None:
            return

        self.state.is_loading = True
        try:
            await asyncio.gather(
                self.load_transactions(),
                self.load_debts(),
                self.load_gifts(),
            )
        finally:
            self.state.is_loading = False

    def _mirror_transactions(self, owner_id: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.mirror_transactions(owner_id, self.state.transactions)
        except OSError as e:
            self.notify(f"Could not update the local copy of your transactions: {e}")

    # =========================================================================
    # WRITES
    # =========================================================================

    def _owner_or_notice(self) -> Optional[str]:
        owner_id = self.state.owner_id
        if owner_id is None:
            self.notify("Please sign in first.")
        return owner_id

    async def _create(
        self,
        entity_type: str,
        owner_id: str,
        create: Callable[[], Awaitable[R]],
        make_local: Callable[[], R],
    ) -> Optional[R]:
        """Apply the write policy to one remote create."""
        try:
            record = await create()
        except TransportError as e:
            record = make_local()
            await self._audit.log_record_created_locally(
                entity_type, record.id, owner_id, str(e)
            )
            self.notify(
                f"The {entity_type} was saved on this device only and will "
                "disappear on reload if the connection does not recover."
            )
        except (ValidationError, NotFoundError) as e:
            await self._audit.log_record_rejected(entity_type, owner_id, str(e))
            self.notify(f"Could not save the {entity_type}: {e}")
            return None
        else:
            await self._audit.log_record_created(entity_type, record.id, owner_id)

        if not self._is_active(owner_id):
            await self._audit.log_stale_response(entity_type, owner_id)
            return None
        return record

    async def _attach_receipt(
        self,
        draft: TransactionDraft,
        receipt: ReceiptUpload,
    ) -> TransactionDraft:
        """Upload the receipt; on rejection or failure keep the draft as is."""
        if self._receipts is None:
            self.notify("Receipt storage is not configured, saving without the receipt.")
            return draft

        try:
            self._receipts.validate_receipt(receipt)
        except ReceiptRejectedError as e:
            await self._audit.log_receipt_rejected(receipt.filename, str(e))
            self.notify(f"{e}. The transaction was saved without the receipt.")
            return draft

        url = await self._receipts.upload_receipt(receipt)
        if url is None:
            await self._audit.log_receipt_upload_failed(receipt.filename, "upload returned no URL")
            self.notify("The receipt could not be uploaded. The transaction was saved without it.")
            return draft

        await self._audit.log_receipt_uploaded(url)
        return draft.model_copy(update={"receipt_url": url})

    async def add_transaction(
        self,
        draft: TransactionDraft,
        receipt: Optional[ReceiptUpload] = None,
    ) -> Optional[Transaction]:
        owner_id = self._owner_or_notice()
        if owner_id is None:
            return None

        if receipt is not None:
            draft = await self._attach_receipt(draft, receipt)

        record = await self._create(
            "transaction",
            owner_id,
            lambda: self._transactions.create_transaction(owner_id, draft),
            lambda: Transaction(**draft.model_dump(), user_id=owner_id, is_local=True),
        )
        if record is not None:
            self.state.transactions.insert(0, record)
            self._mirror_transactions(owner_id)
        return record

    async def add_debt(self, draft: DebtDraft) -> Optional[Debt]:
        owner_id = self._owner_or_notice()
        if owner_id is None:
            return None

        record = await self._create(
            "debt",
            owner_id,
            lambda: self._debts.create_debt(owner_id, draft),
            lambda: Debt(**draft.model_dump(), user_id=owner_id, is_local=True),
        )
        if record is not None:
            self.state.debts.insert(0, record)
        return record

    async def add_gift(self, draft: GiftDraft) -> Optional[GiftRecord]:
        owner_id = self._owner_or_notice()
        if owner_id is None:
            return None

        record = await self._create(
            "gift",
            owner_id,
            lambda: self._gifts.create_gift(owner_id, draft),
            lambda: GiftRecord(**draft.model_dump(), user_id=owner_id, is_local=True),
        )
        if record is not None:
            self.state.gifts.insert(0, record)
        return record

    # =========================================================================
    # DELETES
    # =========================================================================

    async def _delete(
        self,
        entity_type: str,
        record: R,
        owner_id: str,
        delete: Callable[[], Awaitable[bool]],
    ) -> bool:
        """
        Remote delete, then report whether the record may be removed locally.

        Local-only records never reached the store and are removed directly.
        """
        if record.is_local:
            await self._audit.log_record_deleted(entity_type, record.id, owner_id)
            return True

        try:
            deleted = await delete()
        except StorageError as e:
            await self._audit.log_delete_failed(entity_type, record.id, owner_id, str(e))
            self.notify(f"Could not delete the {entity_type}: {e}")
            return False

        if not deleted:
            # Already gone remotely; dropping it locally matches the store
            await self._audit.log_delete_failed(
                entity_type, record.id, owner_id, "no matching row in the store"
            )
        else:
            await self._audit.log_record_deleted(entity_type, record.id, owner_id)
        return True

    async def delete_transaction(self, transaction_id: str) -> bool:
        owner_id = self._owner_or_notice()
        transaction = self._find(self.state.transactions, transaction_id)
        if owner_id is None or transaction is None:
            return False

        removed = await self._delete(
            "transaction",
            transaction,
            owner_id,
            lambda: self._transactions.delete_transaction(transaction_id, owner_id),
        )
        if not removed:
            return False

        self.state.transactions = [
            t for t in self.state.transactions if t.id != transaction_id
        ]
        if self.state.modals.selected_transaction_id == transaction_id:
            self.state.modals.selected_transaction_id = None
        self._mirror_transactions(owner_id)

        if transaction.receipt_url and self._receipts is not None:
            if not await self._receipts.delete_receipt(transaction.receipt_url):
                await self._audit.log_external_service_error(
                    "cloudinary", f"Receipt not removed: {transaction.receipt_url}"
                )
        return True

    async def delete_debt(self, debt_id: str) -> bool:
        owner_id = self._owner_or_notice()
        debt = self._find(self.state.debts, debt_id)
        if owner_id is None or debt is None:
            return False

        removed = await self._delete(
            "debt", debt, owner_id, lambda: self._debts.delete_debt(debt_id, owner_id)
        )
        if not removed:
            return False

        self.state.debts = [d for d in self.state.debts if d.id != debt_id]
        self.state.debt_payments.pop(debt_id, None)
        if self.state.modals.selected_debt_id == debt_id:
            self.state.modals.selected_debt_id = None
        return True

    async def delete_gift(self, gift_id: str) -> bool:
        owner_id = self._owner_or_notice()
        gift = self._find(self.state.gifts, gift_id)
        if owner_id is None or gift is None:
            return False

        removed = await self._delete(
            "gift", gift, owner_id, lambda: self._gifts.delete_gift(gift_id, owner_id)
        )
        if not removed:
            return False

        self.state.gifts = [g for g in self.state.gifts if g.id != gift_id]
        if self.state.modals.selected_gift_id == gift_id:
            self.state.modals.selected_gift_id = None
        return True

    # =========================================================================
    # DEBT REPAYMENTS
    # =========================================================================

    async def load_debt_payments(self, debt_id: str) -> list[DebtPayment]:
        """Fetch and keep the repayment history of one debt."""
        owner_id = self.state.owner_id
        debt = self._find(self.state.debts, debt_id)
        if owner_id is None or debt is None or debt.is_local:
            return []

        payments = await self._fetch(
            "debt_payment", owner_id,
            lambda: self._debts.list_payments(debt_id, owner_id),
        )
        if payments is None:
            return []

        self.state.debt_payments[debt_id] = payments
        return payments

    async def add_debt_payment(
        self,
        debt_id: str,
        draft: DebtPaymentDraft,
    ) -> Optional[DebtPayment]:
        """
        Record a repayment.

        CRITICAL: 0 < amount <= remaining is checked here before any remote
        call. A payment equal to the remaining amount completes the debt.
        """
        owner_id = self._owner_or_notice()
        debt = self._find(self.state.debts, debt_id)
        if owner_id is None or debt is None:
            return None

        if draft.amount > debt.remaining_amount:
            self.notify(
                f"A payment cannot exceed the remaining amount ({debt.remaining_amount})."
            )
            return None
        if debt.is_local:
            self.notify("This debt is not saved yet. Reload before recording payments.")
            return None

        try:
            payment = await self._debts.add_payment(owner_id, debt_id, draft)
        except StorageError as e:
            await self._audit.log_record_rejected("debt_payment", owner_id, str(e))
            self.notify(f"Could not record the payment: {e}")
            return None

        if not self._is_active(owner_id):
            await self._audit.log_stale_response("debt_payment", owner_id)
            return None

        updated = debt.model_copy(update={"paid_amount": debt.paid_amount + payment.amount})
        self.state.debts = [updated if d.id == debt_id else d for d in self.state.debts]
        self.state.debt_payments.setdefault(debt_id, []).insert(0, payment)
        await self._audit.log_payment_recorded(debt_id, owner_id, str(payment.amount))
        return payment

    # =========================================================================
    # BUDGETS AND ADVICE
    # =========================================================================

    async def save_budgets(self, limits: dict[str, Decimal]) -> list[Budget]:
        """Replace the whole budget set and store it on this device."""
        budgets = build_budget_set(self.state.budgets, limits)
        self.state.budgets = budgets

        if self._cache is not None:
            try:
                self._cache.save_budgets(budgets)
            except OSError as e:
                self.notify(f"Budgets could not be saved on this device: {e}")

        await self._audit.log_budgets_saved(self.state.owner_id, len(budgets))
        return budgets

    async def request_advice(self) -> Optional[AIAdvice]:
        """Ask the advisor about the current transactions. No-op without any."""
        if not self.state.transactions:
            return None
        if self._advisor is None:
            self.notify("AI advice is not configured.")
            return None

        owner_id = self.state.owner_id
        self.state.is_ai_loading = True
        try:
            advice = await self._advisor.get_advice(list(self.state.transactions))
        finally:
            self.state.is_ai_loading = False

        if advice.is_fallback:
            await self._audit.log_advice_fallback(owner_id, advice.summary)
        else:
            await self._audit.log_advice_generated(owner_id, len(advice.tips))

        self.state.ai_advice = advice
        return advice

    # =========================================================================
    # DERIVED VIEWS
    # =========================================================================

    @staticmethod
    def _find(records: list[R], record_id: Optional[str]) -> Optional[R]:
        if record_id is None:
            return None
        return next((r for r in records if r.id == record_id), None)

    def selected_transaction(self) -> Optional[Transaction]:
        return self._find(self.state.transactions, self.state.modals.selected_transaction_id)

    def dashboard(self, today: Optional[date] = None) -> DashboardView:
        transactions = self.state.transactions
        return DashboardView(
            overview=monthly_overview(transactions, today),
            weekly=weekly_comparison(transactions, today),
            budgets=budget_utilization(self.state.budgets, transactions, today),
            trend=monthly_trend(transactions, today),
            categories=category_breakdown(
                current_month_transactions(transactions, today),
                sort_by_value=True,
            ),
        )

    def transactions_view(self) -> TransactionsView:
        transactions = self.state.transactions
        return TransactionsView(
            summary=compute_totals(transactions),
            categories=category_breakdown(transactions),
            cash_flow=recent_cash_flow(transactions),
            transactions=list(transactions),
        )

    def debts_view(self, debt_type: Optional[DebtType] = None) -> DebtsView:
        return DebtsView(
            stats=debt_stats(self.state.debts),
            debts=filter_debts(self.state.debts, debt_type),
        )

    def gifts_view(self, direction: Optional[GiftDirection] = None) -> GiftsView:
        return GiftsView(
            stats=gift_stats(self.state.gifts),
            gifts=filter_gifts(self.state.gifts, direction),
        )

    def debt_detail(self, debt_id: str) -> Optional[DebtDetailView]:
        debt = self._find(self.state.debts, debt_id)
        if debt is None:
            return None
        return DebtDetailView(
            debt=debt,
            payments=list(self.state.debt_payments.get(debt_id, [])),
        )

    def gift_detail(self, gift_id: str) -> Optional[GiftDetailView]:
        gift = self._find(self.state.gifts, gift_id)
        if gift is None:
            return None
        return GiftDetailView(
            gift=gift,
            balance=counterparty_balance(self.state.gifts, gift.person_name),
            history=counterparty_history(self.state.gifts, gift),
        )


# =============================================================================
# FACTORY
# =============================================================================

def create_app_components() -> FinanceController:
    """
    Factory function to create a fully wired controller.

    Sheets storage and auth are required. Receipts and advice are optional:
    when their configuration is missing the controller runs without them.
    """
    settings = get_settings()
    audit_logger = AuditLogger()

    sheets_client = GoogleSheetsClient(settings.google_sheets)

    try:
        receipt_service = CloudinaryReceiptService(settings.cloudinary, settings.app)
    except Exception as e:
        logger.warning("optional_service_unavailable", service="cloudinary", error=str(e))
        receipt_service = None

    try:
        advisor = FinancialAdvisor(settings.gemini, currency=settings.app.currency)
    except Exception as e:
        logger.warning("optional_service_unavailable", service="gemini", error=str(e))
        advisor = None

    return FinanceController(
        transaction_storage=GoogleSheetsTransactionStorage(sheets_client),
        debt_storage=GoogleSheetsDebtStorage(sheets_client),
        gift_storage=GoogleSheetsGiftStorage(sheets_client),
        receipt_service=receipt_service,
        auth_service=FirebaseAuthService(settings.firebase),
        advisor=advisor,
        cache=LocalCache(settings.app.cache_dir),
        audit_logger=audit_logger,
    )
