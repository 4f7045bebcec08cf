"""
Shared fixtures: in-memory storage backends and helpers.

No test talks to Google Sheets, Cloudinary, Gemini or Firebase.
"""

import asyncio
import time
from datetime import date
from decimal import Decimal
from typing import Optional

import gspread
import pytest

from finvise.audit import AuditLogger
from finvise.config import GoogleSheetsSettings
from finvise.controller import FinanceController
from finvise.models.finance import (
    Debt,
    DebtDraft,
    DebtPayment,
    DebtPaymentDraft,
    GiftDraft,
    GiftRecord,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from finvise.models.session import UserSession
from finvise.services.auth import AuthError
from finvise.services.receipts import ReceiptRejectedError
from finvise.services.storage import (
    DebtStorageInterface,
    GiftStorageInterface,
    GoogleSheetsClient,
    LocalCache,
    NotFoundError,
    TransactionStorageInterface,
    ValidationError,
)


def run(coro):
    return asyncio.run(coro)


def make_transaction(
    amount: str,
    type: TransactionType = TransactionType.EXPENSE,
    category: str = "Food",
    on: Optional[date] = None,
    user_id: str = "user-1",
    **kwargs,
) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        type=type,
        category=category,
        transaction_date=on or date(2024, 5, 15),
        user_id=user_id,
        **kwargs,
    )


# =============================================================================
# FAKE GOOGLE SHEETS
# =============================================================================

class FakeWorksheet:
    """
    Just enough of gspread.Worksheet for the storage layer.

    failures maps a method name to an exception raised on every call before
    the method acts. flaky names methods that act, then raise once, like a
    request that reached the server but lost its response.
    """

    def __init__(self, title: str):
        self.title = title
        self.rows: list[list[str]] = []
        self.read_delay = 0.0
        self.failures: dict[str, Exception] = {}
        self.flaky: set[str] = set()

    def _before(self, method: str):
        if method in self.failures:
            raise self.failures[method]

    def _after(self, method: str):
        if method in self.flaky:
            self.flaky.discard(method)
            raise ConnectionError(f"{method}: connection reset")

    def get_all_values(self) -> list[list[str]]:
        self._before("get_all_values")
        if self.read_delay:
            time.sleep(self.read_delay)
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self._before("append_row")
        self.rows.append(["" if v is None else str(v) for v in row])
        self._after("append_row")

    def delete_rows(self, index: int):
        self._before("delete_rows")
        del self.rows[index - 1]
        self._after("delete_rows")

    def update_cell(self, row: int, col: int, value):
        self._before("update_cell")
        self.rows[row - 1][col - 1] = str(value)
        self._after("update_cell")


class FakeSpreadsheet:
    def __init__(self):
        self.worksheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title: str) -> FakeWorksheet:
        if title not in self.worksheets:
            raise gspread.WorksheetNotFound(title)
        return self.worksheets[title]

    def add_worksheet(self, title: str, rows: int, cols: int) -> FakeWorksheet:
        sheet = FakeWorksheet(title)
        self.worksheets[title] = sheet
        return sheet


@pytest.fixture
def sheets_settings(tmp_path):
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    return GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="sheet-id",
    )


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def sheets_client(sheets_settings, spreadsheet):
    return GoogleSheetsClient(settings=sheets_settings, spreadsheet=spreadsheet)


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Sheets calls retry immediately instead of backing off."""
    for method in (
        GoogleSheetsClient.read_rows,
        GoogleSheetsClient._append_once,
        GoogleSheetsClient._delete_once,
        GoogleSheetsClient.update_matching,
    ):
        monkeypatch.setattr(method.retry, "sleep", lambda seconds: None)


# =============================================================================
# IN-MEMORY STORAGE
# =============================================================================

class InMemoryTransactionStorage(TransactionStorageInterface):
    def __init__(self):
        self.records: list[Transaction] = []
        self.fail_with: Optional[Exception] = None
        self.list_gate: Optional[asyncio.Event] = None
        self.deleted: list[str] = []

    async def list_transactions(self, owner_id, date_from=None, date_to=None):
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.fail_with:
            raise self.fail_with
        owned = [t for t in self.records if t.user_id == owner_id]
        return sorted(owned, key=lambda t: t.transaction_date, reverse=True)

    async def create_transaction(self, owner_id, draft: TransactionDraft):
        if self.fail_with:
            raise self.fail_with
        record = Transaction(**draft.model_dump(), user_id=owner_id)
        self.records.append(record)
        return record

    async def delete_transaction(self, transaction_id, owner_id):
        if self.fail_with:
            raise self.fail_with
        for t in self.records:
            if t.id == transaction_id and t.user_id == owner_id:
                self.records.remove(t)
                self.deleted.append(transaction_id)
                return True
        return False


class InMemoryDebtStorage(DebtStorageInterface):
    def __init__(self):
        self.records: list[Debt] = []
        self.payments: list[DebtPayment] = []
        self.fail_with: Optional[Exception] = None

    async def list_debts(self, owner_id):
        if self.fail_with:
            raise self.fail_with
        owned = [d for d in self.records if d.user_id == owner_id]
        return sorted(owned, key=lambda d: d.created_date, reverse=True)

    async def create_debt(self, owner_id, draft: DebtDraft):
        if self.fail_with:
            raise self.fail_with
        record = Debt(**draft.model_dump(), user_id=owner_id)
        self.records.append(record)
        return record

    async def delete_debt(self, debt_id, owner_id):
        if self.fail_with:
            raise self.fail_with
        before = len(self.records)
        self.records = [
            d for d in self.records if not (d.id == debt_id and d.user_id == owner_id)
        ]
        return len(self.records) < before

    async def list_payments(self, debt_id, owner_id):
        if self.fail_with:
            raise self.fail_with
        return [p for p in self.payments if p.debt_id == debt_id]

    async def add_payment(self, owner_id, debt_id, draft: DebtPaymentDraft):
        if self.fail_with:
            raise self.fail_with
        for i, debt in enumerate(self.records):
            if debt.id == debt_id and debt.user_id == owner_id:
                if draft.amount > debt.remaining_amount:
                    raise ValidationError("Payment exceeds remaining amount")
                self.records[i] = debt.model_copy(
                    update={"paid_amount": debt.paid_amount + draft.amount}
                )
                payment = DebtPayment(**draft.model_dump(), debt_id=debt_id)
                self.payments.append(payment)
                return payment
        raise NotFoundError(debt_id)


class InMemoryGiftStorage(GiftStorageInterface):
    def __init__(self):
        self.records: list[GiftRecord] = []
        self.fail_with: Optional[Exception] = None

    async def list_gifts(self, owner_id):
        if self.fail_with:
            raise self.fail_with
        owned = [g for g in self.records if g.user_id == owner_id]
        return sorted(owned, key=lambda g: g.event_date, reverse=True)

    async def create_gift(self, owner_id, draft: GiftDraft):
        if self.fail_with:
            raise self.fail_with
        record = GiftRecord(**draft.model_dump(), user_id=owner_id)
        self.records.append(record)
        return record

    async def delete_gift(self, gift_id, owner_id):
        if self.fail_with:
            raise self.fail_with
        before = len(self.records)
        self.records = [
            g for g in self.records if not (g.id == gift_id and g.user_id == owner_id)
        ]
        return len(self.records) < before


# =============================================================================
# OTHER FAKE SERVICES
# =============================================================================

class FakeAuthService:
    def __init__(self):
        self.accounts = {"ana@example.com": ("secret", "user-1")}

    async def sign_in(self, email, password):
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise AuthError("INVALID_LOGIN_CREDENTIALS")
        return UserSession(user_id=account[1], email=email, id_token="token")

    async def sign_up(self, email, password, display_name=None):
        if email in self.accounts:
            raise AuthError("EMAIL_EXISTS")
        user_id = f"user-{len(self.accounts) + 1}"
        self.accounts[email] = (password, user_id)
        return UserSession(
            user_id=user_id, email=email, id_token="token", display_name=display_name
        )


class FakeReceiptService:
    def __init__(self, url: Optional[str] = "https://cdn.example.com/x/receipts/1_a.jpg"):
        self.url = url
        self.uploaded = []
        self.deleted = []

    def validate_receipt(self, upload):
        if upload.mime_type not in ("image/jpeg", "image/png", "image/webp", "image/heic"):
            raise ReceiptRejectedError(f"Unsupported receipt type {upload.mime_type}")

    async def upload_receipt(self, upload):
        self.uploaded.append(upload)
        return self.url

    async def delete_receipt(self, url):
        self.deleted.append(url)
        return True


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text: str = "", error: Optional[Exception] = None, delay: float = 0):
        self.text = text
        self.error = error
        self.delay = delay
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


# =============================================================================
# CONTROLLER FIXTURES
# =============================================================================

@pytest.fixture
def transaction_storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def debt_storage():
    return InMemoryDebtStorage()


@pytest.fixture
def gift_storage():
    return InMemoryGiftStorage()


@pytest.fixture
def receipt_service():
    return FakeReceiptService()


@pytest.fixture
def cache(tmp_path):
    return LocalCache(cache_dir=str(tmp_path / "cache"))


@pytest.fixture
def controller(transaction_storage, debt_storage, gift_storage, receipt_service, cache):
    return FinanceController(
        transaction_storage=transaction_storage,
        debt_storage=debt_storage,
        gift_storage=gift_storage,
        receipt_service=receipt_service,
        auth_service=FakeAuthService(),
        cache=cache,
        audit_logger=AuditLogger(),
    )


@pytest.fixture
def signed_in(controller):
    """Controller with user-1 signed in."""
    assert run(controller.sign_in("ana@example.com", "secret"))
    return controller
