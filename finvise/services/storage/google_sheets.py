"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted row store because:
1. Users can inspect their own records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No row-level security: owner scoping is enforced here, on every call
- No transactions: a repayment appends the payment row first, then updates
  the debt row, and removes the payment row again if that update fails
- Limited query capabilities: we filter and sort in Python

Every worksheet carries a user_id column. Rows of other owners are never
returned and never deleted.

CRITICAL: Row numbers shift whenever a row is deleted, by us or by anyone
else editing the sheet. Deletes and cell updates never reuse a row number
across retry attempts; each attempt re-reads the sheet and finds its row
again by id and owner.

gspread is synchronous. The async storage methods run their sheet work in a
worker thread so that concurrent loads overlap and retry backoff never
blocks the event loop.
"""

import asyncio
import threading
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, TypeVar

import gspread
import pydantic
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finvise.config import GoogleSheetsSettings, get_settings
from finvise.models.finance import (
    Debt,
    DebtDraft,
    DebtPayment,
    DebtPaymentDraft,
    DebtType,
    GiftDirection,
    GiftDraft,
    GiftEventType,
    GiftRecord,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from finvise.services.storage.interface import (
    DebtStorageInterface,
    GiftStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    TransportError,
    ValidationError,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")

RowMatch = Callable[[dict[str, str]], bool]


# Column mappings, one list per worksheet
TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "transaction_date",
    "type",
    "amount",
    "category",
    "description",
    "receipt_url",
]

DEBT_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "type",
    "person_name",
    "original_amount",
    "paid_amount",
    "created_date",
    "due_date",
    "description",
]

DEBT_PAYMENT_COLUMNS = [
    "id",
    "debt_id",
    "user_id",
    "created_at",
    "amount",
    "payment_date",
    "note",
]

GIFT_COLUMNS = [
    "id",
    "user_id",
    "created_at",
    "direction",
    "person_name",
    "event_type",
    "amount",
    "event_date",
    "note",
]

# Free-form labels are grouped by exact match, so their cells are read untrimmed
UNTRIMMED_COLUMNS = frozenset({"category"})

_remote_retry = retry(
    retry=retry_if_exception_type(TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_values(row: list, columns: list[str]) -> dict[str, str]:
    """Map a raw row to {column: cell}, missing cells read as ''."""
    values = {}
    for index, name in enumerate(columns):
        try:
            cell = "" if row[index] is None else str(row[index])
        except IndexError:
            cell = ""
        values[name] = cell if name in UNTRIMMED_COLUMNS else cell.strip()
    return values


def _owner_match(record_id: str, owner_id: str) -> RowMatch:
    return lambda values: values["id"] == record_id and values["user_id"] == owner_id


def _to_remote_error(e: Exception, action: str) -> StorageError:
    """
    Classify a Sheets failure.

    A 400 from the API means the row itself was refused; everything else is
    treated as a transport problem and is retried.
    """
    if isinstance(e, gspread.exceptions.APIError) and getattr(e, "code", None) == 400:
        return ValidationError(f"Failed to {action}: {e}")
    return TransportError(f"Failed to {action}: {e}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, creates missing worksheets with their header row,
    and provides retry logic for every API call. Every write is safe to
    retry: appends check for their id first, deletes and updates find their
    row again by value.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        """
        Args:
            settings: Sheets settings; read from the environment when None.
            spreadsheet: An already opened spreadsheet. Skips authentication.
        """
        self._settings = settings or get_settings().google_sheets
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._lock = threading.Lock()

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise TransportError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise TransportError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        with self._lock:
            if self._spreadsheet is None:
                client = self.connect()
                try:
                    self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
                except gspread.SpreadsheetNotFound:
                    raise TransportError(
                        f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                    )
                except Exception as e:
                    raise _to_remote_error(e, "open spreadsheet")
            return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        with self._lock:
            if title in self._worksheets:
                return self._worksheets[title]
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
                logger.info("worksheet_created", worksheet=title)
            except Exception as e:
                raise _to_remote_error(e, f"open worksheet {title}")

            self._worksheets[title] = sheet
            return sheet

    def _matching_rows(
        self,
        sheet: gspread.Worksheet,
        columns: list[str],
        match: RowMatch,
    ) -> list[tuple[int, dict[str, str]]]:
        """(sheet row number, values) of the rows matching right now."""
        matches = []
        for sheet_row, raw in enumerate(sheet.get_all_values()[1:], start=2):  # Row 1 is the header
            values = _row_values(raw, columns)
            if values["id"] and match(values):
                matches.append((sheet_row, values))
        return matches

    @_remote_retry
    def read_rows(self, title: str, columns: list[str]) -> list[list]:
        """All data rows of a worksheet, header excluded."""
        try:
            return self.get_worksheet(title, columns).get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise _to_remote_error(e, f"read {title}")

    def append_row(self, title: str, columns: list[str], row: list) -> None:
        """
        Append one record row.

        An append can land on the server and still report a failure. Before
        retrying, the sheet is checked for the row's id so the record is never
        written twice.
        """
        self._append_once(title, columns, row, attempts=[])

    @_remote_retry
    def _append_once(
        self,
        title: str,
        columns: list[str],
        row: list,
        attempts: list,
    ) -> None:
        record_id = row[columns.index("id")]
        try:
            sheet = self.get_worksheet(title, columns)
            if attempts and self._matching_rows(sheet, columns, lambda v: v["id"] == record_id):
                logger.info("append_already_applied", worksheet=title, row_id=record_id)
                return
            attempts.append(record_id)
            sheet.append_row(row, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise _to_remote_error(e, f"append to {title}")

    def delete_matching(self, title: str, columns: list[str], match: RowMatch) -> int:
        """
        Delete every row matching `match`.

        Returns how many distinct records were deleted, counting deletes that
        landed during an attempt that then failed.
        """
        deleted: set[str] = set()
        self._delete_once(title, columns, match, deleted)
        return len(deleted)

    @_remote_retry
    def _delete_once(
        self,
        title: str,
        columns: list[str],
        match: RowMatch,
        deleted: set,
    ) -> None:
        try:
            sheet = self.get_worksheet(title, columns)
            # Bottom-up so earlier row numbers stay valid within this attempt
            for sheet_row, values in reversed(self._matching_rows(sheet, columns, match)):
                deleted.add(values["id"])
                sheet.delete_rows(sheet_row)
        except StorageError:
            raise
        except Exception as e:
            raise _to_remote_error(e, f"delete from {title}")

    @_remote_retry
    def update_matching(
        self,
        title: str,
        columns: list[str],
        match: RowMatch,
        column: str,
        value: str,
    ) -> bool:
        """Set one cell of the first row matching `match`. False when none does."""
        try:
            sheet = self.get_worksheet(title, columns)
            matches = self._matching_rows(sheet, columns, match)
            if not matches:
                return False
            sheet_row, _ = matches[0]
            sheet.update_cell(sheet_row, columns.index(column) + 1, value)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise _to_remote_error(e, f"update {title}")


class _SheetStorage:
    """Shared row handling for the per-collection storages."""

    COLUMNS: list[str] = []

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet_title(self) -> str:
        raise NotImplementedError

    def _owned_rows(self, owner_id: str) -> list[dict[str, str]]:
        """Values of every row owned by owner_id."""
        rows = self._client.read_rows(self._sheet_title(), self.COLUMNS)
        owned = []
        for raw in rows:
            values = _row_values(raw, self.COLUMNS)
            if not values["id"] or values["user_id"] != owner_id:
                continue
            owned.append(values)
        return owned

    def _parse_rows(
        self,
        owned: list[dict[str, str]],
        parse: Callable[[dict[str, str]], T],
        title: Optional[str] = None,
    ) -> list[T]:
        records = []
        for values in owned:
            try:
                records.append(parse(values))
            except (ValueError, InvalidOperation, pydantic.ValidationError) as e:
                logger.warning(
                    "malformed_row_skipped",
                    worksheet=title or self._sheet_title(),
                    row_id=values.get("id"),
                    error=str(e),
                )
        return records

    def _delete_owned(self, record_id: str, owner_id: str) -> bool:
        deleted = self._client.delete_matching(
            self._sheet_title(), self.COLUMNS, _owner_match(record_id, owner_id)
        )
        return deleted > 0


# =============================================================================
# TRANSACTIONS
# =============================================================================

class GoogleSheetsTransactionStorage(_SheetStorage, TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row.
    """

    COLUMNS = TRANSACTION_COLUMNS

    def _sheet_title(self) -> str:
        return self._client.settings.transactions_sheet_name

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        return [
            transaction.id,
            transaction.user_id,
            _now_iso(),
            transaction.transaction_date.isoformat(),
            transaction.type.value,
            str(transaction.amount),
            transaction.category,
            transaction.description,
            transaction.receipt_url or "",
        ]

    @staticmethod
    def _row_to_transaction(values: dict[str, str]) -> Transaction:
        return Transaction(
            id=values["id"],
            user_id=values["user_id"],
            transaction_date=date.fromisoformat(values["transaction_date"]),
            type=TransactionType(values["type"].upper()),
            amount=Decimal(values["amount"]),
            category=values["category"] or "Other",
            description=values["description"],
            receipt_url=values["receipt_url"] or None,
        )

    def _list_transactions(
        self,
        owner_id: str,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> list[Transaction]:
        transactions = self._parse_rows(
            self._owned_rows(owner_id), self._row_to_transaction
        )
        if date_from:
            transactions = [t for t in transactions if t.transaction_date >= date_from]
        if date_to:
            transactions = [t for t in transactions if t.transaction_date <= date_to]

        # Newest first
        transactions.sort(key=lambda t: t.transaction_date, reverse=True)
        return transactions

    async def list_transactions(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        return await asyncio.to_thread(
            self._list_transactions, owner_id, date_from, date_to
        )

    async def create_transaction(
        self,
        owner_id: str,
        draft: TransactionDraft,
    ) -> Transaction:
        try:
            transaction = Transaction(**draft.model_dump(), user_id=owner_id)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid transaction: {e}")

        await asyncio.to_thread(
            self._client.append_row,
            self._sheet_title(),
            self.COLUMNS,
            self._transaction_to_row(transaction),
        )
        return transaction

    async def delete_transaction(self, transaction_id: str, owner_id: str) -> bool:
        return await asyncio.to_thread(self._delete_owned, transaction_id, owner_id)


# =============================================================================
# DEBTS AND PAYMENTS
# =============================================================================

class GoogleSheetsDebtStorage(_SheetStorage, DebtStorageInterface):
    """
    Google Sheets implementation of debt storage.

    Debts live in one worksheet, their repayments in another. The debt row
    stores paid_amount; remaining amount and status are derived on read.
    """

    COLUMNS = DEBT_COLUMNS

    def _sheet_title(self) -> str:
        return self._client.settings.debts_sheet_name

    def _payments_title(self) -> str:
        return self._client.settings.debt_payments_sheet_name

    @staticmethod
    def _debt_to_row(debt: Debt) -> list:
        return [
            debt.id,
            debt.user_id,
            _now_iso(),
            debt.type.value,
            debt.person_name,
            str(debt.original_amount),
            str(debt.paid_amount),
            debt.created_date.isoformat(),
            debt.due_date.isoformat() if debt.due_date else "",
            debt.description or "",
        ]

    @staticmethod
    def _row_to_debt(values: dict[str, str]) -> Debt:
        return Debt(
            id=values["id"],
            user_id=values["user_id"],
            type=DebtType(values["type"]),
            person_name=values["person_name"],
            original_amount=Decimal(values["original_amount"]),
            paid_amount=Decimal(values["paid_amount"] or "0"),
            created_date=date.fromisoformat(values["created_date"]),
            due_date=date.fromisoformat(values["due_date"]) if values["due_date"] else None,
            description=values["description"] or None,
        )

    @staticmethod
    def _payment_to_row(payment: DebtPayment, owner_id: str) -> list:
        return [
            payment.id,
            payment.debt_id,
            owner_id,
            _now_iso(),
            str(payment.amount),
            payment.payment_date.isoformat(),
            payment.note or "",
        ]

    @staticmethod
    def _row_to_payment(values: dict[str, str]) -> DebtPayment:
        return DebtPayment(
            id=values["id"],
            debt_id=values["debt_id"],
            amount=Decimal(values["amount"]),
            payment_date=date.fromisoformat(values["payment_date"]),
            note=values["note"] or None,
        )

    def _list_debts(self, owner_id: str) -> list[Debt]:
        debts = self._parse_rows(self._owned_rows(owner_id), self._row_to_debt)
        debts.sort(key=lambda d: d.created_date, reverse=True)
        return debts

    async def list_debts(self, owner_id: str) -> list[Debt]:
        return await asyncio.to_thread(self._list_debts, owner_id)

    async def create_debt(self, owner_id: str, draft: DebtDraft) -> Debt:
        try:
            debt = Debt(**draft.model_dump(), user_id=owner_id)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid debt: {e}")

        await asyncio.to_thread(
            self._client.append_row,
            self._sheet_title(),
            self.COLUMNS,
            self._debt_to_row(debt),
        )
        return debt

    def _delete_debt(self, debt_id: str, owner_id: str) -> bool:
        deleted = self._delete_owned(debt_id, owner_id)
        if deleted:
            self._client.delete_matching(
                self._payments_title(),
                DEBT_PAYMENT_COLUMNS,
                lambda v: v["debt_id"] == debt_id and v["user_id"] == owner_id,
            )
        return deleted

    async def delete_debt(self, debt_id: str, owner_id: str) -> bool:
        return await asyncio.to_thread(self._delete_debt, debt_id, owner_id)

    def _list_payments(self, debt_id: str, owner_id: str) -> list[DebtPayment]:
        rows = self._client.read_rows(self._payments_title(), DEBT_PAYMENT_COLUMNS)
        owned = []
        for raw in rows:
            values = _row_values(raw, DEBT_PAYMENT_COLUMNS)
            if values["id"] and values["user_id"] == owner_id and values["debt_id"] == debt_id:
                owned.append(values)

        payments = self._parse_rows(owned, self._row_to_payment, self._payments_title())
        payments.sort(key=lambda p: p.payment_date, reverse=True)
        return payments

    async def list_payments(self, debt_id: str, owner_id: str) -> list[DebtPayment]:
        return await asyncio.to_thread(self._list_payments, debt_id, owner_id)

    def _add_payment(
        self,
        owner_id: str,
        debt_id: str,
        draft: DebtPaymentDraft,
    ) -> DebtPayment:
        for values in self._owned_rows(owner_id):
            if values["id"] != debt_id:
                continue
            try:
                debt = self._row_to_debt(values)
            except (ValueError, InvalidOperation, pydantic.ValidationError) as e:
                raise ValidationError(f"Debt row is malformed: {e}")
            break
        else:
            raise NotFoundError(f"Debt not found: {debt_id}")

        if draft.amount > debt.remaining_amount:
            raise ValidationError(
                f"Payment {draft.amount} exceeds remaining amount {debt.remaining_amount}"
            )

        payment = DebtPayment(**draft.model_dump(), debt_id=debt_id)
        self._client.append_row(
            self._payments_title(),
            DEBT_PAYMENT_COLUMNS,
            self._payment_to_row(payment, owner_id),
        )

        try:
            updated = self._client.update_matching(
                self._sheet_title(),
                self.COLUMNS,
                _owner_match(debt_id, owner_id),
                "paid_amount",
                str(debt.paid_amount + payment.amount),
            )
            if not updated:
                raise NotFoundError(f"Debt not found: {debt_id}")
        except StorageError:
            self._discard_payment_row(payment.id, owner_id)
            raise
        return payment

    def _discard_payment_row(self, payment_id: str, owner_id: str) -> None:
        """Remove a payment row whose debt update did not go through."""
        try:
            self._client.delete_matching(
                self._payments_title(),
                DEBT_PAYMENT_COLUMNS,
                _owner_match(payment_id, owner_id),
            )
        except StorageError as e:
            logger.error(
                "orphan_payment_row",
                worksheet=self._payments_title(),
                row_id=payment_id,
                error=str(e),
            )

    async def add_payment(
        self,
        owner_id: str,
        debt_id: str,
        draft: DebtPaymentDraft,
    ) -> DebtPayment:
        """
        Record a repayment against one of the owner's debts.

        CRITICAL: paid_amount may never exceed original_amount. The check runs
        against the row as currently stored, not the caller's copy.

        The payment row is written first. When the debt row cannot be updated
        afterwards, the payment row is removed again and the error is raised,
        so paid_amount always equals the sum of the stored payments.
        """
        return await asyncio.to_thread(self._add_payment, owner_id, debt_id, draft)


# =============================================================================
# GIFT MONEY
# =============================================================================

class GoogleSheetsGiftStorage(_SheetStorage, GiftStorageInterface):
    """
    Google Sheets implementation of gift-money storage.
    """

    COLUMNS = GIFT_COLUMNS

    def _sheet_title(self) -> str:
        return self._client.settings.gifts_sheet_name

    @staticmethod
    def _gift_to_row(gift: GiftRecord) -> list:
        return [
            gift.id,
            gift.user_id,
            _now_iso(),
            gift.direction.value,
            gift.person_name,
            gift.event_type.value,
            str(gift.amount),
            gift.event_date.isoformat(),
            gift.note or "",
        ]

    @staticmethod
    def _row_to_gift(values: dict[str, str]) -> GiftRecord:
        return GiftRecord(
            id=values["id"],
            user_id=values["user_id"],
            direction=GiftDirection(values["direction"]),
            person_name=values["person_name"],
            event_type=GiftEventType(values["event_type"] or "other"),
            amount=Decimal(values["amount"]),
            event_date=date.fromisoformat(values["event_date"]),
            note=values["note"] or None,
        )

    def _list_gifts(self, owner_id: str) -> list[GiftRecord]:
        gifts = self._parse_rows(self._owned_rows(owner_id), self._row_to_gift)
        gifts.sort(key=lambda g: g.event_date, reverse=True)
        return gifts

    async def list_gifts(self, owner_id: str) -> list[GiftRecord]:
        return await asyncio.to_thread(self._list_gifts, owner_id)

    async def create_gift(self, owner_id: str, draft: GiftDraft) -> GiftRecord:
        try:
            gift = GiftRecord(**draft.model_dump(), user_id=owner_id)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid gift record: {e}")

        await asyncio.to_thread(
            self._client.append_row,
            self._sheet_title(),
            self.COLUMNS,
            self._gift_to_row(gift),
        )
        return gift

    async def delete_gift(self, gift_id: str, owner_id: str) -> bool:
        return await asyncio.to_thread(self._delete_owned, gift_id, owner_id)
