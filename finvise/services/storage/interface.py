"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface per collection.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the controller decoupled from the storage implementation

Every operation is scoped by owner id. A row belonging to another owner is
invisible to list calls and untouchable by delete calls.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from finvise.models.finance import (
    Debt,
    DebtDraft,
    DebtPayment,
    DebtPaymentDraft,
    GiftDraft,
    GiftRecord,
    Transaction,
    TransactionDraft,
)


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    Transactions are created and deleted, never edited.
    """

    @abstractmethod
    async def list_transactions(
        self,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        List the owner's transactions, newest first.

        Args:
            owner_id: Owner whose rows are returned
            date_from: Only transactions on or after this date
            date_to: Only transactions on or before this date

        Raises:
            TransportError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def create_transaction(
        self,
        owner_id: str,
        draft: TransactionDraft,
    ) -> Transaction:
        """
        Persist a new transaction.

        Returns:
            The stored record with its assigned id

        Raises:
            TransportError: If the write does not reach the store
            ValidationError: If the store rejects the row
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str, owner_id: str) -> bool:
        """
        Delete a transaction.

        Returns:
            True if a row owned by owner_id was deleted, False otherwise
        """
        pass


class DebtStorageInterface(ABC):
    """
    Abstract interface for debts and their repayment history.
    """

    @abstractmethod
    async def list_debts(self, owner_id: str) -> list[Debt]:
        """List the owner's debts, newest created first."""
        pass

    @abstractmethod
    async def create_debt(self, owner_id: str, draft: DebtDraft) -> Debt:
        """Persist a new debt with nothing paid."""
        pass

    @abstractmethod
    async def delete_debt(self, debt_id: str, owner_id: str) -> bool:
        """Delete a debt. Returns False when no owned row matched."""
        pass

    @abstractmethod
    async def list_payments(self, debt_id: str, owner_id: str) -> list[DebtPayment]:
        """List repayments for one of the owner's debts, newest first."""
        pass

    @abstractmethod
    async def add_payment(
        self,
        owner_id: str,
        debt_id: str,
        draft: DebtPaymentDraft,
    ) -> DebtPayment:
        """
        Record a repayment.

        Appends the payment row and raises the debt's paid amount in the
        same call.

        Raises:
            NotFoundError: If the debt does not exist for this owner
            ValidationError: If the amount exceeds what is still owed
            TransportError: If the store cannot be reached
        """
        pass


class GiftStorageInterface(ABC):
    """
    Abstract interface for gift-money records.
    """

    @abstractmethod
    async def list_gifts(self, owner_id: str) -> list[GiftRecord]:
        """List the owner's gift records, newest event first."""
        pass

    @abstractmethod
    async def create_gift(self, owner_id: str, draft: GiftDraft) -> GiftRecord:
        """Persist a new gift record."""
        pass

    @abstractmethod
    async def delete_gift(self, gift_id: str, owner_id: str) -> bool:
        """Delete a gift record. Returns False when no owned row matched."""
        pass


# =============================================================================
# EXCEPTIONS
# =============================================================================

class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class TransportError(StorageError):
    """The remote store could not be reached or failed after retries."""
    pass


class ValidationError(StorageError):
    """The remote store rejected the row."""
    pass


class NotFoundError(StorageError):
    """Raised when a requested record doesn't exist."""
    pass
