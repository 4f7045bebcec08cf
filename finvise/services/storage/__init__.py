"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; budgets and the transaction mirror live
in a local JSON cache.
"""

from finvise.services.storage.interface import (
    DebtStorageInterface,
    GiftStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    TransportError,
    ValidationError,
)
from finvise.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDebtStorage,
    GoogleSheetsGiftStorage,
    GoogleSheetsTransactionStorage,
)
from finvise.services.storage.local_cache import LocalCache

__all__ = [
    # Interfaces
    "DebtStorageInterface",
    "GiftStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageError",
    "TransportError",
    "ValidationError",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsDebtStorage",
    "GoogleSheetsGiftStorage",
    "GoogleSheetsTransactionStorage",
    # Local cache
    "LocalCache",
]
