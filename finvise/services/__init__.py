"""Services package."""

from finvise.services.auth import AuthError, FirebaseAuthService
from finvise.services.receipts import (
    CloudinaryReceiptService,
    ReceiptError,
    ReceiptRejectedError,
    ReceiptUploadError,
)
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

__all__ = [
    # Auth
    "AuthError",
    "FirebaseAuthService",
    # Receipts
    "CloudinaryReceiptService",
    "ReceiptError",
    "ReceiptRejectedError",
    "ReceiptUploadError",
    # Storage services
    "DebtStorageInterface",
    "GiftStorageInterface",
    "GoogleSheetsClient",
    "GoogleSheetsDebtStorage",
    "GoogleSheetsGiftStorage",
    "GoogleSheetsTransactionStorage",
    "LocalCache",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
    "TransportError",
    "ValidationError",
]
