"""Receipt image storage package."""

from finvise.services.receipts.cloudinary_service import (
    CloudinaryReceiptService,
    ReceiptError,
    ReceiptRejectedError,
    ReceiptUploadError,
    public_id_from_url,
)

__all__ = [
    "CloudinaryReceiptService",
    "ReceiptError",
    "ReceiptRejectedError",
    "ReceiptUploadError",
    "public_id_from_url",
]
