"""
Receipt Storage using Cloudinary

DESIGN DECISION: Receipt images are stored as-is in a Cloudinary folder and
only their public URL is kept on the transaction row. The image is never
processed.

This service handles:
1. Client-side checks on type and size before any upload
2. Upload under a unique, time-prefixed public id
3. Removal of the image when its transaction is deleted

CRITICAL: A failed receipt upload never blocks saving the transaction.
upload_receipt() reports failure by returning None.

Cloudinary calls are blocking; they run in a worker thread so the event loop
keeps serving other loads during an upload and its retries.
"""

import asyncio
import time
from typing import Optional
from uuid import uuid4

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from finvise.config import AppSettings, CloudinarySettings, get_settings
from finvise.models.finance import ReceiptUpload


logger = structlog.get_logger(__name__)


class ReceiptError(Exception):
    """Base exception for receipt handling."""
    pass


class ReceiptRejectedError(ReceiptError):
    """The file was refused before upload (type or size)."""
    pass


class ReceiptUploadError(ReceiptError):
    """Cloudinary did not accept the upload."""
    pass


def public_id_from_url(url: str, folder: str = "receipts") -> Optional[str]:
    """
    Recover the Cloudinary public id from a receipt URL.

    https://res.cloudinary.com/demo/image/upload/v1/receipts/1700_ab.jpg
    gives "receipts/1700_ab". Returns None when the URL has no folder segment.
    """
    marker = f"/{folder}/"
    if not url or marker not in url:
        return None
    name = url.split(marker, 1)[1].split("?", 1)[0]
    if not name:
        return None
    stem = name.rsplit(".", 1)[0] if "." in name else name
    return f"{folder}/{stem}" if stem else None


class CloudinaryReceiptService:
    """
    Service for storing receipt images in Cloudinary.

    Flow:
    1. validate_receipt() checks MIME type and size
    2. upload_receipt() stores the file, returns its public URL or None
    3. delete_receipt() removes it again, best effort
    """

    def __init__(
        self,
        settings: Optional[CloudinarySettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().cloudinary
        self._app_settings = app_settings or get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _generate_public_id(self) -> str:
        """
        Unique id inside the receipts folder.

        Format: {epoch_millis}_{uuid}
        """
        return f"{int(time.time() * 1000)}_{uuid4()}"

    def validate_receipt(self, upload: ReceiptUpload) -> None:
        """
        Raises:
            ReceiptRejectedError: Unsupported type or file too large
        """
        accepted = self._app_settings.supported_receipt_types_list
        if upload.mime_type not in accepted:
            raise ReceiptRejectedError(
                f"Unsupported receipt type {upload.mime_type}. "
                f"Accepted: {', '.join(accepted)}"
            )

        max_bytes = self._app_settings.max_receipt_size_bytes
        if upload.size_bytes > max_bytes:
            raise ReceiptRejectedError(
                f"Receipt is too large ({upload.size_bytes / 1024 / 1024:.1f} MB). "
                f"Maximum is {self._app_settings.max_receipt_size_mb} MB"
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload(self, upload: ReceiptUpload) -> str:
        self._configure()
        try:
            result = cloudinary.uploader.upload(
                upload.content,
                public_id=self._generate_public_id(),
                folder=self._settings.receipts_folder,
                format=upload.extension,
                resource_type="image",
            )
        except cloudinary.exceptions.Error as e:
            raise ReceiptUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise ReceiptUploadError(f"Failed to upload receipt: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise ReceiptUploadError("No URL returned from Cloudinary")
        return url

    async def upload_receipt(self, upload: ReceiptUpload) -> Optional[str]:
        """
        Store a receipt image.

        Returns:
            The public URL, or None when validation or upload failed
        """
        try:
            self.validate_receipt(upload)
            return await asyncio.to_thread(self._upload, upload)
        except ReceiptError as e:
            logger.warning("receipt_upload_failed", filename=upload.filename, error=str(e))
            return None

    async def delete_receipt(self, url: str) -> bool:
        """
        Remove a stored receipt by its public URL.

        Returns False for URLs outside the receipts folder and on any failure.
        """
        public_id = public_id_from_url(url, self._settings.receipts_folder)
        if public_id is None:
            logger.warning("receipt_url_unparseable", url=url)
            return False

        self._configure()
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.destroy, public_id, resource_type="image"
            )
        except Exception as e:
            logger.warning("receipt_delete_failed", public_id=public_id, error=str(e))
            return False
        return result.get("result") == "ok"
