"""
Audit Logger

DESIGN DECISION: Every remote call outcome and user-initiated write is logged
as a typed AuditEvent through structlog. This provides:
1. Traceability of local-only records and failed deletes
2. Debugging capability when a hosted service misbehaves
3. A recent-activity list the settings page can show

The audit logger:
- Is async so it can be awaited alongside the operations it records
- Never raises into callers
- Keeps the last events in memory only; nothing is persisted remotely
"""

import logging
from collections import deque
from typing import Optional

import structlog

from finvise.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(debug: bool = False) -> None:
    """
    Configure structlog on top of stdlib logging.

    JSON lines with ISO timestamps; DEBUG level in debug mode, INFO otherwise.
    """
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Each log_* helper builds an event with AuditEventBuilder and emits it.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("finvise.audit")
        self._recent: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._recent))

    async def log(self, event: AuditEvent) -> None:
        """Record an event locally and emit it to the structured log."""
        self._recent.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not break the user action being logged
            logging.getLogger(__name__).error("audit emit failed: %s", e)

    # =========================================================================
    # SESSION
    # =========================================================================

    async def log_signed_in(self, owner_id: str, email: str) -> None:
        await self.log(AuditEventBuilder.signed_in(owner_id, email))

    async def log_signed_out(self, owner_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.signed_out(owner_id))

    async def log_auth_failed(self, email: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.auth_failed(email, error_message))

    # =========================================================================
    # READS
    # =========================================================================

    async def log_collection_loaded(self, entity_type: str, owner_id: str, count: int) -> None:
        await self.log(AuditEventBuilder.collection_loaded(entity_type, owner_id, count))

    async def log_load_failed(self, entity_type: str, owner_id: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.load_failed(entity_type, owner_id, error_message))

    async def log_stale_response(self, entity_type: str, owner_id: str) -> None:
        await self.log(AuditEventBuilder.stale_response_discarded(entity_type, owner_id))

    # =========================================================================
    # WRITES
    # =========================================================================

    async def log_record_created(self, entity_type: str, entity_id: str, owner_id: str) -> None:
        await self.log(AuditEventBuilder.record_created(entity_type, entity_id, owner_id))

    async def log_record_created_locally(
        self,
        entity_type: str,
        entity_id: str,
        owner_id: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.record_created_locally(
            entity_type, entity_id, owner_id, error_message
        ))

    async def log_record_rejected(self, entity_type: str, owner_id: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.record_rejected(entity_type, owner_id, error_message))

    async def log_record_deleted(self, entity_type: str, entity_id: str, owner_id: str) -> None:
        await self.log(AuditEventBuilder.record_deleted(entity_type, entity_id, owner_id))

    async def log_delete_failed(
        self,
        entity_type: str,
        entity_id: str,
        owner_id: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.delete_failed(
            entity_type, entity_id, owner_id, error_message
        ))

    async def log_payment_recorded(self, debt_id: str, owner_id: str, amount: str) -> None:
        await self.log(AuditEventBuilder.payment_recorded(debt_id, owner_id, amount))

    async def log_budgets_saved(self, owner_id: Optional[str], count: int) -> None:
        await self.log(AuditEventBuilder.budgets_saved(owner_id, count))

    # =========================================================================
    # RECEIPTS AND ADVICE
    # =========================================================================

    async def log_receipt_uploaded(self, url: str) -> None:
        await self.log(AuditEventBuilder.receipt_uploaded(url))

    async def log_receipt_upload_failed(self, filename: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.receipt_upload_failed(filename, error_message))

    async def log_receipt_rejected(self, filename: str, reason: str) -> None:
        await self.log(AuditEventBuilder.receipt_rejected(filename, reason))

    async def log_advice_generated(self, owner_id: Optional[str], tip_count: int) -> None:
        await self.log(AuditEventBuilder.advice_generated(owner_id, tip_count))

    async def log_advice_fallback(self, owner_id: Optional[str], error_message: str) -> None:
        await self.log(AuditEventBuilder.advice_fallback(owner_id, error_message))

    async def log_external_service_error(self, service: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.external_service_error(service, error_message))
