"""
Audit Models for FinVise

Every remote call outcome and every user-initiated write is recorded as a
structured event. This provides:
1. Traceability of what reached the remote store and what stayed local
2. Debugging information when a hosted service misbehaves
3. A single place where error events are shaped

DESIGN DECISION: Events are emitted to the structured log only.
The remote store holds business records, not logs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    AUTH_FAILED = "auth_failed"

    # Reads
    COLLECTION_LOADED = "collection_loaded"
    COLLECTION_LOAD_FAILED = "collection_load_failed"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"

    # Writes
    RECORD_CREATED = "record_created"
    RECORD_CREATED_LOCALLY = "record_created_locally"
    RECORD_REJECTED = "record_rejected"
    RECORD_DELETED = "record_deleted"
    DELETE_FAILED = "delete_failed"
    PAYMENT_RECORDED = "payment_recorded"
    BUDGETS_SAVED = "budgets_saved"

    # Receipts
    RECEIPT_UPLOADED = "receipt_uploaded"
    RECEIPT_UPLOAD_FAILED = "receipt_upload_failed"
    RECEIPT_REJECTED = "receipt_rejected"

    # Advice
    ADVICE_GENERATED = "advice_generated"
    ADVICE_FALLBACK = "advice_fallback"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'debt', 'gift')"
    )
    entity_id: Optional[str] = None
    owner_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("debt", debt.id, owner_id)
        event = AuditEventBuilder.load_failed("gift", owner_id, str(e))
    """

    @staticmethod
    def signed_in(owner_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_IN,
            owner_id=owner_id,
            description="User signed in",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def signed_out(owner_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            owner_id=owner_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(email: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            description="Authentication failed",
            details={"email": email},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def collection_loaded(entity_type: str, owner_id: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_type,
            owner_id=owner_id,
            description=f"Loaded {count} {entity_type} records",
            details={"count": count},
        )

    @staticmethod
    def load_failed(entity_type: str, owner_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            owner_id=owner_id,
            description=f"Failed to load {entity_type} records, showing empty list",
            error_message=error_message,
        )

    @staticmethod
    def stale_response_discarded(entity_type: str, owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESPONSE_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            owner_id=owner_id,
            description=f"Discarded {entity_type} response for an inactive session",
        )

    @staticmethod
    def record_created(entity_type: str, entity_id: str, owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            description=f"{entity_type.capitalize()} saved",
            is_user_action=True,
        )

    @staticmethod
    def record_created_locally(
        entity_type: str,
        entity_id: str,
        owner_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED_LOCALLY,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            description=f"{entity_type.capitalize()} kept locally, remote write failed",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def record_rejected(entity_type: str, owner_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            owner_id=owner_id,
            description=f"{entity_type.capitalize()} rejected by the remote store",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(entity_type: str, entity_id: str, owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            description=f"{entity_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def delete_failed(
        entity_type: str,
        entity_id: str,
        owner_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            description=f"Failed to delete {entity_type}",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def payment_recorded(debt_id: str, owner_id: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="debt",
            entity_id=debt_id,
            owner_id=owner_id,
            description=f"Payment of {amount} recorded",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budgets_saved(owner_id: Optional[str], count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_SAVED,
            entity_type="budget",
            owner_id=owner_id,
            description=f"Budget set replaced with {count} budgets",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def receipt_uploaded(url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="receipt",
            description="Receipt uploaded",
            details={"url": url},
        )

    @staticmethod
    def receipt_upload_failed(filename: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            description="Receipt upload failed, saving transaction without it",
            details={"filename": filename},
            error_message=error_message,
        )

    @staticmethod
    def receipt_rejected(filename: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            description="Receipt rejected before upload",
            details={"filename": filename},
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def advice_generated(owner_id: Optional[str], tip_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            owner_id=owner_id,
            description="AI advice generated",
            details={"tip_count": tip_count},
        )

    @staticmethod
    def advice_fallback(owner_id: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_FALLBACK,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            description="AI advice unavailable, fallback advice used",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(service: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
