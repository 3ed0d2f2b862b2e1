"""
Audit Models for ReceiptWise

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability from an uploaded image to a saved receipt
2. Debugging information when the model misbehaves
3. A record of budget changes and exports

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ingestion
    RECEIPT_UPLOADED = "receipt_uploaded"
    TEXT_RECEIPT_SUBMITTED = "text_receipt_submitted"
    IMAGE_QUALITY_FAILED = "image_quality_failed"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    VALIDATION_FAILED = "validation_failed"
    FRAUD_FLAGGED = "fraud_flagged"

    # Human confirmation
    USER_CONFIRMED = "user_confirmed"
    USER_REJECTED = "user_rejected"

    # Wallet state
    RECEIPT_SAVED = "receipt_saved"
    BUDGET_UPDATED = "budget_updated"

    # Insights
    ALERTS_GENERATED = "alerts_generated"
    QUERY_ANSWERED = "query_answered"
    QUERY_FAILED = "query_failed"
    TIPS_GENERATED = "tips_generated"
    EXPORT_CREATED = "export_created"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'receipt', 'image', 'budget')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one receipt upload)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

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
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list[str]:
        """
        Flatten to a list of strings for tabular export.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json,
        error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.receipt_uploaded(upload_id, filename, size, cid)
        event = AuditEventBuilder.receipt_saved(receipt_id, vendor, amount, cid)
    """

    @staticmethod
    def receipt_uploaded(
        upload_id: UUID,
        filename: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="image",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description=f"Receipt image uploaded: {filename}",
            details={
                "filename": filename,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def text_receipt_submitted(
        length: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEXT_RECEIPT_SUBMITTED,
            entity_type="text",
            correlation_id=correlation_id,
            description="Text receipt submitted for parsing",
            details={"length": length},
            is_user_action=True,
        )

    @staticmethod
    def image_quality_failed(
        upload_id: UUID,
        quality: str,
        issues: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMAGE_QUALITY_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="image",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description=f"Image quality check failed: {quality}",
            details={
                "quality_assessment": quality,
                "issues": issues,
            },
        )

    @staticmethod
    def extraction_completed(
        extraction_id: UUID,
        source: str,
        confidence: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description=f"Extraction completed with {confidence:.0%} confidence",
            details={
                "source": source,
                "confidence_score": confidence,
            },
        )

    @staticmethod
    def extraction_failed(
        source: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Could not extract receipt data from {source}",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def validation_failed(
        extraction_id: UUID,
        stage: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description=f"{stage.capitalize()} validation failed with {len(issues)} issues",
            details={
                "stage": stage,
                "issues": issues,
            },
        )

    @staticmethod
    def fraud_flagged(
        extraction_id: UUID,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FRAUD_FLAGGED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description="Receipt flagged as possibly fraudulent",
            details={"reason": reason},
        )

    @staticmethod
    def user_confirmed(
        receipt_id: str,
        extraction_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description="User confirmed extracted receipt data",
            details={
                "extraction_id": str(extraction_id),
            },
            is_user_action=True,
        )

    @staticmethod
    def user_rejected(
        extraction_id: UUID,
        reason: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REJECTED,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description="User rejected extracted receipt data",
            details={
                "reason": reason or "No reason provided",
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_saved(
        receipt_id: str,
        vendor: str,
        amount: str,
        wallet: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SAVED,
            entity_type="receipt",
            entity_id=receipt_id,
            correlation_id=correlation_id,
            description=f"Receipt saved: {vendor} - ₹{amount}",
            details={
                "vendor": vendor,
                "amount": amount,
                "wallet": wallet,
            },
        )

    @staticmethod
    def budget_updated(
        category: str,
        old_limit: Optional[str],
        new_limit: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            entity_type="budget",
            entity_id=category,
            description=f"Budget for {category} set to {new_limit or 'none'}",
            details={
                "old_limit": old_limit,
                "new_limit": new_limit,
            },
            is_user_action=True,
        )

    @staticmethod
    def alerts_generated(
        wallet: str,
        receipt_count: int,
        alert_ids: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALERTS_GENERATED,
            severity=AuditSeverity.DEBUG,
            entity_type="wallet",
            entity_id=wallet,
            description=f"{len(alert_ids)} alerts from {receipt_count} receipts",
            details={
                "receipt_count": receipt_count,
                "alert_ids": alert_ids,
            },
        )

    @staticmethod
    def query_answered(
        question: str,
        receipt_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_ANSWERED,
            entity_type="query",
            correlation_id=correlation_id,
            description="Question answered from receipt data",
            details={
                "question": question[:200],
                "receipt_count": receipt_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def query_failed(
        question: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="query",
            correlation_id=correlation_id,
            description="Question could not be answered",
            error_message=error_message,
            details={"question": question[:200]},
        )

    @staticmethod
    def tips_generated(
        tip_count: int,
        receipt_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TIPS_GENERATED,
            entity_type="tips",
            description=f"{tip_count} financial tips generated",
            details={
                "tip_count": tip_count,
                "receipt_count": receipt_count,
            },
        )

    @staticmethod
    def export_created(
        export_format: str,
        receipt_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_CREATED,
            entity_type="export",
            description=f"{export_format.upper()} export of {receipt_count} receipts",
            details={
                "format": export_format,
                "receipt_count": receipt_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
