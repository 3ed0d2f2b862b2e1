"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability from upload to saved receipt
2. Debugging capability when the model misbehaves
3. A history of budget changes and exports

The audit logger:
- Is async so flows can await it alongside model calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from receiptwise.models.audit import AuditEvent, AuditEventBuilder
from receiptwise.storage import AuditStorageInterface


# Configure structlog for local logging
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
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for the audit trail.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_receipt_uploaded(
        self,
        upload_id: UUID,
        filename: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_uploaded(
            upload_id=upload_id,
            filename=filename,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    async def log_text_submitted(
        self,
        length: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.text_receipt_submitted(
            length=length,
            correlation_id=correlation_id,
        ))

    async def log_image_quality_failed(
        self,
        upload_id: UUID,
        quality: str,
        issues: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.image_quality_failed(
            upload_id=upload_id,
            quality=quality,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_extraction_completed(
        self,
        extraction_id: UUID,
        source: str,
        confidence: float,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            extraction_id=extraction_id,
            source=source,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    async def log_extraction_failed(
        self,
        source: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        extraction_id: UUID,
        stage: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            extraction_id=extraction_id,
            stage=stage,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_fraud_flagged(
        self,
        extraction_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.fraud_flagged(
            extraction_id=extraction_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_user_confirmed(
        self,
        receipt_id: str,
        extraction_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.user_confirmed(
            receipt_id=receipt_id,
            extraction_id=extraction_id,
            correlation_id=correlation_id,
        ))

    async def log_user_rejected(
        self,
        extraction_id: UUID,
        reason: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.user_rejected(
            extraction_id=extraction_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_receipt_saved(
        self,
        receipt_id: str,
        vendor: str,
        amount: str,
        wallet: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_saved(
            receipt_id=receipt_id,
            vendor=vendor,
            amount=amount,
            wallet=wallet,
            correlation_id=correlation_id,
        ))

    async def log_budget_updated(
        self,
        category: str,
        old_limit: Optional[Decimal],
        new_limit: Optional[Decimal],
    ) -> None:
        await self.log(AuditEventBuilder.budget_updated(
            category=category,
            old_limit=str(old_limit) if old_limit is not None else None,
            new_limit=str(new_limit) if new_limit is not None else None,
        ))

    async def log_alerts_generated(
        self,
        wallet: str,
        receipt_count: int,
        alert_ids: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.alerts_generated(
            wallet=wallet,
            receipt_count=receipt_count,
            alert_ids=alert_ids,
        ))

    async def log_query_answered(
        self,
        question: str,
        receipt_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.query_answered(
            question=question,
            receipt_count=receipt_count,
            correlation_id=correlation_id,
        ))

    async def log_query_failed(
        self,
        question: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.query_failed(
            question=question,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_tips_generated(
        self,
        tip_count: int,
        receipt_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.tips_generated(
            tip_count=tip_count,
            receipt_count=receipt_count,
        ))

    async def log_export_created(
        self,
        export_format: str,
        receipt_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.export_created(
            export_format=export_format,
            receipt_count=receipt_count,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., receipt upload).
    Pass it through all subsequent operations.
    """
    return uuid4()
