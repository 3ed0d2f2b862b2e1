"""
Tests for the audit logger.
"""

import asyncio
import pytest
from decimal import Decimal

from receiptwise.audit import AuditLogger, create_correlation_id
from receiptwise.models.audit import AuditEvent, AuditEventType, AuditSeverity
from receiptwise.storage import InMemoryAuditStorage


def _event(event_type):
    return AuditEvent(event_type=event_type, description="test event")


class _FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("disk full")


class TestAuditLogger:

    def test_events_reach_storage(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        asyncio.run(logger.log_text_submitted(length=42, correlation_id=correlation_id))
        asyncio.run(logger.log_receipt_saved(
            receipt_id="abc",
            vendor="Zomato",
            amount="450",
            wallet="Personal",
            correlation_id=correlation_id,
        ))

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.event_type for e in events] == [
            AuditEventType.TEXT_RECEIPT_SUBMITTED,
            AuditEventType.RECEIPT_SAVED,
        ]

    def test_without_storage_succeeds(self):
        logger = AuditLogger()
        assert asyncio.run(logger.log(_event(AuditEventType.EXPORT_CREATED))) is True

    def test_storage_failure_is_swallowed(self):
        logger = AuditLogger(_FailingAuditStorage())
        assert asyncio.run(logger.log(_event(AuditEventType.EXPORT_CREATED))) is False

    def test_budget_update_records_strings(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        asyncio.run(logger.log_budget_updated("Dining", Decimal("4000"), Decimal("3000")))
        event = asyncio.run(storage.get_recent_events(limit=1))[0]
        assert event.event_type == AuditEventType.BUDGET_UPDATED
        assert event.details["old_limit"] == "4000"
        assert event.details["new_limit"] == "3000"

    def test_error_severity(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        asyncio.run(logger.log_error("ImageUploadError", "File is too large"))
        event = asyncio.run(storage.get_recent_events(limit=1))[0]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
