"""
Tests for the in-memory storage backends.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from receiptwise.models.audit import AuditEvent, AuditEventType
from receiptwise.models.receipt import Receipt, Wallet
from receiptwise.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryReceiptStorage,
    NotFoundError,
)


def _receipt(receipt_id: str, wallet: Wallet = Wallet.PERSONAL, **kwargs) -> Receipt:
    fields = {
        "vendor": "Big Bazaar",
        "total_amount": Decimal("450"),
        "purchase_date": date(2024, 8, 1),
    }
    fields.update(kwargs)
    return Receipt(id=receipt_id, wallet=wallet, **fields)


class TestInMemoryReceiptStorage:

    def test_seed_order_is_kept(self):
        storage = InMemoryReceiptStorage([_receipt("a"), _receipt("b")])
        assert [r.id for r in storage.snapshot()] == ["a", "b"]
        assert len(storage) == 2

    def test_new_receipts_go_first(self):
        storage = InMemoryReceiptStorage([_receipt("a")])
        asyncio.run(storage.add_receipt(_receipt("b")))
        receipts = asyncio.run(storage.list_receipts())
        assert [r.id for r in receipts] == ["b", "a"]

    def test_duplicate_id_is_rejected(self):
        storage = InMemoryReceiptStorage([_receipt("a")])
        with pytest.raises(DuplicateError):
            asyncio.run(storage.add_receipt(_receipt("a")))
        assert len(storage) == 1

    def test_duplicate_seed_is_rejected(self):
        with pytest.raises(DuplicateError):
            InMemoryReceiptStorage([_receipt("a"), _receipt("a")])

    def test_get_receipt(self):
        storage = InMemoryReceiptStorage([_receipt("a"), _receipt("b")])
        assert asyncio.run(storage.get_receipt("b")).id == "b"

    def test_get_missing_receipt(self):
        storage = InMemoryReceiptStorage()
        with pytest.raises(NotFoundError):
            asyncio.run(storage.get_receipt("missing"))

    def test_list_by_wallet(self):
        storage = InMemoryReceiptStorage([
            _receipt("a"),
            _receipt("b", wallet=Wallet.FAMILY),
            _receipt("c"),
        ])
        family = asyncio.run(storage.list_receipts(Wallet.FAMILY))
        personal = asyncio.run(storage.list_receipts(Wallet.PERSONAL))
        assert [r.id for r in family] == ["b"]
        assert [r.id for r in personal] == ["a", "c"]
        assert asyncio.run(storage.count()) == 3
        assert asyncio.run(storage.count(Wallet.FAMILY)) == 1

    def test_list_returns_a_copy(self):
        storage = InMemoryReceiptStorage([_receipt("a")])
        receipts = asyncio.run(storage.list_receipts())
        receipts.clear()
        assert len(storage) == 1

    def test_receipt_exists(self):
        storage = InMemoryReceiptStorage([_receipt("a")])
        assert asyncio.run(storage.receipt_exists(
            "big bazaar", date(2024, 8, 1), Decimal("450")
        )) is True
        assert asyncio.run(storage.receipt_exists(
            "Big Bazaar", date(2024, 8, 2), Decimal("450")
        )) is False
        assert asyncio.run(storage.receipt_exists(
            "Big Bazaar", date(2024, 8, 1), Decimal("451")
        )) is False


class TestInMemoryAuditStorage:

    def test_append_and_query(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        first = AuditEvent(
            event_type=AuditEventType.TEXT_RECEIPT_SUBMITTED,
            description="Text submitted",
            correlation_id=correlation_id,
        )
        second = AuditEvent(
            event_type=AuditEventType.RECEIPT_SAVED,
            description="Receipt saved",
        )
        assert asyncio.run(storage.append_event(first)) is True
        asyncio.run(storage.append_event(second))

        by_correlation = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert by_correlation == [first]

        recent = asyncio.run(storage.get_recent_events(limit=1))
        assert recent == [second]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
