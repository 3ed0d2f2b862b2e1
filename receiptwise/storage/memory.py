"""
In-memory storage backends.

One instance per user session. Nothing survives a restart; durable
persistence is out of scope.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from receiptwise.models.audit import AuditEvent
from receiptwise.models.receipt import Receipt, Wallet
from receiptwise.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    ReceiptStorageInterface,
)


class InMemoryReceiptStorage(ReceiptStorageInterface):
    """Receipt collection kept newest first, like the wallet view shows it."""

    def __init__(self, receipts: Optional[list[Receipt]] = None):
        self._receipts: list[Receipt] = []
        self._ids: set[str] = set()
        # Seed in the given order: the first element stays first
        for receipt in reversed(receipts or []):
            self._insert(receipt)

    def _insert(self, receipt: Receipt) -> None:
        if receipt.id in self._ids:
            raise DuplicateError(f"Receipt {receipt.id} already exists")
        self._receipts.insert(0, receipt)
        self._ids.add(receipt.id)

    async def add_receipt(self, receipt: Receipt) -> None:
        self._insert(receipt)

    async def get_receipt(self, receipt_id: str) -> Receipt:
        for receipt in self._receipts:
            if receipt.id == receipt_id:
                return receipt
        raise NotFoundError(f"Receipt {receipt_id} not found")

    async def list_receipts(
        self,
        wallet: Optional[Wallet] = None,
    ) -> list[Receipt]:
        if wallet is None:
            return list(self._receipts)
        return [r for r in self._receipts if r.wallet == wallet]

    async def count(self, wallet: Optional[Wallet] = None) -> int:
        if wallet is None:
            return len(self._receipts)
        return sum(1 for r in self._receipts if r.wallet == wallet)

    async def receipt_exists(
        self,
        vendor: str,
        purchase_date: date,
        total_amount: Decimal,
    ) -> bool:
        vendor_key = vendor.strip().lower()
        return any(
            r.vendor.lower() == vendor_key
            and r.purchase_date == purchase_date
            and r.total_amount == total_amount
            for r in self._receipts
        )

    def snapshot(self) -> list[Receipt]:
        """Synchronous copy of all receipts, newest first."""
        return list(self._receipts)

    def __len__(self) -> int:
        return len(self._receipts)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit trail held in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
