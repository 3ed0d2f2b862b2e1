"""
Abstract Storage Interface

DESIGN DECISION: Receipts live in memory for the length of a session,
but the flows only talk to this interface. That keeps the business logic
free of storage details and lets tests use a fresh store per case.

The interface is intentionally small: append, fetch, list.
Receipts are never updated or deleted once confirmed.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from receiptwise.models.audit import AuditEvent
from receiptwise.models.receipt import Receipt, Wallet


class ReceiptStorageInterface(ABC):
    """
    Abstract interface for receipt storage operations.
    """

    @abstractmethod
    async def add_receipt(self, receipt: Receipt) -> None:
        """
        Add a confirmed receipt.

        Raises:
            DuplicateError: If a receipt with the same id exists
        """
        pass

    @abstractmethod
    async def get_receipt(self, receipt_id: str) -> Receipt:
        """
        Retrieve a receipt by its id.

        Raises:
            NotFoundError: If no such receipt exists
        """
        pass

    @abstractmethod
    async def list_receipts(
        self,
        wallet: Optional[Wallet] = None,
    ) -> list[Receipt]:
        """
        List receipts, newest first.

        Args:
            wallet: Only return receipts from this wallet (None = all)
        """
        pass

    @abstractmethod
    async def count(self, wallet: Optional[Wallet] = None) -> int:
        """Number of receipts, optionally in one wallet."""
        pass

    @abstractmethod
    async def receipt_exists(
        self,
        vendor: str,
        purchase_date: date,
        total_amount: Decimal,
    ) -> bool:
        """
        Check if a matching receipt already exists (duplicate detection).
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
