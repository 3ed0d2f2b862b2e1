"""
Storage Package

Abstract interfaces plus the in-memory implementations used per session.
"""

from receiptwise.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    ReceiptStorageInterface,
    StorageError,
)
from receiptwise.storage.memory import (
    InMemoryAuditStorage,
    InMemoryReceiptStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ReceiptStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryReceiptStorage",
]
