"""Validation package."""

from receiptwise.validation.validator import ReceiptValidator

__all__ = ["ReceiptValidator"]
