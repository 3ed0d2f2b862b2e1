"""
Data Models Package

This package contains all Pydantic models used in ReceiptWise.
All data flowing through the system must conform to these schemas.
"""

from receiptwise.models.receipt import (
    Category,
    ExtractedReceiptData,
    ImageAssessment,
    ImageQuality,
    ImageUpload,
    LineItem,
    Receipt,
    ReceiptSource,
    ValidationIssue,
    ValidationResult,
    Wallet,
)
from receiptwise.models.alert import (
    Alert,
    AlertKind,
    AlertSeverity,
    BudgetProgress,
    severity_for,
)
from receiptwise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Receipt models
    "Category",
    "ExtractedReceiptData",
    "ImageAssessment",
    "ImageQuality",
    "ImageUpload",
    "LineItem",
    "Receipt",
    "ReceiptSource",
    "ValidationIssue",
    "ValidationResult",
    "Wallet",
    # Derived view models
    "Alert",
    "AlertKind",
    "AlertSeverity",
    "BudgetProgress",
    "severity_for",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
