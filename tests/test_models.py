"""
Tests for ReceiptWise

Test strategy:
1. Unit tests for individual components (models, rules, validators)
2. Integration tests for flows (with a mocked model)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from receiptwise.categories import CATEGORY_STYLES, style_for
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
from receiptwise.models.receipt import (
    Category,
    ExtractedReceiptData,
    ImageUpload,
    LineItem,
    Receipt,
    ValidationIssue,
    ValidationResult,
    Wallet,
)


class TestReceiptModels:
    """Tests for receipt-related Pydantic models."""

    def test_receipt_creation(self):
        """Test Receipt model creation with defaults."""
        receipt = Receipt(
            vendor="Big Bazaar",
            total_amount=Decimal("1250.50"),
            purchase_date=date(2024, 7, 15),
            category="Groceries",
        )
        assert receipt.vendor == "Big Bazaar"
        assert receipt.wallet == Wallet.PERSONAL
        assert receipt.is_fraudulent is False
        assert receipt.id

    def test_receipt_ids_are_unique(self):
        """Two receipts never share a generated id."""
        a = Receipt(vendor="A", total_amount=Decimal("1"))
        b = Receipt(vendor="A", total_amount=Decimal("1"))
        assert a.id != b.id

    def test_receipt_strips_whitespace(self):
        """Test that whitespace is stripped from vendor name."""
        receipt = Receipt(vendor="  Zomato  ", total_amount=Decimal("450"))
        assert receipt.vendor == "Zomato"

    def test_receipt_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Receipt(vendor="Test", total_amount=Decimal("-100"))

    def test_receipt_is_immutable(self):
        """Confirmed receipts cannot be changed."""
        receipt = Receipt(vendor="Test", total_amount=Decimal("100"))
        with pytest.raises(ValidationError):
            receipt.total_amount = Decimal("200")

    def test_unparseable_date_becomes_none(self):
        """A garbage date is kept as unknown instead of failing."""
        receipt = Receipt(
            vendor="Test",
            total_amount=Decimal("100"),
            purchase_date="not a date",
        )
        assert receipt.purchase_date is None

    def test_iso_date_string_is_parsed(self):
        receipt = Receipt(
            vendor="Test",
            total_amount=Decimal("100"),
            purchase_date="2024-07-15",
        )
        assert receipt.purchase_date == date(2024, 7, 15)

    def test_datetime_is_truncated_to_date(self):
        receipt = Receipt(
            vendor="Test",
            total_amount=Decimal("100"),
            purchase_date=datetime(2024, 7, 15, 18, 30),
        )
        assert receipt.purchase_date == date(2024, 7, 15)

    def test_fraud_flag_requires_details(self):
        """Test that a fraud flag without an explanation is rejected."""
        with pytest.raises(ValidationError, match="fraudulent_details"):
            Receipt(
                vendor="Test",
                total_amount=Decimal("100"),
                is_fraudulent=True,
            )

    def test_category_enum_is_stored_as_label(self):
        receipt = Receipt(
            vendor="Test",
            total_amount=Decimal("100"),
            category=Category.DINING,
        )
        assert receipt.category == "Dining"

    def test_empty_category_defaults_to_other(self):
        receipt = Receipt(vendor="Test", total_amount=Decimal("100"), category="")
        assert receipt.category == "Other"

    def test_free_text_category_is_kept(self):
        """Unknown labels are stored as-is and displayed as Other."""
        receipt = Receipt(vendor="Test", total_amount=Decimal("100"), category="Pets")
        assert receipt.category == "Pets"
        assert receipt.display_category == Category.OTHER

    def test_items_total(self):
        receipt = Receipt(
            vendor="Test",
            total_amount=Decimal("150"),
            line_items=[
                LineItem(name="Milk", price=Decimal("50")),
                LineItem(name="Bread", price=Decimal("100")),
            ],
        )
        assert receipt.items_total == Decimal("150")

    def test_line_item_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            LineItem(name="Milk", price=Decimal("-1"))

    def test_extracted_data_confidence_bounds(self):
        """Test confidence score must be between 0 and 1."""
        with pytest.raises(ValidationError):
            ExtractedReceiptData(confidence_score=1.5)

    def test_extracted_data_is_empty(self):
        assert ExtractedReceiptData().is_empty is True
        assert ExtractedReceiptData(vendor="Zomato").is_empty is False

    def test_image_upload_rejects_non_images(self):
        with pytest.raises(ValidationError, match="Unsupported image type"):
            ImageUpload(
                original_filename="receipt.pdf",
                file_size_bytes=100,
                mime_type="application/pdf",
            )


class TestCategories:
    """Tests for the category enum and presentation table."""

    def test_from_label_is_case_insensitive(self):
        assert Category.from_label("groceries") == Category.GROCERIES
        assert Category.from_label("  DINING ") == Category.DINING

    def test_from_label_falls_back_to_other(self):
        assert Category.from_label("Pets") == Category.OTHER
        assert Category.from_label(None) == Category.OTHER
        assert Category.from_label("") == Category.OTHER

    def test_every_category_has_a_style(self):
        assert set(CATEGORY_STYLES) == set(Category)

    def test_style_for_unknown_label_uses_other(self):
        assert style_for("Pets") == CATEGORY_STYLES[Category.OTHER]
        assert style_for(None) == CATEGORY_STYLES[Category.OTHER]
        assert style_for("Dining") == CATEGORY_STYLES[Category.DINING]


class TestAlertModels:
    """Tests for Alert and BudgetProgress."""

    def test_severity_is_a_function_of_kind(self):
        assert severity_for(AlertKind.FRAUD) == AlertSeverity.DESTRUCTIVE
        assert severity_for(AlertKind.RETURN_WINDOW) == AlertSeverity.WARNING
        assert severity_for(AlertKind.SPENDING_SPIKE) == AlertSeverity.WARNING
        assert severity_for(AlertKind.BUDGET_OVERAGE) == AlertSeverity.WARNING
        assert severity_for(AlertKind.RECURRING_VENDOR) == AlertSeverity.INFO
        assert severity_for(AlertKind.LOYALTY_REMINDER) == AlertSeverity.INFO

    def test_alert_severity_is_computed(self):
        alert = Alert(
            id="fraud-alert",
            kind=AlertKind.FRAUD,
            title="Potential Fraud Detected",
            description="One receipt",
        )
        assert alert.severity == AlertSeverity.DESTRUCTIVE
        assert alert.model_dump()["severity"] == AlertSeverity.DESTRUCTIVE

    def test_budget_progress_without_limit(self):
        progress = BudgetProgress(
            category="Pets",
            spent=Decimal("300"),
            limit=None,
            percentage=0.0,
            is_over_budget=False,
        )
        assert progress.has_budget is False
        assert progress.status == "unbudgeted"
        assert progress.limit_label == "No budget set"
        assert progress.remaining is None

    def test_budget_progress_over(self):
        progress = BudgetProgress(
            category="Dining",
            spent=Decimal("5200"),
            limit=Decimal("5000"),
            percentage=104.0,
            is_over_budget=True,
        )
        assert progress.status == "over"
        assert progress.overage == Decimal("200")
        assert progress.remaining == Decimal("0")

    def test_budget_progress_warning_band(self):
        progress = BudgetProgress(
            category="Dining",
            spent=Decimal("4000"),
            limit=Decimal("5000"),
            percentage=80.0,
            is_over_budget=False,
        )
        assert progress.status == "warning"
        assert progress.overage == Decimal("0")
        assert progress.remaining == Decimal("1000")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            description="Test image uploaded",
        )
        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_SAVED,
            description="Receipt saved successfully",
            details={"vendor": "Zomato", "amount": "450"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "receipt_saved"
        assert log_dict["details"]["vendor"] == "Zomato"

    def test_audit_event_to_row(self):
        """Test conversion to a flat row."""
        event = AuditEvent(
            event_type=AuditEventType.USER_CONFIRMED,
            description="User confirmed receipt",
            is_user_action=True,
        )
        row = event.to_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "user_confirmed"  # event_type
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_receipt_uploaded(self):
        """Test AuditEventBuilder.receipt_uploaded."""
        correlation_id = uuid4()
        upload_id = uuid4()

        event = AuditEventBuilder.receipt_uploaded(
            upload_id=upload_id,
            filename="receipt.jpg",
            file_size=1024,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.entity_id == str(upload_id)
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_user_confirmed(self):
        """Test AuditEventBuilder.user_confirmed."""
        extraction_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.user_confirmed(
            receipt_id="abc123",
            extraction_id=extraction_id,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.USER_CONFIRMED
        assert event.entity_id == "abc123"
        assert event.is_user_action is True

    def test_alerts_generated_is_debug(self):
        event = AuditEventBuilder.alerts_generated(
            wallet="Personal",
            receipt_count=3,
            alert_ids=["fraud-alert"],
        )
        assert event.severity == AuditSeverity.DEBUG
        assert event.details["alert_ids"] == ["fraud-alert"]


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            extraction_id=uuid4(),
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            can_proceed_with_review=False,
            issues=[
                ValidationIssue(
                    field="total_amount",
                    issue_type="missing",
                    message="Total amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            extraction_id=uuid4(),
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            can_proceed_with_review=True,
            issues=[
                ValidationIssue(
                    field="purchase_date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
