"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Extraction confidence
- This catches unreadable photos and garbled text

STAGE 2 - SEMANTIC VALIDATION:
- Future and very old dates
- Absurd amounts
- Line items that don't add up to the total
- Fraud flags without an explanation
- Vendor sanity checks
- Duplicate detection
- This catches logically impossible or suspicious data

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import structlog

from receiptwise.agents import FraudAssessment
from receiptwise.config import AppSettings
from receiptwise.models.receipt import (
    ExtractedReceiptData,
    ValidationIssue,
    ValidationResult,
)
from receiptwise.storage import ReceiptStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class ReceiptValidator:
    """
    Validates extracted receipt data through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (may need storage for duplicate checks)
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        receipt_storage: Optional[ReceiptStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            settings: Thresholds; defaults are used when omitted
            receipt_storage: Storage interface for duplicate checking.
                            If None, duplicate checking is skipped.
        """
        self._settings = settings or AppSettings()
        self._storage = receipt_storage

    def _validate_schema(
        self,
        extracted: ExtractedReceiptData,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if extracted.is_empty:
            issues.append(ValidationIssue(
                field="extraction",
                issue_type="empty",
                message="No meaningful data could be extracted from this receipt",
                severity="error",
                suggested_fix="Please try with a clearer photo or paste the full text",
            ))
        elif extracted.total_amount is None:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="missing",
                message="Total amount is required but was not extracted",
                severity="error",
                suggested_fix="Ensure the total amount is clearly visible in the photo",
            ))

        if not extracted.vendor:
            issues.append(ValidationIssue(
                field="vendor",
                issue_type="missing",
                message="Vendor name was not extracted",
                severity="warning",  # User can enter it manually
                suggested_fix="You'll need to enter the vendor name manually",
            ))

        if extracted.purchase_date is None:
            issues.append(ValidationIssue(
                field="purchase_date",
                issue_type="missing",
                message="Purchase date was not extracted",
                severity="warning",
                suggested_fix="You'll need to enter the purchase date manually",
            ))

        if extracted.confidence_score < self._settings.min_extraction_confidence:
            issues.append(ValidationIssue(
                field="confidence_score",
                issue_type="low_confidence",
                message=f"Extraction confidence is low ({extracted.confidence_score:.0%})",
                severity="warning",
                suggested_fix="Please review all fields carefully",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        extracted: ExtractedReceiptData,
        today: date,
        fraud: Optional[FraudAssessment] = None,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        symbol = self._settings.currency_symbol

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if extracted.purchase_date and extracted.purchase_date > max_future_date:
            issues.append(ValidationIssue(
                field="purchase_date",
                issue_type="future_date",
                message=f"Purchase date ({extracted.purchase_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        # Very old date check (probably misread)
        min_reasonable_date = today - timedelta(days=365 * 2)
        if extracted.purchase_date and extracted.purchase_date < min_reasonable_date:
            issues.append(ValidationIssue(
                field="purchase_date",
                issue_type="suspicious_date",
                message=f"Purchase date ({extracted.purchase_date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date was read correctly",
            ))

        total = extracted.total_amount
        if total is not None and total > self._settings.max_receipt_amount:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="suspicious_value",
                message=f"Amount ({symbol}{total:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if total is not None and total < Decimal("1"):
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="suspicious_value",
                message=f"Amount ({symbol}{total}) seems unusually low",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        # Item sum vs total, 5% tolerance and at least 10 for taxes and rounding
        if total is not None and extracted.line_items:
            items_total = sum(
                (item.price for item in extracted.line_items),
                Decimal("0"),
            )
            diff = abs(total - items_total)
            if diff > items_total * Decimal("0.05") and diff > Decimal("10"):
                issues.append(ValidationIssue(
                    field="line_items",
                    issue_type="inconsistent",
                    message=(
                        f"Items add up to {symbol}{items_total:,.2f} but the total "
                        f"is {symbol}{total:,.2f}"
                    ),
                    severity="warning",
                    suggested_fix="Please verify the items and the total",
                ))

        if fraud is not None and fraud.is_fraudulent:
            if fraud.fraudulent_details.strip():
                issues.append(ValidationIssue(
                    field="is_fraudulent",
                    issue_type="fraud_suspected",
                    message=f"This receipt may be fraudulent: {fraud.fraudulent_details}",
                    severity="warning",
                    suggested_fix="Compare the receipt with your payment records",
                ))
            else:
                issues.append(ValidationIssue(
                    field="is_fraudulent",
                    issue_type="missing",
                    message="Receipt was flagged as fraudulent without an explanation",
                    severity="error",
                    suggested_fix="Add details or clear the fraud flag",
                ))

        # Vendor name should not be mostly numbers/symbols
        if extracted.vendor:
            name = extracted.vendor
            alpha_count = sum(1 for c in name if c.isalpha())
            if alpha_count / len(name) < 0.3:
                issues.append(ValidationIssue(
                    field="vendor",
                    issue_type="suspicious_value",
                    message="Vendor name looks unusual (too many numbers/symbols)",
                    severity="warning",
                    suggested_fix="Please verify the vendor name",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicates(
        self,
        extracted: ExtractedReceiptData,
    ) -> list[ValidationIssue]:
        """Check storage for a receipt with the same vendor, date and total."""
        issues = []

        if self._storage is None:
            return issues

        if (
            not extracted.vendor
            or extracted.purchase_date is None
            or extracted.total_amount is None
        ):
            return issues

        try:
            is_duplicate = await self._storage.receipt_exists(
                vendor=extracted.vendor,
                purchase_date=extracted.purchase_date,
                total_amount=extracted.total_amount,
            )
        except StorageError as e:
            # Don't fail validation due to storage errors
            logger.warning("duplicate_check_failed", error=str(e))
            return issues

        if is_duplicate:
            issues.append(ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message=(
                    f"A receipt from {extracted.vendor} dated "
                    f"{extracted.purchase_date} may already exist"
                ),
                severity="warning",
                suggested_fix="Please verify this isn't a duplicate entry",
            ))

        return issues

    async def validate(
        self,
        extracted: ExtractedReceiptData,
        today: date,
        fraud: Optional[FraudAssessment] = None,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            extracted: The extracted receipt data to validate
            today: Reference date for date checks
            fraud: The fraud assessment for this extraction, if any
            check_duplicates: Whether to check for duplicates (requires storage)

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(extracted)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                extracted, today, fraud
            )
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(extracted))

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        # Review is possible with a total and no blocking errors
        can_proceed = (
            extracted.total_amount is not None
            and not any(issue.severity == "error" for issue in all_issues)
        )

        return ValidationResult(
            extraction_id=extracted.extraction_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            can_proceed_with_review=can_proceed,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show above the confirmation form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! Please review the details below."

        lines = []

        if result.has_errors:
            lines.append("❌ Some required information is missing or wrong:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.can_proceed_with_review:
            lines.append("You can still proceed, but please review carefully.")
        else:
            lines.append("Please fix the issues above before continuing.")

        return "\n".join(lines)
