"""
Main Orchestrator for ReceiptWise

This module ties together all the components and defines the
end-to-end flows for:
1. Receipt upload (image → quality check → extract → categorise + fraud
   check → validate → confirm → save), and pasted text receipts
2. Dashboard (wallet receipts → alerts, budget progress, analytics)
3. Assistant (question → answer from the wallet's receipts, tips)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No receipt is stored without human confirmation
- Alerts and budgets are computed, never generated by the model
- Every step is audited

Flows own no session state. The receipt store and the budget book are
passed in by the caller (the Streamlit session).
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple, Optional, Union
from uuid import UUID

from PIL import Image
from pydantic import BaseModel

from receiptwise.agents import (
    APOLOGY_MESSAGE,
    CategorySuggestion,
    ExtractionFailedError,
    FinancialTip,
    FraudAssessment,
    InsightsAgent,
    ModelUnavailableError,
    ReceiptExtractionAgent,
    create_gemini_model,
)
from receiptwise.audit import AuditLogger, create_correlation_id
from receiptwise.config import Settings, get_settings
from receiptwise.export import export_csv, export_pdf
from receiptwise.insights import (
    AlertEngine,
    AlertRules,
    BudgetBook,
    CategorySpend,
    SpendingSummary,
    spending_by_display_category,
    summarize,
)
from receiptwise.models.alert import Alert, BudgetProgress
from receiptwise.models.receipt import (
    ExtractedReceiptData,
    ImageAssessment,
    ImageUpload,
    LineItem,
    Receipt,
    ValidationResult,
    Wallet,
)
from receiptwise.services import ImageUploadError, ReceiptImageService
from receiptwise.storage import (
    InMemoryAuditStorage,
    InMemoryReceiptStorage,
    ReceiptStorageInterface,
)
from receiptwise.validation import ReceiptValidator


class ReceiptReview(BaseModel):
    """Everything the user needs to see before confirming a receipt."""

    extracted: ExtractedReceiptData
    suggestion: CategorySuggestion
    fraud: FraudAssessment
    validation: ValidationResult
    message: str


class DashboardView(BaseModel):
    """Derived state for one wallet on one day."""

    wallet: Optional[Wallet]
    receipts: list[Receipt]
    alerts: list[Alert]
    budget_progress: list[BudgetProgress]
    summary: SpendingSummary
    category_spend: list[CategorySpend]


class ReceiptUploadFlow:
    """
    Orchestrates getting a receipt into the wallet.

    Flow:
    1. Upload → validate type/size, quality check
    2. Extract → model reads the image (or pasted text)
    3. Enrich → category suggestion and fraud check, concurrently
    4. Validate → two-stage validation
    5. Review → present to user (PAUSE - require confirmation)
    6. Confirm → user explicitly approves (may edit fields)
    7. Save → add to the receipt store

    Human confirmation (step 6) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        extraction_agent: ReceiptExtractionAgent,
        receipt_storage: ReceiptStorageInterface,
        image_service: Optional[ReceiptImageService] = None,
        validator: Optional[ReceiptValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = extraction_agent
        self._receipt_storage = receipt_storage
        self._image_service = image_service or ReceiptImageService()
        self._validator = validator or ReceiptValidator(receipt_storage=receipt_storage)
        self._audit_logger = audit_logger

    async def process_image(
        self,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ImageUpload, ImageAssessment, Optional[Image.Image], str]:
        """
        Validate and quality-check an uploaded photo.

        Returns:
            (upload, assessment, prepared_image, message)

        prepared_image is None when the user should retake the photo.

        Raises:
            ImageUploadError: Unsupported, oversized or unreadable file
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            upload = self._image_service.validate_upload(
                filename=filename,
                file_size=len(image_bytes),
                mime_type=mime_type,
            )
            img = self._image_service.open(image_bytes)
        except ImageUploadError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="ImageUploadError",
                    error_message=str(e),
                    details={"filename": filename, "mime_type": mime_type},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_receipt_uploaded(
                upload_id=upload.upload_id,
                filename=upload.original_filename,
                file_size=upload.file_size_bytes,
                correlation_id=correlation_id,
            )

        assessment = self._image_service.assess_quality(img, upload.upload_id)

        if not assessment.can_proceed:
            if self._audit_logger:
                await self._audit_logger.log_image_quality_failed(
                    upload_id=upload.upload_id,
                    quality=assessment.quality.value,
                    issues=assessment.issues,
                    correlation_id=correlation_id,
                )
            issues = "\n".join(f"• {issue}" for issue in assessment.issues)
            message = f"❌ This photo is hard to read. Please retake it.\n{issues}"
            return upload, assessment, None, message

        if assessment.issues:
            message = "⚠️ Photo accepted, but: " + "; ".join(assessment.issues)
        else:
            message = "✅ Photo looks good."
        return upload, assessment, self._image_service.prepare_for_model(img), message

    async def extract_from_image(
        self,
        image: Image.Image,
        today: date,
        correlation_id: Optional[UUID] = None,
    ) -> ReceiptReview:
        """
        Read a prepared image and build a review.

        Raises:
            ExtractionFailedError: If the model could not read the receipt
        """
        correlation_id = correlation_id or create_correlation_id()
        extracted = await self._run_extraction(
            self._agent.extract_from_image(image),
            source="image",
            correlation_id=correlation_id,
        )
        return await self._review(extracted, today, correlation_id)

    async def import_text(
        self,
        text: str,
        today: date,
        correlation_id: Optional[UUID] = None,
    ) -> ReceiptReview:
        """
        Parse a pasted SMS or email receipt and build a review.

        Raises:
            ExtractionFailedError: If the text could not be parsed
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_text_submitted(
                length=len(text or ""),
                correlation_id=correlation_id,
            )

        extracted = await self._run_extraction(
            self._agent.parse_text(text, today),
            source="text",
            correlation_id=correlation_id,
        )
        return await self._review(extracted, today, correlation_id)

    async def _run_extraction(
        self,
        call,
        source: str,
        correlation_id: UUID,
    ) -> ExtractedReceiptData:
        try:
            extracted = await call
        except ExtractionFailedError as e:
            if self._audit_logger:
                if isinstance(e, ModelUnavailableError):
                    await self._audit_logger.log_external_service_error(
                        service="gemini",
                        error_message=str(e.__cause__ or e),
                        correlation_id=correlation_id,
                    )
                await self._audit_logger.log_extraction_failed(
                    source=source,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_extraction_completed(
                extraction_id=extracted.extraction_id,
                source=source,
                confidence=extracted.confidence_score,
                correlation_id=correlation_id,
            )
        return extracted

    async def _review(
        self,
        extracted: ExtractedReceiptData,
        today: date,
        correlation_id: UUID,
    ) -> ReceiptReview:
        # Categorisation and fraud detection are independent
        suggestion, fraud = await asyncio.gather(
            self._agent.categorize(extracted),
            self._agent.detect_fraud(extracted),
        )

        if fraud.is_fraudulent and self._audit_logger:
            await self._audit_logger.log_fraud_flagged(
                extraction_id=extracted.extraction_id,
                reason=fraud.fraudulent_details,
                correlation_id=correlation_id,
            )

        validation = await self._validator.validate(extracted, today, fraud=fraud)
        message = self._validator.get_user_friendly_summary(validation)

        if self._audit_logger and not validation.is_valid:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in validation.issues
            ]
            stage = "schema" if not validation.schema_valid else "semantic"
            await self._audit_logger.log_validation_failed(
                extraction_id=extracted.extraction_id,
                stage=stage,
                issues=issues,
                correlation_id=correlation_id,
            )

        return ReceiptReview(
            extracted=extracted,
            suggestion=suggestion,
            fraud=fraud,
            validation=validation,
            message=message,
        )

    async def confirm_and_save(
        self,
        review: ReceiptReview,
        vendor: str,
        total_amount: Decimal,
        purchase_date: Optional[date],
        category: str,
        wallet: Wallet,
        line_items: Optional[list[LineItem]] = None,
        is_fraudulent: Optional[bool] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Receipt:
        """
        Confirm and save the receipt.

        CRITICAL: This is called ONLY after explicit user confirmation.
        The user may have edited any field; their values win.
        """
        correlation_id = correlation_id or create_correlation_id()
        extracted = review.extracted

        flagged = review.fraud.is_fraudulent if is_fraudulent is None else is_fraudulent
        details = ""
        if flagged:
            details = review.fraud.fraudulent_details or "Marked as suspicious by the user"

        receipt = Receipt(
            vendor=vendor,
            total_amount=total_amount,
            purchase_date=purchase_date,
            category=category,
            confidence=review.suggestion.confidence,
            line_items=extracted.line_items if line_items is None else line_items,
            is_fraudulent=flagged,
            fraudulent_details=details,
            wallet=wallet,
            source=extracted.source,
        )

        if self._audit_logger:
            await self._audit_logger.log_user_confirmed(
                receipt_id=receipt.id,
                extraction_id=extracted.extraction_id,
                correlation_id=correlation_id,
            )

        await self._receipt_storage.add_receipt(receipt)

        if self._audit_logger:
            await self._audit_logger.log_receipt_saved(
                receipt_id=receipt.id,
                vendor=receipt.vendor,
                amount=str(receipt.total_amount),
                wallet=receipt.wallet.value,
                correlation_id=correlation_id,
            )

        return receipt

    async def reject_extraction(
        self,
        review: ReceiptReview,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Record that the user discarded the extraction."""
        correlation_id = correlation_id or create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_user_rejected(
                extraction_id=review.extracted.extraction_id,
                reason=reason,
                correlation_id=correlation_id,
            )


class DashboardFlow:
    """
    Derives everything the wallet pages show.

    The alert engine and budget tracker are pure; this flow only fetches
    the wallet's receipts, calls them, and audits the result.
    """

    def __init__(
        self,
        receipt_storage: ReceiptStorageInterface,
        alert_engine: Optional[AlertEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._receipt_storage = receipt_storage
        self._alert_engine = alert_engine or AlertEngine()
        self._audit_logger = audit_logger

    async def build(
        self,
        wallet: Optional[Wallet],
        today: date,
        budget_book: BudgetBook,
    ) -> DashboardView:
        """Compute alerts, budget progress and analytics for one wallet."""
        receipts = await self._receipt_storage.list_receipts(wallet)
        budgets = budget_book.as_dict()
        alerts = self._alert_engine.evaluate(receipts, today, budgets=budgets)

        if self._audit_logger:
            await self._audit_logger.log_alerts_generated(
                wallet=wallet.value if wallet else "All",
                receipt_count=len(receipts),
                alert_ids=[alert.id for alert in alerts],
            )

        return DashboardView(
            wallet=wallet,
            receipts=receipts,
            alerts=alerts,
            budget_progress=budget_book.progress(receipts),
            summary=summarize(receipts),
            category_spend=spending_by_display_category(receipts),
        )

    async def update_budget(
        self,
        budget_book: BudgetBook,
        category: str,
        limit: Union[Decimal, int, float, str],
    ) -> Optional[Decimal]:
        """
        Set a category limit and audit the change.

        Raises:
            InvalidBudgetError: If the limit is negative or not a number
        """
        previous = budget_book.set_budget(category, limit)

        if self._audit_logger:
            await self._audit_logger.log_budget_updated(
                category=category.strip(),
                old_limit=previous,
                new_limit=budget_book.get(category.strip()),
            )
        return previous

    async def export(
        self,
        wallet: Optional[Wallet],
        export_format: str,
        today: date,
    ) -> Union[str, bytes]:
        """
        Export the wallet's receipts as "csv" (text) or "pdf" (bytes).

        Raises:
            ValueError: For any other format
        """
        receipts = await self._receipt_storage.list_receipts(wallet)
        export_format = export_format.lower()

        if export_format == "csv":
            content: Union[str, bytes] = export_csv(receipts)
        elif export_format == "pdf":
            label = wallet.value if wallet else "All"
            content = export_pdf(
                receipts,
                title=f"ReceiptWise - {label} Wallet",
                generated_on=today,
            )
        else:
            raise ValueError(f"Unsupported export format: {export_format}")

        if self._audit_logger:
            await self._audit_logger.log_export_created(
                export_format=export_format,
                receipt_count=len(receipts),
            )
        return content


class AssistantFlow:
    """
    Question answering and tips over the active wallet.

    Both operations are advisory: they never raise to the UI.
    """

    def __init__(
        self,
        insights_agent: InsightsAgent,
        receipt_storage: ReceiptStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = insights_agent
        self._receipt_storage = receipt_storage
        self._audit_logger = audit_logger

    async def ask(
        self,
        question: str,
        wallet: Optional[Wallet],
        today: date,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        correlation_id = correlation_id or create_correlation_id()
        receipts = await self._receipt_storage.list_receipts(wallet)

        answer = await self._agent.answer_question(question, receipts, today)

        if self._audit_logger:
            if answer == APOLOGY_MESSAGE:
                await self._audit_logger.log_query_failed(
                    question=question,
                    error_message="No answer from the model",
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_query_answered(
                    question=question,
                    receipt_count=len(receipts),
                    correlation_id=correlation_id,
                )
        return answer

    async def tips(self, wallet: Optional[Wallet]) -> list[FinancialTip]:
        receipts = await self._receipt_storage.list_receipts(wallet)
        tips = await self._agent.generate_tips(receipts)

        if self._audit_logger:
            await self._audit_logger.log_tips_generated(
                tip_count=len(tips),
                receipt_count=len(receipts),
            )
        return tips


class AppComponents(NamedTuple):
    upload_flow: ReceiptUploadFlow
    dashboard_flow: DashboardFlow
    assistant_flow: AssistantFlow
    receipt_storage: InMemoryReceiptStorage
    audit_storage: InMemoryAuditStorage
    budget_book: BudgetBook


def create_app_components(
    settings: Optional[Settings] = None,
    model: Any = None,
    receipts: Optional[list[Receipt]] = None,
) -> AppComponents:
    """
    Factory function to create all application components for one session.

    Args:
        settings: Root settings; get_settings() when omitted
        model: Gemini model (or a test double). Built from the Gemini
               settings when omitted, which requires GEMINI_API_KEY.
        receipts: Receipts to seed the store with, newest first

    Returns:
        AppComponents with fresh, session-owned store and budget book
    """
    settings = settings or get_settings()
    app_settings = settings.app

    if model is None:
        model = create_gemini_model(settings.gemini)

    receipt_storage = InMemoryReceiptStorage(receipts)
    audit_storage = InMemoryAuditStorage()
    audit_logger = AuditLogger(audit_storage)

    alert_engine = AlertEngine(
        rules=AlertRules.from_settings(settings.alerts),
        currency_symbol=app_settings.currency_symbol,
    )

    upload_flow = ReceiptUploadFlow(
        extraction_agent=ReceiptExtractionAgent(model),
        receipt_storage=receipt_storage,
        image_service=ReceiptImageService(app_settings),
        validator=ReceiptValidator(app_settings, receipt_storage),
        audit_logger=audit_logger,
    )

    dashboard_flow = DashboardFlow(
        receipt_storage=receipt_storage,
        alert_engine=alert_engine,
        audit_logger=audit_logger,
    )

    assistant_flow = AssistantFlow(
        insights_agent=InsightsAgent(model),
        receipt_storage=receipt_storage,
        audit_logger=audit_logger,
    )

    return AppComponents(
        upload_flow=upload_flow,
        dashboard_flow=dashboard_flow,
        assistant_flow=assistant_flow,
        receipt_storage=receipt_storage,
        audit_storage=audit_storage,
        budget_book=BudgetBook(app_settings.default_budgets),
    )
