"""
Core Data Models for ReceiptWise

These models define the strict schemas for receipts flowing through the system.
They are designed to:
1. Enforce the receipt invariants at construction time
2. Provide clear validation error messages
3. Be serializable for export and logging
4. Stay immutable once a receipt has been confirmed

DESIGN DECISION: Amounts are Decimal in major currency units (rupees).
A receipt of "2500" is two and a half thousand rupees, never paise.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid1, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Known spending categories.

    Receipts store the category as free text; anything outside this
    set is displayed as OTHER.
    """
    GROCERIES = "Groceries"
    DINING = "Dining"
    TRAVEL = "Travel"
    HEALTH = "Health"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    RENT = "Rent"
    OTHER = "Other"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "Category":
        """Resolve a free-text label, case-insensitively, falling back to OTHER."""
        if label:
            wanted = label.strip().lower()
            for category in cls:
                if category.value.lower() == wanted:
                    return category
        return cls.OTHER


class Wallet(str, Enum):
    """Partition label used to scope which receipts are aggregated together."""
    PERSONAL = "Personal"
    FAMILY = "Family"


class ReceiptSource(str, Enum):
    """How a receipt entered the wallet."""
    IMAGE = "image"
    TEXT = "text"
    MANUAL = "manual"


class ImageQuality(str, Enum):
    """Image quality assessment result."""
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"  # Requires user to retake
    UNUSABLE = "unusable"  # Hard reject


def _parse_purchase_date(value: Any) -> Optional[date]:
    """
    Lenient date parsing shared by receipts and extractions.

    Unparseable values become None so rules that need a date skip the
    record instead of failing.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _new_receipt_id() -> str:
    return uuid1().hex


# =============================================================================
# CORE RECEIPT MODEL
# =============================================================================

class LineItem(BaseModel):
    """A single purchased item on a receipt."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Item name as printed on the receipt"
    )
    price: Decimal = Field(
        ...,
        ge=0,
        description="Item price in rupees"
    )


class Receipt(BaseModel):
    """
    A confirmed receipt in the wallet.

    CRITICAL: Receipts are immutable. The alert engine and budget tracker
    only ever read them.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=_new_receipt_id,
        min_length=1,
        description="Unique, opaque receipt identifier"
    )
    purchase_date: Optional[date] = Field(
        default=None,
        description="Calendar date of purchase; None when it could not be read"
    )
    vendor: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Vendor name, used as an exact-match grouping key"
    )
    total_amount: Decimal = Field(
        ...,
        ge=0,
        description="Total amount in rupees"
    )
    line_items: list[LineItem] = Field(default_factory=list)
    category: str = Field(
        default=Category.OTHER.value,
        description="Spending category (free text tolerated)"
    )
    confidence: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Categorization confidence (provenance only)"
    )
    is_fraudulent: bool = False
    fraudulent_details: str = Field(
        default="",
        max_length=1000,
        description="Why the receipt was flagged"
    )
    wallet: Wallet = Wallet.PERSONAL
    source: ReceiptSource = ReceiptSource.MANUAL
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the receipt was added"
    )

    @field_validator("purchase_date", mode="before")
    @classmethod
    def parse_purchase_date(cls, v: Any) -> Optional[date]:
        return _parse_purchase_date(v)

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> str:
        if isinstance(v, Category):
            return v.value
        if v is None or not str(v).strip():
            return Category.OTHER.value
        return str(v)

    @model_validator(mode="after")
    def validate_fraud_details(self) -> "Receipt":
        """A fraud flag must come with an explanation."""
        if self.is_fraudulent and not self.fraudulent_details:
            raise ValueError("Fraudulent receipts must include fraudulent_details")
        return self

    @property
    def display_category(self) -> Category:
        """Category used for colours, icons and charts."""
        return Category.from_label(self.category)

    @property
    def items_total(self) -> Decimal:
        return sum((item.price for item in self.line_items), Decimal("0"))


class ExtractedReceiptData(BaseModel):
    """
    Data extracted by the model from an image or a text receipt.

    CRITICAL: This is PROPOSED data, NOT verified.
    It MUST go through human confirmation before it becomes a Receipt.
    All fields are optional because extraction might miss them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    extraction_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this extraction attempt"
    )
    extracted_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When extraction was performed"
    )
    source: ReceiptSource = ReceiptSource.IMAGE
    confidence_score: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Overall confidence in extraction (0-1)"
    )

    vendor: Optional[str] = Field(default=None, max_length=200)
    purchase_date: Optional[date] = None
    total_amount: Optional[Decimal] = Field(default=None, ge=0)
    line_items: list[LineItem] = Field(default_factory=list)

    # Raw text for debugging (pasted text or model output)
    raw_text: Optional[str] = Field(
        default=None,
        description="Raw source text for debugging"
    )

    @field_validator("purchase_date", mode="before")
    @classmethod
    def parse_purchase_date(cls, v: Any) -> Optional[date]:
        return _parse_purchase_date(v)

    @property
    def is_empty(self) -> bool:
        return (
            self.total_amount is None
            and not self.vendor
            and self.purchase_date is None
        )


# =============================================================================
# IMAGE MODELS
# =============================================================================

class ImageUpload(BaseModel):
    """Represents an uploaded receipt image before processing."""

    upload_id: UUID = Field(
        default_factory=uuid4,
        description="Unique upload identifier"
    )
    uploaded_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    original_filename: str
    file_size_bytes: int = Field(ge=0)
    mime_type: str

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow image types."""
        allowed = {"image/jpeg", "image/png", "image/webp"}
        if v.lower() not in allowed:
            raise ValueError(f"Unsupported image type: {v}. Allowed: {allowed}")
        return v.lower()


class ImageAssessment(BaseModel):
    """Result of the local image quality check."""

    upload_id: UUID
    quality: ImageQuality
    quality_score: float = Field(ge=0.0, le=1.0)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    issues: list[str] = Field(default_factory=list)

    @property
    def can_proceed(self) -> bool:
        return self.quality in (ImageQuality.GOOD, ImageQuality.ACCEPTABLE)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'future_date', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields)
    Stage 2: Semantic validation (logic checks)
    """

    extraction_id: UUID
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    can_proceed_with_review: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
