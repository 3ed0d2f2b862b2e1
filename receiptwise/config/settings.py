"""
Configuration Management for ReceiptWise

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, but nothing reads
it implicitly. Components receive the settings object (or a rules object
derived from it) from their caller, so tests can pass fixed values.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AlertSettings(BaseSettings):
    """Thresholds used by the smart alert rules."""

    model_config = SettingsConfigDict(
        env_prefix="ALERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    high_spend_threshold: Decimal = Field(
        default=Decimal("2000"),
        ge=0,
        description="Purchases above this amount get a return-window reminder"
    )
    return_window_days: int = Field(
        default=30,
        ge=1,
        description="Days after purchase during which a return is assumed possible"
    )
    return_reminder_days: int = Field(
        default=7,
        ge=1,
        description="Remind when this many days or fewer remain in the window"
    )
    frequent_vendor_threshold: int = Field(
        default=3,
        ge=2,
        description="Visits to one vendor before it counts as recurring"
    )
    spike_multiplier: Decimal = Field(
        default=Decimal("5"),
        gt=0,
        description="A purchase above average * multiplier is a spike"
    )
    budget_warning_ratio: Decimal = Field(
        default=Decimal("0.8"),
        gt=0,
        le=1,
        description="Share of a budget after which a near-limit alert fires"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )
    max_image_dimension: int = Field(
        default=2048,
        ge=512,
        description="Longest side of an image sent to the model"
    )

    # Quality thresholds
    min_image_quality_score: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Minimum image quality score to proceed"
    )
    min_extraction_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Extractions below this confidence get a warning"
    )

    # Validation thresholds
    max_receipt_amount: Decimal = Field(
        default=Decimal("1000000"),
        description="Maximum reasonable receipt amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        description="How many days in the future a receipt date can be"
    )

    # Presentation
    currency_symbol: str = Field(
        default="₹",
        description="Symbol used when formatting amounts"
    )

    # Budgets a new session starts with
    default_budgets: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "Groceries": Decimal("8000"),
            "Dining": Decimal("4000"),
            "Shopping": Decimal("5000"),
            "Travel": Decimal("3000"),
            "Utilities": Decimal("2000"),
        },
        description="Initial per-category budget limits"
    )

    @field_validator("default_budgets")
    @classmethod
    def validate_default_budgets(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Budget limits can't be negative."""
        for category, limit in v.items():
            if limit < 0:
                raise ValueError(f"Default budget for {category} cannot be negative")
        return v

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the app runs without a Gemini key

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def alerts(self) -> AlertSettings:
        return AlertSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry for each failure.
    """
    results = {}
    settings = get_settings()

    for name in ("gemini", "alerts", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
