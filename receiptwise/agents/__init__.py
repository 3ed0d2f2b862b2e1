"""AI Agents package."""

from receiptwise.agents.ai_agents import (
    APOLOGY_MESSAGE,
    AgentError,
    CategorySuggestion,
    ExtractionFailedError,
    FinancialTip,
    FraudAssessment,
    InsightsAgent,
    ModelUnavailableError,
    ReceiptExtractionAgent,
    create_gemini_model,
)

__all__ = [
    "APOLOGY_MESSAGE",
    "AgentError",
    "CategorySuggestion",
    "ExtractionFailedError",
    "FinancialTip",
    "FraudAssessment",
    "InsightsAgent",
    "ModelUnavailableError",
    "ReceiptExtractionAgent",
    "create_gemini_model",
]
