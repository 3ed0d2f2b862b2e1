"""Alert, budget and analytics package."""

from receiptwise.insights.alerts import AlertEngine, AlertRules
from receiptwise.insights.analytics import (
    CategorySpend,
    SpendingSummary,
    filter_by_wallet,
    spending_by_display_category,
    summarize,
    total_spent,
)
from receiptwise.insights.budgets import (
    BudgetBook,
    InvalidBudgetError,
    compute_budget_progress,
    spending_by_category,
)

__all__ = [
    "AlertEngine",
    "AlertRules",
    "BudgetBook",
    "CategorySpend",
    "InvalidBudgetError",
    "SpendingSummary",
    "compute_budget_progress",
    "filter_by_wallet",
    "spending_by_category",
    "spending_by_display_category",
    "summarize",
    "total_spent",
]
