"""
Derived view models: smart alerts and budget progress.

These are recomputed from the receipt collection on every change and
never persisted.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class AlertKind(str, Enum):
    """Which rule produced an alert."""
    FRAUD = "fraud"
    RETURN_WINDOW = "return_window"
    RECURRING_VENDOR = "recurring_vendor"
    SPENDING_SPIKE = "spending_spike"
    BUDGET_OVERAGE = "budget_overage"
    LOYALTY_REMINDER = "loyalty_reminder"


class AlertSeverity(str, Enum):
    """Styling tag for an alert."""
    DESTRUCTIVE = "destructive"
    WARNING = "warning"
    INFO = "info"


_SEVERITY_BY_KIND = {
    AlertKind.FRAUD: AlertSeverity.DESTRUCTIVE,
    AlertKind.RETURN_WINDOW: AlertSeverity.WARNING,
    AlertKind.RECURRING_VENDOR: AlertSeverity.INFO,
    AlertKind.SPENDING_SPIKE: AlertSeverity.WARNING,
    AlertKind.BUDGET_OVERAGE: AlertSeverity.WARNING,
    AlertKind.LOYALTY_REMINDER: AlertSeverity.INFO,
}


def severity_for(kind: AlertKind) -> AlertSeverity:
    """Severity is a fixed function of the alert kind."""
    return _SEVERITY_BY_KIND[kind]


class Alert(BaseModel):
    """
    A smart alert.

    The id is stable for a given cause, so recomputing alerts for the
    same receipts and the same day yields identical ids.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: AlertKind
    title: str
    description: str
    receipt_id: Optional[str] = None
    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount the alert is about (overage, purchase total, ...)"
    )

    @computed_field
    @property
    def severity(self) -> AlertSeverity:
        return severity_for(self.kind)


class BudgetProgress(BaseModel):
    """Spend against budget for a single category."""
    model_config = ConfigDict(frozen=True)

    category: str
    spent: Decimal = Field(ge=0)
    limit: Optional[Decimal] = Field(
        default=None,
        description="Configured limit; None means no budget set"
    )
    percentage: float = Field(
        default=0.0,
        ge=0.0,
        description="spent / limit * 100, or 0 without a budget"
    )
    is_over_budget: bool = False

    @property
    def has_budget(self) -> bool:
        return self.limit is not None and self.limit > 0

    @property
    def overage(self) -> Decimal:
        if not self.is_over_budget:
            return Decimal("0")
        return self.spent - self.limit

    @property
    def remaining(self) -> Optional[Decimal]:
        if not self.has_budget:
            return None
        return max(self.limit - self.spent, Decimal("0"))

    @property
    def status(self) -> str:
        """One of: unbudgeted, ok, warning, over."""
        if not self.has_budget:
            return "unbudgeted"
        if self.percentage > 100:
            return "over"
        if self.percentage > 75:
            return "warning"
        return "ok"

    @property
    def limit_label(self) -> str:
        if not self.has_budget:
            return "No budget set"
        return f"{self.limit:,.2f}"
