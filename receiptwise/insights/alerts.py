"""
Smart Alert Engine

DESIGN DECISION: Alert generation is a pure function of
(receipts, today, budgets). Nothing is read from the clock or from
global state, so the same inputs always give the same alerts in the
same order.

Rules run in a fixed order, each contributing zero or more alerts:
1. Fraud            - one summary alert if any receipt is flagged
2. Return window    - one per high-value purchase whose window is closing
3. Recurring vendor - one alert for the most frequent vendor
4. Spending spike   - one alert for the first unusually large purchase
5. Budget overage   - one per category near or over its limit
6. Loyalty reminder - at most one informational nudge
"""

from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from receiptwise.config.settings import AlertSettings
from receiptwise.insights.budgets import (
    InvalidBudgetError,
    Number,
    spending_by_category,
    to_amount,
)
from receiptwise.models.alert import Alert, AlertKind
from receiptwise.models.receipt import Receipt


class AlertRules(BaseModel):
    """Thresholds for the alert rules. Defaults match AlertSettings."""
    model_config = ConfigDict(frozen=True)

    high_spend_threshold: Decimal = Decimal("2000")
    return_window_days: int = Field(default=30, ge=1)
    return_reminder_days: int = Field(default=7, ge=1)
    frequent_vendor_threshold: int = Field(default=3, ge=2)
    spike_multiplier: Decimal = Field(default=Decimal("5"), gt=0)
    budget_warning_ratio: Decimal = Field(default=Decimal("0.8"), gt=0, le=1)
    loyalty_categories: tuple[str, ...] = ("Shopping", "Groceries")

    @classmethod
    def from_settings(cls, settings: AlertSettings) -> "AlertRules":
        return cls(
            high_spend_threshold=settings.high_spend_threshold,
            return_window_days=settings.return_window_days,
            return_reminder_days=settings.return_reminder_days,
            frequent_vendor_threshold=settings.frequent_vendor_threshold,
            spike_multiplier=settings.spike_multiplier,
            budget_warning_ratio=settings.budget_warning_ratio,
        )


class AlertEngine:
    """
    Derives smart alerts from a (wallet-filtered) receipt collection.

    The engine holds only its configuration; it never stores receipts.
    """

    def __init__(
        self,
        rules: Optional[AlertRules] = None,
        currency_symbol: str = "₹",
    ):
        self._rules = rules or AlertRules()
        self._currency = currency_symbol

    @property
    def rules(self) -> AlertRules:
        return self._rules

    def evaluate(
        self,
        receipts: Sequence[Receipt],
        today: date,
        budgets: Optional[Mapping[str, Number]] = None,
    ) -> list[Alert]:
        """
        Produce the ordered alert list.

        Args:
            receipts: Receipts in display order (used for "first" tie-breaks)
            today: Reference date for the return-window countdown
            budgets: Optional category -> limit map

        Returns:
            Alerts, grouped by rule in the fixed rule order
        """
        if not receipts:
            return []

        alerts: list[Alert] = []
        alerts.extend(self._fraud_alerts(receipts))
        alerts.extend(self._return_window_alerts(receipts, today))
        alerts.extend(self._recurring_vendor_alerts(receipts))
        alerts.extend(self._spending_spike_alerts(receipts))
        if budgets:
            alerts.extend(self._budget_alerts(receipts, budgets))
        alerts.extend(self._loyalty_alerts(receipts))
        return alerts

    def _money(self, amount: Decimal) -> str:
        return f"{self._currency}{amount:,.2f}"

    def _fraud_alerts(self, receipts: Sequence[Receipt]) -> list[Alert]:
        count = sum(1 for r in receipts if r.is_fraudulent)
        if count == 0:
            return []
        return [Alert(
            id="fraud-alert",
            kind=AlertKind.FRAUD,
            title="Potential Fraud Detected",
            description=(
                f"We found {count} receipt(s) that might be fraudulent. "
                "Please review them carefully."
            ),
        )]

    def _return_window_alerts(
        self,
        receipts: Sequence[Receipt],
        today: date,
    ) -> list[Alert]:
        rules = self._rules
        alerts = []

        for receipt in receipts:
            if receipt.is_fraudulent:
                continue
            if receipt.total_amount <= rules.high_spend_threshold:
                continue
            if receipt.purchase_date is None:
                continue

            days_since_purchase = (today - receipt.purchase_date).days
            remaining = rules.return_window_days - days_since_purchase
            if not 0 < remaining <= rules.return_reminder_days:
                continue

            day_word = "day" if remaining == 1 else "days"
            alerts.append(Alert(
                id=f"return-{receipt.id}",
                kind=AlertKind.RETURN_WINDOW,
                title="Return Window Closing!",
                description=(
                    f"Only {remaining} {day_word} left to return your "
                    f"{self._money(receipt.total_amount)} purchase from {receipt.vendor}."
                ),
                receipt_id=receipt.id,
                amount=receipt.total_amount,
            ))

        return alerts

    def _recurring_vendor_alerts(self, receipts: Sequence[Receipt]) -> list[Alert]:
        visits = Counter(r.vendor for r in receipts if not r.is_fraudulent)
        frequent = [
            (vendor, count)
            for vendor, count in visits.items()
            if count >= self._rules.frequent_vendor_threshold
        ]
        if not frequent:
            return []

        # max() keeps the first of equal counts, i.e. the first vendor seen
        vendor, count = max(frequent, key=lambda item: item[1])
        return [Alert(
            id="recurring-payment-alert",
            kind=AlertKind.RECURRING_VENDOR,
            title="Recurring Payment Detected",
            description=(
                f"You've shopped at {vendor} {count} times recently. "
                "This might be a subscription."
            ),
        )]

    def _spending_spike_alerts(self, receipts: Sequence[Receipt]) -> list[Alert]:
        if not receipts:
            return []

        total = sum((r.total_amount for r in receipts), Decimal("0"))
        average = total / len(receipts)
        limit = average * self._rules.spike_multiplier

        spike = next((r for r in receipts if r.total_amount > limit), None)
        if spike is None:
            return []

        return [Alert(
            id=f"spike-{spike.id}",
            kind=AlertKind.SPENDING_SPIKE,
            title="Spending Spike",
            description=(
                f"Your purchase of {self._money(spike.total_amount)} at {spike.vendor} "
                f"is significantly higher than your average spend of "
                f"{self._money(average)}."
            ),
            receipt_id=spike.id,
            amount=spike.total_amount,
        )]

    def _budget_alerts(
        self,
        receipts: Sequence[Receipt],
        budgets: Mapping[str, Number],
    ) -> list[Alert]:
        spent_by_category = spending_by_category(receipts)
        alerts = []

        for category, raw_limit in budgets.items():
            try:
                limit = to_amount(raw_limit)
            except InvalidBudgetError:
                continue
            if limit <= 0:
                continue

            spent = spent_by_category.get(category, Decimal("0"))
            if spent <= limit * self._rules.budget_warning_ratio:
                continue

            if spent > limit:
                overage = spent - limit
                alerts.append(Alert(
                    id=f"budget-{category}",
                    kind=AlertKind.BUDGET_OVERAGE,
                    title=f"Over Budget: {category}",
                    description=(
                        f"You've spent {self._money(spent)} against your "
                        f"{self._money(limit)} {category} budget, "
                        f"exceeding it by {self._money(overage)}."
                    ),
                    amount=overage,
                ))
            else:
                used = spent / limit * 100
                alerts.append(Alert(
                    id=f"budget-{category}",
                    kind=AlertKind.BUDGET_OVERAGE,
                    title=f"Approaching Budget: {category}",
                    description=(
                        f"You've used {used:.0f}% of your {self._money(limit)} "
                        f"{category} budget ({self._money(spent)} spent)."
                    ),
                ))

        return alerts

    def _loyalty_alerts(self, receipts: Sequence[Receipt]) -> list[Alert]:
        loyalty = self._rules.loyalty_categories
        if not any(
            r.category in loyalty for r in receipts if not r.is_fraudulent
        ):
            return []
        return [Alert(
            id="loyalty-reminder",
            kind=AlertKind.LOYALTY_REMINDER,
            title="Don't Forget Your Rewards",
            description=(
                "You shop regularly for everyday items. Check whether your "
                "stores offer loyalty points or cashback on your next visit."
            ),
        )]
