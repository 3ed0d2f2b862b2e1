"""
Budget Tracking

Two pieces:
- compute_budget_progress: a pure function from receipts + budget map to
  per-category progress records.
- BudgetBook: the caller-owned, mutable budget map the user edits.

The tracker never caches. Progress is re-derived from the current map on
every call, so lowering a limit below recorded spend shows as over budget
immediately.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from receiptwise.models.alert import BudgetProgress
from receiptwise.models.receipt import Receipt


Number = Union[Decimal, int, float, str]


class InvalidBudgetError(ValueError):
    """A budget limit was negative or not a number."""
    pass


def to_amount(value: Number) -> Decimal:
    """Convert a user or config supplied number to Decimal."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidBudgetError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidBudgetError(f"Not a valid amount: {value!r}")
    return amount


def spending_by_category(receipts: Iterable[Receipt]) -> dict[str, Decimal]:
    """Sum totals per category key, in first-encountered order."""
    totals: dict[str, Decimal] = {}
    for receipt in receipts:
        totals[receipt.category] = (
            totals.get(receipt.category, Decimal("0")) + receipt.total_amount
        )
    return totals


def compute_budget_progress(
    receipts: Iterable[Receipt],
    budgets: Mapping[str, Number],
) -> list[BudgetProgress]:
    """
    Per-category progress for every category with spend or a budget.

    Budgeted categories come first, in budget-map order, followed by
    categories that only have spend.
    """
    spent_by_category = spending_by_category(receipts)

    categories = list(budgets)
    categories.extend(c for c in spent_by_category if c not in budgets)

    progress = []
    for category in categories:
        spent = spent_by_category.get(category, Decimal("0"))
        limit: Optional[Decimal] = None
        if category in budgets:
            try:
                limit = to_amount(budgets[category])
            except InvalidBudgetError:
                limit = None

        if limit is not None and limit > 0:
            percentage = float(spent / limit * 100)
            is_over = spent > limit
        else:
            percentage = 0.0
            is_over = False

        progress.append(BudgetProgress(
            category=category,
            spent=spent,
            limit=limit if limit is not None and limit > 0 else None,
            percentage=percentage,
            is_over_budget=is_over,
        ))

    return progress


class BudgetBook:
    """
    Mutable category -> limit map owned by one user session.

    A limit of zero is stored but treated as "no budget set" by the tracker.
    """

    def __init__(self, defaults: Optional[Mapping[str, Number]] = None):
        self._limits: dict[str, Decimal] = {}
        for category, limit in (defaults or {}).items():
            self.set_budget(category, limit)

    def set_budget(self, category: str, limit: Number) -> Optional[Decimal]:
        """
        Set the limit for a category.

        Returns the previous limit (None if there was none).

        Raises:
            InvalidBudgetError: If the limit is negative or not a number
        """
        category = category.strip()
        if not category:
            raise InvalidBudgetError("Category is required")
        amount = to_amount(limit)
        if amount < 0:
            raise InvalidBudgetError(
                f"Budget for {category} must be a positive number"
            )
        previous = self._limits.get(category)
        self._limits[category] = amount
        return previous

    def remove_budget(self, category: str) -> Optional[Decimal]:
        return self._limits.pop(category, None)

    def get(self, category: str) -> Optional[Decimal]:
        return self._limits.get(category)

    def as_dict(self) -> dict[str, Decimal]:
        """Snapshot of the current limits."""
        return dict(self._limits)

    def progress(self, receipts: Iterable[Receipt]) -> list[BudgetProgress]:
        return compute_budget_progress(receipts, self._limits)

    def __contains__(self, category: object) -> bool:
        return category in self._limits

    def __len__(self) -> int:
        return len(self._limits)
