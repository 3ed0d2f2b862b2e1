"""
Spending analytics for the dashboard charts and summary cards.

All functions are pure and take the receipts already scoped to the
active wallet (see filter_by_wallet).
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from receiptwise.models.receipt import Category, Receipt, Wallet


class CategorySpend(BaseModel):
    """One slice of the category breakdown."""

    category: Category
    total: Decimal
    share: float  # Percentage of the overall total, 0 when nothing was spent


class SpendingSummary(BaseModel):
    """Headline numbers for the analytics page."""

    receipt_count: int
    total_spent: Decimal
    average_spend: Decimal
    fraudulent_count: int
    top_vendor: Optional[str] = None


def filter_by_wallet(
    receipts: Iterable[Receipt],
    wallet: Optional[Wallet],
) -> list[Receipt]:
    """Receipts belonging to the given wallet, order preserved. None means all."""
    if wallet is None:
        return list(receipts)
    return [r for r in receipts if r.wallet == wallet]


def total_spent(receipts: Iterable[Receipt]) -> Decimal:
    return sum((r.total_amount for r in receipts), Decimal("0"))


def spending_by_display_category(
    receipts: Iterable[Receipt],
    include_fraudulent: bool = True,
) -> list[CategorySpend]:
    """
    Category breakdown, largest first.

    Unknown category labels are folded into OTHER here, unlike the budget
    tracker which keys on the raw label.
    """
    totals: dict[Category, Decimal] = {}
    for receipt in receipts:
        if receipt.is_fraudulent and not include_fraudulent:
            continue
        key = receipt.display_category
        totals[key] = totals.get(key, Decimal("0")) + receipt.total_amount

    overall = sum(totals.values(), Decimal("0"))
    breakdown = [
        CategorySpend(
            category=category,
            total=total,
            share=float(total / overall * 100) if overall > 0 else 0.0,
        )
        for category, total in totals.items()
    ]
    # sorted() is stable, so equal totals keep first-seen order
    return sorted(breakdown, key=lambda item: item.total, reverse=True)


def summarize(receipts: Sequence[Receipt]) -> SpendingSummary:
    count = len(receipts)
    total = total_spent(receipts)
    vendors = Counter(r.vendor for r in receipts if not r.is_fraudulent)
    top_vendor = vendors.most_common(1)[0][0] if vendors else None

    return SpendingSummary(
        receipt_count=count,
        total_spent=total,
        average_spend=total / count if count else Decimal("0"),
        fraudulent_count=sum(1 for r in receipts if r.is_fraudulent),
        top_vendor=top_vendor,
    )
