"""
Presentation attributes per spending category.

Every Category has an entry; unknown labels resolve to OTHER through
Category.from_label, so lookups never miss.
"""

from typing import NamedTuple, Union

from receiptwise.models.receipt import Category


class CategoryStyle(NamedTuple):
    color: str
    icon: str
    badge_class: str


CATEGORY_STYLES: dict[Category, CategoryStyle] = {
    Category.GROCERIES: CategoryStyle("#38a169", "🛒", "badge-green"),
    Category.DINING: CategoryStyle("#dd6b20", "🍽️", "badge-orange"),
    Category.TRAVEL: CategoryStyle("#3182ce", "✈️", "badge-blue"),
    Category.HEALTH: CategoryStyle("#e53e3e", "💊", "badge-red"),
    Category.ENTERTAINMENT: CategoryStyle("#805ad5", "🎬", "badge-purple"),
    Category.SHOPPING: CategoryStyle("#d53f8c", "🛍️", "badge-pink"),
    Category.UTILITIES: CategoryStyle("#d69e2e", "💡", "badge-yellow"),
    Category.RENT: CategoryStyle("#5a67d8", "🏠", "badge-indigo"),
    Category.OTHER: CategoryStyle("#718096", "🧾", "badge-gray"),
}


def style_for(category: Union[Category, str, None]) -> CategoryStyle:
    """Look up the style for a category or a free-text label."""
    if not isinstance(category, Category):
        category = Category.from_label(category)
    return CATEGORY_STYLES[category]
