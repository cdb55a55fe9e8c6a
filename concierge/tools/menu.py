"""Menu filtering and grouping for the menu agent."""

import logging
import re
from typing import Optional

from concierge.schemas.restaurant_schema import MenuItem

logger = logging.getLogger(__name__)

DIETARY_FILTERS: dict[str, tuple[str, ...]] = {
    "vegan": ("vegan", "plant based", "plant-based"),
    "vegetarian": ("vegetarian", "veggie", "meat free", "no meat"),
    "gluten_free": ("gluten", "coeliac", "celiac"),
}


def detect_dietary_filter(message: str) -> Optional[str]:
    """Return the dietary filter a message asks for, if any."""
    lower = message.lower()
    for name, keywords in DIETARY_FILTERS.items():
        if any(re.search(rf"\b{re.escape(k)}", lower) for k in keywords):
            return name
    return None


def filter_menu(items: list[MenuItem], dietary: Optional[str] = None) -> list[MenuItem]:
    if dietary == "vegan":
        return [i for i in items if i.is_vegan]
    if dietary == "vegetarian":
        return [i for i in items if i.is_vegetarian or i.is_vegan]
    if dietary == "gluten_free":
        return [i for i in items if i.is_gluten_free]
    return list(items)


def match_category(message: str, items: list[MenuItem]) -> Optional[str]:
    lower = message.lower()
    for category in {i.category for i in items}:
        if re.search(rf"\b{re.escape(category.lower())}", lower):
            return category
    return None


def organize_by_category(items: list[MenuItem]) -> dict[str, list[MenuItem]]:
    """Group dishes by category, preserving menu order within each group."""
    grouped: dict[str, list[MenuItem]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    return grouped
