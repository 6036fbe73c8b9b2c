"""
Keyword-based spending category classifier.

Categories are checked in declaration order and keywords in list order; the
first keyword found anywhere in the lowercased text decides the category.
"""
from __future__ import annotations

from typing import Optional

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "food": [
        "food", "mcdonalds", "starbucks", "restaurant", "cafe", "coffee",
        "pizza", "burger", "dining", "kitchen",
    ],
    "transport": [
        "transport", "uber", "lyft", "taxi", "gas", "fuel", "parking",
        "metro", "transit",
    ],
    "shopping": ["shopping", "store", "market", "shop", "retail", "mall"],
    "groceries": ["groceries", "grocery", "supermarket", "walmart", "target", "safeway"],
    "entertainment": ["entertainment", "cinema", "movie", "theater", "game"],
    "healthcare": ["healthcare", "pharmacy", "hospital", "clinic", "doctor", "medical"],
    "utilities": ["utilities", "electric", "water", "internet", "phone", "utility"],
}


def classify(text: str) -> Optional[str]:
    """Return the suggested category, or ``None`` when no keyword matches."""
    lowered = text.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return None
