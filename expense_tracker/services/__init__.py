"""
Business operations behind the HTTP routers.

Services take an open session plus already-resolved collaborators, raise
``expense_tracker.errors`` exceptions, and never read global settings.
"""
from __future__ import annotations

import math
import uuid

from expense_tracker.errors import InvalidInput


def require_valid_id(value: str, label: str) -> str:
    """Reject identifiers that cannot have been generated by this service."""
    try:
        uuid.UUID(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid {label} ID format") from None
    return value


def page_window(page: int, limit: int) -> tuple[int, int]:
    """``(limit, offset)`` for a 1-based page."""
    if page < 1 or limit < 1:
        raise InvalidInput("page and limit must be positive integers")
    return limit, (page - 1) * limit


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
