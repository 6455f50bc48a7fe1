"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Random code generation (cryptographic)
- UUID coercion
- Pagination helpers

Usage:
    from core.helpers import generate_code, calculate_pagination

    invite_code = generate_code(10)
    pagination = calculate_pagination(total=120, page=2, per_page=50)
"""

from __future__ import annotations

import secrets
import string
import uuid

UPPERCASE_ALPHANUMERIC = string.ascii_uppercase + string.digits


def generate_code(length: int = 10, alphabet: str = UPPERCASE_ALPHANUMERIC) -> str:
    """
    Generate a cryptographically secure random code.

    Args:
        length: Number of characters
        alphabet: Characters to draw from (default A-Z and 0-9)

    Example:
        code = generate_code(10)  # e.g. "Q7K2ZP0M4C"
    """
    return "".join(secrets.choice(alphabet) for _ in range(length))


def parse_uuid(value) -> uuid.UUID | None:
    """
    Convert a UUID or UUID string to uuid.UUID, or None if it is not one.

    Example:
        parse_uuid("550e8400-e29b-41d4-a716-446655440000")  # UUID('550e8400-...')
        parse_uuid("not-a-uuid")  # None
    """
    if isinstance(value, uuid.UUID):
        return value
    if value is None:
        return None
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Calculate pagination metadata.

    Args:
        total: Total number of items
        page: Current page number (1-indexed)
        per_page: Items per page

    Returns:
        Dict with total, page, per_page, offset and has_more

    Example:
        calculate_pagination(total=120, page=2, per_page=50)
        # {"total": 120, "page": 2, "per_page": 50, "offset": 50, "has_more": True}
    """
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "offset": (page - 1) * per_page,
        "has_more": page * per_page < total,
    }
