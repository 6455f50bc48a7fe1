"""
Fixed values shared by the ledger services.

Defaults seeded into every new ledger, validation patterns and the
notification preference keys a participant carries.
"""

import re
from decimal import Decimal

DEFAULT_COUPLE_NAME = "Personal Ledger"
INVITE_CODE_LENGTH = 10

DEFAULT_CURRENCY = "USD"
SELF_PARTICIPANT_FALLBACK_NAME = "You"

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
COLOR_PATTERN = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)

# Tolerance when comparing percentage totals against 100
PERCENT_TOLERANCE = Decimal("0.01")

NOTIFICATION_KEYS = ("expenses", "invites", "reminders")
DEFAULT_NOTIFICATION_PREFERENCES = {key: True for key in NOTIFICATION_KEYS}

DEFAULT_CATEGORIES = (
    {"name": "Food & Dining", "color": "#FF5722", "icon": "restaurant"},
    {"name": "Transportation", "color": "#2196F3", "icon": "directions-car"},
    {"name": "Shopping", "color": "#9C27B0", "icon": "shopping-cart"},
    {"name": "Entertainment", "color": "#FF9800", "icon": "movie"},
    {"name": "Bills & Utilities", "color": "#F44336", "icon": "receipt"},
    {"name": "Healthcare", "color": "#4CAF50", "icon": "local-hospital"},
    {"name": "Travel", "color": "#00BCD4", "icon": "flight"},
    {"name": "Other", "color": "#607D8B", "icon": "category"},
)


def default_notification_preferences() -> dict:
    """Fresh copy for JSONField defaults and new participants."""
    return dict(DEFAULT_NOTIFICATION_PREFERENCES)
