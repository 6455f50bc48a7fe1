"""
Ledger-specific exceptions.

This module provides the hierarchy of domain errors raised inside the
ledger services. Public service methods catch them and turn them into
ServiceResult failures, so callers only ever see error codes.

Exception Hierarchy:
    LedgerError (base)
    ├── LedgerValidationError (400)
    │   ├── SplitValidationError - split shares, percents, payer, participants
    │   └── LedgerBusinessRuleError - CANNOT_REMOVE_SELF, CATEGORY_IN_USE
    ├── LedgerNotFound (404) - expenses, categories, groups, participants
    │   └── UserNotFound (401)
    └── LedgerConflict (409) - duplicate names/emails, stale expense versions

    SplitBalanceViolation is not a LedgerError. It signals that a write
    transaction is about to commit unbalanced splits, which only happens
    when validation was bypassed; it derives from IntegrityError so it is
    handled like any other database failure.

Usage:
    from ledger.exceptions import SplitValidationError

    raise SplitValidationError(
        "Split shares must add up to the expense amount",
        error_code="INVALID_SPLIT_TOTAL",
        field="splits",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


class LedgerError(BaseApplicationError):
    """
    Base exception for all ledger operations.

    Attributes:
        field: Name of the offending input field, if any (stored in details)
        http_status: Status the API layer uses for this error
    """

    default_error_code: str = "LEDGER_ERROR"
    default_message: str = "Ledger operation failed"
    http_status: int = 400

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        *,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        full_details = dict(details or {})
        if field:
            full_details["field"] = field
        super().__init__(
            message=message or self.default_message,
            error_code=error_code,
            details=full_details,
        )

    @property
    def field(self) -> str | None:
        return self.details.get("field")


class LedgerValidationError(LedgerError):
    """Raised when input fails validation (bad currency, blank name, etc.)."""

    default_error_code: str = "VALIDATION_ERROR"
    default_message: str = "Validation failed"


class SplitValidationError(LedgerValidationError):
    """
    Raised when a split set cannot be accepted for an expense.

    Codes:
        PAYER_REQUIRED, SPLITS_REQUIRED, DUPLICATE_SPLIT_PARTICIPANT,
        INVALID_PARTICIPANTS, INVALID_SPLIT_SHARE, INVALID_SPLIT_PERCENT,
        INVALID_SPLIT_TOTAL, PAYER_NOT_IN_SPLITS
    """

    default_error_code: str = "INVALID_SPLIT_TOTAL"
    default_message: str = "Invalid expense splits"


class LedgerBusinessRuleError(LedgerValidationError):
    """Raised when a well-formed request breaks a ledger rule."""

    default_error_code: str = "BUSINESS_RULE_VIOLATION"


class LedgerNotFound(LedgerError):
    """
    Raised when a ledger resource is missing, soft deleted or owned by
    another couple. The three cases are indistinguishable to callers.
    """

    default_error_code: str = "NOT_FOUND"
    default_message: str = "Resource not found"
    http_status: int = 404


class UserNotFound(LedgerNotFound):
    """Raised when the calling user no longer exists."""

    default_error_code: str = "USER_NOT_FOUND"
    default_message: str = "User not found"
    http_status: int = 401


class LedgerConflict(LedgerError):
    """Raised for duplicates and optimistic concurrency failures."""

    default_error_code: str = "CONFLICT"
    default_message: str = "Conflicting ledger state"
    http_status: int = 409


class SplitBalanceViolation(IntegrityError):
    """
    Raised when the splits of an expense do not add up at commit time.

    Attributes:
        expense_id: The unbalanced expense
        amount_cents: Stored expense amount
        split_total: Sum of share_cents actually stored
    """

    def __init__(self, expense_id, amount_cents: int, split_total: int):
        self.expense_id = expense_id
        self.amount_cents = amount_cents
        self.split_total = split_total
        super().__init__(
            f"Split total {split_total} does not match amount {amount_cents} "
            f"for expense {expense_id}"
        )


# Status for every error code the ledger services can return. Codes raised
# through the generic classes with an explicit error_code are listed too.
HTTP_STATUS_BY_CODE: dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "INVALID_SPLIT_SHARE": 400,
    "INVALID_SPLIT_PERCENT": 400,
    "INVALID_SPLIT_TOTAL": 400,
    "DUPLICATE_SPLIT_PARTICIPANT": 400,
    "PAYER_NOT_IN_SPLITS": 400,
    "PAYER_REQUIRED": 400,
    "SPLITS_REQUIRED": 400,
    "INVALID_PARTICIPANTS": 400,
    "CANNOT_REMOVE_SELF": 400,
    "CATEGORY_IN_USE": 400,
    "EXPENSE_NOT_FOUND": LedgerNotFound.http_status,
    "CATEGORY_NOT_FOUND": LedgerNotFound.http_status,
    "GROUP_NOT_FOUND": LedgerNotFound.http_status,
    "PARTICIPANT_NOT_FOUND": LedgerNotFound.http_status,
    "USER_NOT_FOUND": UserNotFound.http_status,
    "CATEGORY_EXISTS": LedgerConflict.http_status,
    "PARTICIPANT_EMAIL_EXISTS": LedgerConflict.http_status,
    "EXPENSE_VERSION_CONFLICT": LedgerConflict.http_status,
}


def http_status_for(error_code: str | None) -> int:
    """Return the HTTP status for a ledger error code (400 when unknown)."""
    return HTTP_STATUS_BY_CODE.get(error_code or "", 400)
