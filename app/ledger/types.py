"""
Data types for ledger operations.

Dataclasses used to pass requests and results between the API layer and
the ledger services.

Types:
    LedgerContext: The caller's couple and participant
    SplitInput: One requested share of an expense
    ExpenseInput: Everything needed to create an expense
    ExpenseFilters: Filters and paging shared by listing and statistics
    PaginatedExpenses: One page of expenses plus paging metadata
    ExpenseStatistics: Aggregates over the filtered expenses
    GroupDetails: A group plus its active participants

Usage:
    from ledger.types import ExpenseInput, SplitInput

    params = ExpenseInput(
        description="Groceries",
        amount_cents=1000,
        currency="usd",
        expense_date=date(2024, 5, 1),
        paid_by_participant_id=alice.id,
        splits=[
            SplitInput(participant_id=alice.id, share_cents=500),
            SplitInput(participant_id=bob.id, share_cents=500),
        ],
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class LedgerContext:
    """
    Result of bootstrapping a user's ledger.

    Attributes:
        couple_id: The caller's couple (tenant)
        participant_id: The caller's own participant, when it was requested
    """

    couple_id: uuid.UUID
    participant_id: uuid.UUID | None = None


@dataclass
class SplitInput:
    """
    One requested share of an expense.

    share_cents and share_percent are accepted as given (numbers or numeric
    strings); the split validator truncates and range-checks them.
    """

    participant_id: uuid.UUID
    share_cents: Any
    share_percent: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SplitInput:
        return cls(
            participant_id=data.get("participant_id"),
            share_cents=data.get("share_cents"),
            share_percent=data.get("share_percent"),
        )


@dataclass(frozen=True)
class NormalizedSplit:
    """A split after validation: integer cents and an optional exact percent."""

    participant_id: uuid.UUID
    share_cents: int
    share_percent: Decimal | None = None


@dataclass
class ExpenseInput:
    """
    Parameters for creating an expense.

    Required Attributes:
        description: Free text, trimmed, 1-200 characters
        amount_cents: Positive amount (truncated to an integer)
        currency: ISO 4217 code (upper-cased before validation)
        expense_date: Calendar date of the expense
        paid_by_participant_id: Payer, must be one of the split participants
        splits: Requested shares

    Optional Attributes:
        category_id, group_id: Must belong to the caller's couple
        split_type: equal (default), custom or percentage
        exchange_rate: Stored as given
        notes, receipt_url, location: Trimmed; blank values become None
    """

    description: str
    amount_cents: Any
    currency: str
    expense_date: date
    paid_by_participant_id: uuid.UUID | None
    splits: list[SplitInput] = field(default_factory=list)
    category_id: uuid.UUID | None = None
    group_id: uuid.UUID | None = None
    split_type: str | None = None
    exchange_rate: Decimal | None = None
    notes: str | None = None
    receipt_url: str | None = None
    location: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExpenseInput:
        """Build from validated request data."""
        values = dict(data)
        values["splits"] = [
            split if isinstance(split, SplitInput) else SplitInput.from_dict(split)
            for split in values.get("splits") or []
        ]
        known = cls.__dataclass_fields__.keys()
        return cls(**{key: value for key, value in values.items() if key in known})


@dataclass
class ExpenseFilters:
    """
    Filters shared by expense listing and statistics.

    Attributes:
        page: 1-based page number (values below 1 become 1)
        limit: Page size, clamped to 1..LEDGER_MAX_PAGE_SIZE
        start_date, end_date: Inclusive bounds on expense_date
        min_amount, max_amount: Inclusive bounds on amount_cents (truncated)
        search: Case-insensitive substring of the description
    """

    page: int = 1
    limit: int | None = None
    category_id: uuid.UUID | None = None
    paid_by_participant_id: uuid.UUID | None = None
    group_id: uuid.UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    min_amount: Any = None
    max_amount: Any = None
    search: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExpenseFilters:
        known = cls.__dataclass_fields__.keys()
        return cls(
            **{
                key: value
                for key, value in data.items()
                if key in known and value is not None
            }
        )


@dataclass
class PaginatedExpenses:
    """One page of expenses (splits prefetched) plus paging metadata."""

    expenses: list
    page: int
    limit: int
    total: int
    has_more: bool


@dataclass(frozen=True)
class CategoryTotal:
    category_id: uuid.UUID | None
    total_cents: int


@dataclass(frozen=True)
class ParticipantTotal:
    participant_id: uuid.UUID
    total_cents: int


@dataclass
class ExpenseStatistics:
    """
    Aggregates over a filtered set of expenses.

    Attributes:
        total_spent_cents: Sum of amount_cents
        total_transactions: Number of expenses
        totals_by_category: One entry per category (None = uncategorized)
        totals_by_participant: One entry per payer
    """

    total_spent_cents: int = 0
    total_transactions: int = 0
    totals_by_category: list[CategoryTotal] = field(default_factory=list)
    totals_by_participant: list[ParticipantTotal] = field(default_factory=list)


@dataclass
class GroupDetails:
    """A group together with its active, non-deleted participants."""

    group: Any
    participants: list = field(default_factory=list)
