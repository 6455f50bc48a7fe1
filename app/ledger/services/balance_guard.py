"""
Split balance guard.

Last check before an expense write commits: the stored split total must
equal the stored amount. Which layer does the check depends on the schema
profile:

    full         The deferred constraint trigger from migration 0002 raises
                 at COMMIT. Nothing to do here.
    lightweight  verify_split_balance() re-reads the total inside the
                 transaction and raises SplitBalanceViolation.

Both failures are database errors. They are never turned into ledger error
codes; callers see them as a failed request.

Usage:
    with transaction.atomic():
        ...write expense and splits...
        guard_split_balance(expense)
"""

from __future__ import annotations

import logging

from django.db import connection

from ledger.exceptions import SplitBalanceViolation
from ledger.models import Expense
from ledger.profiles import get_schema_profile

logger = logging.getLogger(__name__)


def verify_split_balance(expense: Expense) -> None:
    """
    Compare the stored split total of an expense with its stored amount.

    Raises:
        SplitBalanceViolation: The totals differ
    """
    amount_cents = (
        Expense.all_objects.filter(pk=expense.pk)
        .values_list("amount_cents", flat=True)
        .first()
    )
    if amount_cents is None:
        return

    split_total = expense.splits_total()
    if split_total != amount_cents:
        logger.error(
            f"Split balance violation on expense {expense.pk}: "
            f"splits={split_total} amount={amount_cents}"
        )
        raise SplitBalanceViolation(expense.pk, amount_cents, split_total)


def guard_split_balance(expense: Expense) -> None:
    """Apply the balance check for the active schema profile."""
    if get_schema_profile().verifies_in_application:
        verify_split_balance(expense)


def check_deferred_constraints() -> None:
    """
    Fire pending deferred constraint triggers now instead of at commit.

    Only meaningful on PostgreSQL; used where a caller needs the trigger
    result inside a transaction that will be rolled back (tests, dry runs).
    """
    if connection.vendor != "postgresql":
        return
    with connection.cursor() as cursor:
        cursor.execute("SET CONSTRAINTS ALL IMMEDIATE")
