"""
Ledger service layer.

Services:
    LedgerBootstrapService: Resolve a user to their couple (created on first use)
    ParticipantService: Participant directory
    CategoryService: Category registry
    GroupService: Expense groups and membership reconciliation
    ExpenseService: Expenses, splits and statistics

Every public method takes the calling user's id, bootstraps the ledger and
returns a ServiceResult. Database errors, including split balance
violations, propagate as exceptions.
"""

from .bootstrap import LedgerBootstrapService
from .participants import ParticipantService
from .categories import CategoryService
from .groups import GroupService
from .expenses import ExpenseService

__all__ = [
    "LedgerBootstrapService",
    "ParticipantService",
    "CategoryService",
    "GroupService",
    "ExpenseService",
]
