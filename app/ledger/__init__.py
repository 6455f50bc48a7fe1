"""
Shared expense ledger application.

Couples (one per user at first use), participants, categories, expense
groups, and expenses with splits that always add up to the expense amount.

Services (import from ledger.services):
    - LedgerBootstrapService: Resolve or create the caller's ledger
    - ParticipantService, CategoryService, GroupService, ExpenseService

Note:
    Models are not imported here to avoid AppRegistryNotReady errors.
    Import them from ledger.models.
"""
