"""
Django app configuration for the shared expense ledger.
"""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    """Configuration for the ledger application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Shared Expense Ledger"

    def ready(self):
        """Connect the settings listener that resets the cached schema profile."""
        from ledger import profiles  # noqa: F401
