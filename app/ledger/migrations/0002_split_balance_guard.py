"""
Create the PostgreSQL split balance trigger.

This migration:
1. Creates assert_split_balance(), which re-sums the splits of one expense
   and raises when the total differs from expense.amount_cents
2. Attaches it as a DEFERRABLE INITIALLY DEFERRED constraint trigger to
   ledger_expensesplit (insert/update/delete) and to ledger_expense
   (update of amount_cents)

Trigger Behavior:
    - Runs at commit, so a transaction may pass through unbalanced states
      (delete all splits, insert the new set) as long as it ends balanced
    - Skips expenses whose row no longer exists (hard delete cascades)
    - Only installed for the "full" schema profile; other engines rely on
      the read-back in ledger.services.balance_guard
"""

from django.conf import settings
from django.db import migrations

from ledger.profiles import resolve_schema_profile

CREATE_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION assert_split_balance()
RETURNS trigger AS $$
DECLARE
    target_expense UUID;
    total_shares BIGINT;
    expense_total BIGINT;
BEGIN
    IF TG_TABLE_NAME = 'ledger_expense' THEN
        target_expense := NEW.id;
    ELSIF TG_OP = 'DELETE' THEN
        target_expense := OLD.expense_id;
    ELSE
        target_expense := NEW.expense_id;
    END IF;

    SELECT amount_cents INTO expense_total
    FROM ledger_expense WHERE id = target_expense;
    IF NOT FOUND THEN
        RETURN NULL;
    END IF;

    SELECT COALESCE(SUM(share_cents), 0) INTO total_shares
    FROM ledger_expensesplit WHERE expense_id = target_expense;

    IF total_shares <> expense_total THEN
        RAISE EXCEPTION 'Split total % must equal expense amount % for expense %',
            total_shares, expense_total, target_expense
            USING ERRCODE = 'check_violation';
    END IF;
    RETURN NULL;
END
$$ LANGUAGE plpgsql;
"""

CREATE_SPLIT_TRIGGER_SQL = """
CREATE CONSTRAINT TRIGGER ledger_expensesplit_balance
    AFTER INSERT OR UPDATE OR DELETE ON ledger_expensesplit
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION assert_split_balance();
"""

CREATE_EXPENSE_TRIGGER_SQL = """
CREATE CONSTRAINT TRIGGER ledger_expense_amount_balance
    AFTER UPDATE OF amount_cents ON ledger_expense
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION assert_split_balance();
"""

DROP_SQL = (
    "DROP TRIGGER IF EXISTS ledger_expense_amount_balance ON ledger_expense;",
    "DROP TRIGGER IF EXISTS ledger_expensesplit_balance ON ledger_expensesplit;",
    "DROP FUNCTION IF EXISTS assert_split_balance();",
)


def _uses_trigger(schema_editor) -> bool:
    profile = resolve_schema_profile(
        getattr(settings, "LEDGER_SCHEMA_PROFILE", "auto"),
        schema_editor.connection.vendor,
    )
    return profile.database_trigger


def create_balance_trigger(apps, schema_editor):
    """Create the balance function and both constraint triggers."""
    if not _uses_trigger(schema_editor):
        return

    schema_editor.execute(CREATE_FUNCTION_SQL)
    schema_editor.execute(CREATE_SPLIT_TRIGGER_SQL)
    schema_editor.execute(CREATE_EXPENSE_TRIGGER_SQL)


def remove_balance_trigger(apps, schema_editor):
    """Remove the triggers and function."""
    if schema_editor.connection.vendor != "postgresql":
        return

    for statement in DROP_SQL:
        schema_editor.execute(statement)


class Migration(migrations.Migration):
    dependencies = [
        ("ledger", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(
            create_balance_trigger,
            remove_balance_trigger,
        ),
    ]
