"""
Tests for ExpenseService writes and reads.

Test Organization:
    - TestCreateExpense: field validation, references, splits
    - TestUpdateExpense: partial updates, split replacement, versions
    - TestDeleteExpense / TestGetExpense
    - TestListExpenses: filters and pagination

Statistics live in test_statistics.py.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger.models import Expense, ExpenseSplit, SplitType
from ledger.services import ExpenseService, GroupService
from ledger.tests.factories import (
    BalancedExpenseFactory,
    CategoryFactory,
    ExpenseGroupFactory,
)
from ledger.types import ExpenseFilters, SplitInput


def split_map(expense):
    return {
        split.participant_id: split.share_cents
        for split in ExpenseSplit.objects.filter(expense=expense)
    }


# =============================================================================
# TestCreateExpense
# =============================================================================


class TestCreateExpense:
    """
    Tests for ExpenseService.create_expense().

    Verifies:
    - Expense and splits are stored together
    - Inputs are normalized (currency, description, amounts)
    - Each invalid field fails with its own code and nothing is written
    """

    def test_creates_expense_with_splits(self, ledger, me, partner, make_expense_input):
        result = ExpenseService.create_expense(ledger.user.id, make_expense_input())

        assert result.success is True
        expense = result.data
        assert expense.couple_id == ledger.couple_id
        assert expense.created_by_id == ledger.user.id
        assert expense.paid_by_participant_id == me.id
        assert expense.amount_cents == 1000
        assert expense.split_type == SplitType.EQUAL
        assert split_map(expense) == {me.id: 500, partner.id: 500}
        assert expense.splits_total() == expense.amount_cents

    def test_normalizes_inputs(self, ledger, make_expense_input):
        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(
                description="  Dinner  ",
                currency="eur",
                notes="   ",
                location=" Lisbon ",
                exchange_rate=Decimal("1.082500"),
            ),
        )

        expense = result.data
        assert expense.description == "Dinner"
        assert expense.currency == "EUR"
        assert expense.notes is None
        assert expense.location == "Lisbon"
        assert expense.exchange_rate == Decimal("1.082500")

    def test_fractional_amount_truncated(self, ledger, me, make_expense_input):
        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(
                amount_cents=1000.75,
                splits=[SplitInput(participant_id=me.id, share_cents=1000)],
            ),
        )

        assert result.success is True
        assert result.data.amount_cents == 1000

    def test_percentage_split_stores_percents(self, ledger, me, partner, make_expense_input):
        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(
                amount_cents=1000,
                split_type=SplitType.PERCENTAGE,
                splits=[
                    SplitInput(participant_id=me.id, share_cents=250, share_percent=25),
                    SplitInput(participant_id=partner.id, share_cents=750, share_percent=75),
                ],
            ),
        )

        assert result.success is True
        percents = {s.participant_id: s.share_percent for s in result.data.splits.all()}
        assert percents == {me.id: Decimal("25.00"), partner.id: Decimal("75.00")}

    def test_with_category_and_group(self, ledger, partner, category, make_expense_input):
        group = GroupService.create_group(
            ledger.user.id, name="Trip", participant_ids=[partner.id]
        ).data.group

        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(category_id=category.id, group_id=str(group.id)),
        )

        assert result.success is True
        assert result.data.category_id == category.id
        assert result.data.group_id == group.id

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"currency": "US"}, "currency"),
            ({"currency": "usd1"}, "currency"),
            ({"description": "   "}, "description"),
            ({"description": "x" * 201}, "description"),
            ({"amount_cents": 0}, "amount_cents"),
            ({"amount_cents": -100}, "amount_cents"),
            ({"amount_cents": "lots"}, "amount_cents"),
            ({"split_type": "weighted"}, "split_type"),
        ],
    )
    def test_invalid_fields(self, ledger, make_expense_input, overrides, field):
        result = ExpenseService.create_expense(ledger.user.id, make_expense_input(**overrides))

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert field in result.errors
        assert not Expense.all_objects.filter(couple_id=ledger.couple_id).exists()

    def test_foreign_category_not_found(self, ledger, other_ledger, make_expense_input):
        foreign = CategoryFactory(couple=other_ledger.couple)

        result = ExpenseService.create_expense(
            ledger.user.id, make_expense_input(category_id=foreign.id)
        )

        assert result.error_code == "CATEGORY_NOT_FOUND"

    def test_deleted_category_not_found(self, ledger, category, make_expense_input):
        category.soft_delete()

        result = ExpenseService.create_expense(
            ledger.user.id, make_expense_input(category_id=category.id)
        )

        assert result.error_code == "CATEGORY_NOT_FOUND"

    def test_archived_group_not_found(self, ledger, make_expense_input):
        group = ExpenseGroupFactory(couple=ledger.couple, is_archived=True)

        result = ExpenseService.create_expense(
            ledger.user.id, make_expense_input(group_id=group.id)
        )

        assert result.error_code == "GROUP_NOT_FOUND"

    def test_split_total_mismatch_writes_nothing(self, ledger, me, partner, make_expense_input):
        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(
                amount_cents=1000,
                splits=[
                    SplitInput(participant_id=me.id, share_cents=500),
                    SplitInput(participant_id=partner.id, share_cents=400),
                ],
            ),
        )

        assert result.success is False
        assert result.error_code == "INVALID_SPLIT_TOTAL"
        assert not Expense.all_objects.filter(couple_id=ledger.couple_id).exists()
        assert not ExpenseSplit.objects.filter(participant=me).exists()

    def test_payer_must_be_in_splits(self, ledger, partner, make_expense_input):
        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(
                splits=[SplitInput(participant_id=partner.id, share_cents=1000)]
            ),
        )

        assert result.error_code == "PAYER_NOT_IN_SPLITS"

    def test_foreign_payer_rejected(self, ledger, me, foreign_participant, make_expense_input):
        result = ExpenseService.create_expense(
            ledger.user.id,
            make_expense_input(
                paid_by_participant_id=foreign_participant.id,
                splits=[
                    SplitInput(participant_id=me.id, share_cents=500),
                    SplitInput(participant_id=foreign_participant.id, share_cents=500),
                ],
            ),
        )

        assert result.error_code == "INVALID_PARTICIPANTS"

    def test_deleted_participant_cannot_be_split(self, ledger, partner, make_expense_input):
        partner.soft_delete()

        result = ExpenseService.create_expense(ledger.user.id, make_expense_input())

        assert result.error_code == "INVALID_PARTICIPANTS"


# =============================================================================
# TestUpdateExpense
# =============================================================================


class TestUpdateExpense:
    @pytest.fixture
    def stored(self, ledger, make_expense_input):
        return ExpenseService.create_expense(ledger.user.id, make_expense_input()).data

    def test_updates_plain_fields(self, ledger, stored, category):
        result = ExpenseService.update_expense(
            ledger.user.id,
            stored.id,
            {
                "description": "Weekly groceries",
                "currency": "gbp",
                "expense_date": date(2024, 6, 2),
                "category_id": category.id,
                "notes": "receipt in drawer",
            },
        )

        assert result.success is True
        expense = result.data
        assert expense.description == "Weekly groceries"
        assert expense.currency == "GBP"
        assert expense.expense_date == date(2024, 6, 2)
        assert expense.category_id == category.id
        assert expense.notes == "receipt in drawer"

    def test_replaces_splits(self, ledger, me, partner, guest, stored):
        result = ExpenseService.update_expense(
            ledger.user.id,
            stored.id,
            {
                "amount_cents": 900,
                "splits": [
                    {"participant_id": me.id, "share_cents": 300},
                    {"participant_id": guest.id, "share_cents": 600},
                ],
            },
        )

        assert result.success is True
        assert split_map(stored) == {me.id: 300, guest.id: 600}
        assert stored.splits_total() == 900

    def test_amount_change_without_splits_fails(self, ledger, stored):
        result = ExpenseService.update_expense(
            ledger.user.id, stored.id, {"amount_cents": 1500}
        )

        assert result.success is False
        assert result.error_code == "INVALID_SPLIT_TOTAL"
        stored.refresh_from_db()
        assert stored.amount_cents == 1000

    def test_payer_change_checked_against_existing_splits(self, ledger, partner, guest, stored):
        ok = ExpenseService.update_expense(
            ledger.user.id, stored.id, {"paid_by_participant_id": partner.id}
        )
        bad = ExpenseService.update_expense(
            ledger.user.id, stored.id, {"paid_by_participant_id": guest.id}
        )

        assert ok.success is True
        assert ok.data.paid_by_participant_id == partner.id
        assert bad.error_code == "PAYER_NOT_IN_SPLITS"

    def test_switch_to_percentage_requires_percents(self, ledger, stored):
        result = ExpenseService.update_expense(
            ledger.user.id, stored.id, {"split_type": SplitType.PERCENTAGE}
        )

        assert result.error_code == "INVALID_SPLIT_PERCENT"

    def test_invalid_splits_keep_old_splits(self, ledger, me, partner, stored):
        result = ExpenseService.update_expense(
            ledger.user.id,
            stored.id,
            {"splits": [{"participant_id": me.id, "share_cents": 10}]},
        )

        assert result.error_code == "INVALID_SPLIT_TOTAL"
        assert split_map(stored) == {me.id: 500, partner.id: 500}

    def test_clear_category(self, ledger, category, make_expense_input):
        stored = ExpenseService.create_expense(
            ledger.user.id, make_expense_input(category_id=category.id)
        ).data

        result = ExpenseService.update_expense(ledger.user.id, stored.id, {"category_id": None})

        assert result.data.category_id is None

    def test_matching_version_succeeds(self, ledger, stored):
        result = ExpenseService.update_expense(
            ledger.user.id,
            stored.id,
            {"description": "v2", "expected_updated_at": stored.updated_at},
        )

        assert result.success is True
        assert result.data.updated_at > stored.updated_at

    def test_stale_version_conflicts(self, ledger, stored):
        stale = stored.updated_at - timedelta(seconds=5)

        result = ExpenseService.update_expense(
            ledger.user.id,
            stored.id,
            {"description": "v2", "expected_updated_at": stale},
        )

        assert result.success is False
        assert result.error_code == "EXPENSE_VERSION_CONFLICT"
        stored.refresh_from_db()
        assert stored.description == "Groceries"

    def test_foreign_expense_not_found(self, ledger, other_ledger):
        foreign = BalancedExpenseFactory(
            couple=other_ledger.couple, paid_by_participant=other_ledger.participant
        )

        result = ExpenseService.update_expense(
            ledger.user.id, foreign.id, {"description": "mine"}
        )

        assert result.error_code == "EXPENSE_NOT_FOUND"


# =============================================================================
# TestDeleteExpense / TestGetExpense
# =============================================================================


class TestDeleteExpense:
    def test_soft_deletes(self, ledger, expense):
        result = ExpenseService.delete_expense(ledger.user.id, expense.id)

        assert result.success is True
        assert not Expense.objects.filter(id=expense.id).exists()
        assert Expense.all_objects.get(id=expense.id).deleted_at is not None

    def test_deleted_expense_cannot_be_updated(self, ledger, expense):
        ExpenseService.delete_expense(ledger.user.id, expense.id)

        result = ExpenseService.update_expense(
            ledger.user.id, expense.id, {"description": "back"}
        )

        assert result.error_code == "EXPENSE_NOT_FOUND"

    def test_delete_twice_not_found(self, ledger, expense):
        ExpenseService.delete_expense(ledger.user.id, expense.id)

        result = ExpenseService.delete_expense(ledger.user.id, expense.id)

        assert result.error_code == "EXPENSE_NOT_FOUND"


class TestGetExpense:
    def test_returns_expense_with_splits(self, ledger, me, expense):
        result = ExpenseService.get_expense(ledger.user.id, expense.id)

        assert result.success is True
        assert [split.participant_id for split in result.data.splits.all()] == [me.id]

    @pytest.mark.parametrize("expense_id", ["bogus", "00000000-0000-0000-0000-000000000000"])
    def test_unknown_ids_not_found(self, ledger, expense_id):
        result = ExpenseService.get_expense(ledger.user.id, expense_id)

        assert result.error_code == "EXPENSE_NOT_FOUND"


# =============================================================================
# TestListExpenses
# =============================================================================


class TestListExpenses:
    @pytest.fixture
    def history(self, ledger, me, partner, category):
        """Four expenses over four days; two paid by the partner."""
        rows = [
            ("Coffee", 450, date(2024, 5, 1), me, category),
            ("Rent", 120000, date(2024, 5, 2), partner, None),
            ("Coffee beans", 1800, date(2024, 5, 3), me, category),
            ("Cinema", 2400, date(2024, 5, 4), partner, None),
        ]
        return [
            BalancedExpenseFactory(
                couple=ledger.couple,
                created_by=ledger.user,
                description=description,
                amount_cents=amount,
                expense_date=expense_date,
                paid_by_participant=payer,
                category=expense_category,
            )
            for description, amount, expense_date, payer, expense_category in rows
        ]

    def test_newest_first(self, ledger, history):
        result = ExpenseService.list_expenses(ledger.user.id)

        assert [e.description for e in result.data.expenses] == [
            "Cinema",
            "Coffee beans",
            "Rent",
            "Coffee",
        ]
        assert result.data.total == 4
        assert result.data.has_more is False

    def test_pagination(self, ledger, history):
        first = ExpenseService.list_expenses(ledger.user.id, ExpenseFilters(page=1, limit=3))
        second = ExpenseService.list_expenses(ledger.user.id, ExpenseFilters(page=2, limit=3))

        assert len(first.data.expenses) == 3
        assert first.data.has_more is True
        assert [e.description for e in second.data.expenses] == ["Coffee"]
        assert second.data.has_more is False

    def test_limit_clamped(self, ledger, history, settings):
        settings.LEDGER_MAX_PAGE_SIZE = 2

        result = ExpenseService.list_expenses(ledger.user.id, ExpenseFilters(limit=500, page=0))

        assert result.data.limit == 2
        assert result.data.page == 1

    def test_filter_by_payer_and_category(self, ledger, partner, category, history):
        by_payer = ExpenseService.list_expenses(
            ledger.user.id, ExpenseFilters(paid_by_participant_id=partner.id)
        )
        by_category = ExpenseService.list_expenses(
            ledger.user.id, ExpenseFilters(category_id=category.id)
        )

        assert {e.description for e in by_payer.data.expenses} == {"Rent", "Cinema"}
        assert {e.description for e in by_category.data.expenses} == {
            "Coffee",
            "Coffee beans",
        }

    def test_filter_by_date_range_inclusive(self, ledger, history):
        result = ExpenseService.list_expenses(
            ledger.user.id,
            ExpenseFilters(start_date=date(2024, 5, 2), end_date=date(2024, 5, 3)),
        )

        assert {e.description for e in result.data.expenses} == {"Rent", "Coffee beans"}

    def test_filter_by_amount_range(self, ledger, history):
        result = ExpenseService.list_expenses(
            ledger.user.id, ExpenseFilters(min_amount="450.9", max_amount=2400)
        )

        assert {e.description for e in result.data.expenses} == {
            "Coffee",
            "Coffee beans",
            "Cinema",
        }

    def test_search_is_case_insensitive(self, ledger, history):
        result = ExpenseService.list_expenses(ledger.user.id, ExpenseFilters(search="COFFEE"))

        assert result.data.total == 2

    def test_invalid_amount_filter_fails(self, ledger, history):
        result = ExpenseService.list_expenses(
            ledger.user.id, ExpenseFilters(min_amount="cheap")
        )

        assert result.error_code == "VALIDATION_ERROR"

    @pytest.mark.parametrize(
        "field", ["category_id", "paid_by_participant_id", "group_id"]
    )
    def test_malformed_id_filter_fails(self, ledger, history, field):
        filters = ExpenseFilters(**{field: "not-a-uuid"})

        listing = ExpenseService.list_expenses(ledger.user.id, filters)
        stats = ExpenseService.get_statistics(ledger.user.id, filters)

        assert listing.error_code == "VALIDATION_ERROR"
        assert listing.errors == {field: ["Filter id must be a UUID"]}
        assert stats.error_code == "VALIDATION_ERROR"

    def test_id_filter_accepts_string(self, ledger, partner, history):
        result = ExpenseService.list_expenses(
            ledger.user.id, ExpenseFilters(paid_by_participant_id=str(partner.id))
        )

        assert {e.description for e in result.data.expenses} == {"Rent", "Cinema"}

    def test_excludes_deleted_and_foreign(self, ledger, other_ledger, expense):
        BalancedExpenseFactory(
            couple=other_ledger.couple, paid_by_participant=other_ledger.participant
        )
        deleted = BalancedExpenseFactory(
            couple=ledger.couple, paid_by_participant=ledger.participant
        )
        deleted.soft_delete()

        result = ExpenseService.list_expenses(ledger.user.id)

        assert [e.id for e in result.data.expenses] == [expense.id]
