"""
Tests for ledger models.

This module tests:
- Database constraints (amounts, split shares, percents, roles)
- Soft delete managers on participants, categories and expenses
- Case-insensitive category name uniqueness among active rows
- Expense.splits_total()
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from ledger.models import Category, Expense, ExpenseSplit, Participant
from ledger.tests.factories import (
    BalancedExpenseFactory,
    CategoryFactory,
    CoupleFactory,
    ExpenseFactory,
    ExpenseSplitFactory,
    GroupMemberFactory,
    ParticipantFactory,
)


@pytest.mark.django_db
class TestExpenseConstraints:
    def test_amount_must_be_positive(self):
        """A zero amount is rejected by the database."""
        with pytest.raises(IntegrityError), transaction.atomic():
            ExpenseFactory(amount_cents=0)

    def test_split_type_must_be_known(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            ExpenseFactory(split_type="weighted")

    def test_split_share_cannot_be_negative(self):
        expense = ExpenseFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            ExpenseSplitFactory(expense=expense, share_cents=-1)

    def test_split_percent_must_be_in_range(self):
        expense = ExpenseFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            ExpenseSplitFactory(expense=expense, share_percent=Decimal("100.01"))

    def test_one_split_per_participant(self):
        expense = BalancedExpenseFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            ExpenseSplitFactory(expense=expense, share_cents=0)


@pytest.mark.django_db
class TestExpenseSplitsTotal:
    def test_sums_share_cents(self):
        expense = ExpenseFactory(amount_cents=1001)
        other = ParticipantFactory(couple=expense.couple)
        ExpenseSplitFactory(expense=expense, share_cents=500)
        ExpenseSplitFactory(expense=expense, participant=other, share_cents=501)

        assert expense.splits_total() == 1001

    def test_zero_without_splits(self):
        expense = ExpenseFactory()

        assert expense.splits_total() == 0


@pytest.mark.django_db
class TestParticipantConstraints:
    def test_registered_participant_requires_user(self):
        """is_registered=True with no user violates the check constraint."""
        with pytest.raises(IntegrityError), transaction.atomic():
            ParticipantFactory(is_registered=True, user=None)

    def test_default_notification_preferences(self):
        participant = ParticipantFactory()

        assert participant.notification_preferences == {
            "expenses": True,
            "invites": True,
            "reminders": True,
        }

    def test_soft_deleted_hidden_from_default_manager(self):
        participant = ParticipantFactory()

        participant.soft_delete()

        assert not Participant.objects.filter(id=participant.id).exists()
        assert Participant.all_objects.filter(id=participant.id).exists()


@pytest.mark.django_db
class TestCategoryNameUniqueness:
    def test_duplicate_name_ignoring_case_rejected(self):
        couple = CoupleFactory()
        CategoryFactory(couple=couple, name="Travel")

        with pytest.raises(IntegrityError), transaction.atomic():
            CategoryFactory(couple=couple, name="TRAVEL")

    def test_same_name_allowed_in_other_couple(self):
        CategoryFactory(name="Travel")
        CategoryFactory(name="Travel")

        assert Category.objects.filter(name="Travel").count() == 2

    def test_name_reusable_after_soft_delete(self):
        couple = CoupleFactory()
        old = CategoryFactory(couple=couple, name="Travel")
        old.soft_delete()

        CategoryFactory(couple=couple, name="travel")

        assert Category.all_objects.filter(couple=couple).count() == 2


@pytest.mark.django_db
class TestGroupMemberConstraints:
    def test_unique_per_group_and_participant(self):
        membership = GroupMemberFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            GroupMemberFactory(group=membership.group, participant=membership.participant)

    def test_status_must_be_known(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            GroupMemberFactory(status="removed")


@pytest.mark.django_db
class TestExpenseSoftDelete:
    def test_soft_delete_keeps_splits(self):
        expense = BalancedExpenseFactory()

        expense.soft_delete()

        assert not Expense.objects.filter(id=expense.id).exists()
        assert ExpenseSplit.objects.filter(expense_id=expense.id).count() == 1
