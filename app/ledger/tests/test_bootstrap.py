"""
Tests for LedgerBootstrapService.

The bootstrap runs at the start of every ledger request, so it has to be
idempotent and must never create a second couple for the same user.
"""

from authentication.tests.factories import UserFactory
from ledger.constants import DEFAULT_CATEGORIES, INVITE_CODE_LENGTH
from ledger.models import (
    Category,
    Couple,
    CoupleMember,
    CoupleMemberStatus,
    MemberRole,
    Participant,
)
from ledger.services import LedgerBootstrapService


class TestEnsureLedger:
    """
    Tests for LedgerBootstrapService.ensure_ledger().

    Verifies:
    - First call creates the couple and an owner membership
    - Repeated calls return the same couple
    - Missing users fail with USER_NOT_FOUND
    """

    def test_first_call_creates_couple_and_owner_membership(self, db):
        user = UserFactory()

        result = LedgerBootstrapService.ensure_ledger(user.id)

        assert result.success is True
        couple = Couple.objects.get(id=result.data.couple_id)
        assert couple.created_by == user
        assert len(couple.invite_code) == INVITE_CODE_LENGTH
        assert couple.invite_code.isalnum() and couple.invite_code.isupper()
        membership = CoupleMember.objects.get(couple=couple, user=user)
        assert membership.role == MemberRole.OWNER
        assert membership.status == CoupleMemberStatus.ACTIVE

    def test_without_participant_flag_returns_no_participant(self, db):
        user = UserFactory()

        result = LedgerBootstrapService.ensure_ledger(user.id)

        assert result.data.participant_id is None
        assert not Participant.objects.filter(user=user).exists()

    def test_is_idempotent(self, db):
        user = UserFactory()

        first = LedgerBootstrapService.ensure_ledger(user.id, ensure_participant=True)
        second = LedgerBootstrapService.ensure_ledger(user.id, ensure_participant=True)

        assert first.data == second.data
        assert Couple.objects.filter(created_by=user).count() == 1
        assert Participant.objects.filter(user=user).count() == 1

    def test_unknown_user_fails(self, db):
        result = LedgerBootstrapService.ensure_ledger(987654)

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"


class TestEnsureParticipant:
    def test_participant_copies_user_profile(self, db):
        user = UserFactory(display_name="Alex", default_currency="EUR")

        context = LedgerBootstrapService.resolve(user.id, ensure_participant=True)

        participant = Participant.objects.get(id=context.participant_id)
        assert participant.display_name == "Alex"
        assert participant.email == user.email
        assert participant.default_currency == "EUR"
        assert participant.is_registered is True
        assert participant.notification_preferences == {
            "expenses": True,
            "invites": True,
            "reminders": True,
        }

    def test_nameless_user_gets_fallback_name(self, db):
        user = UserFactory(display_name="")

        context = LedgerBootstrapService.resolve(user.id, ensure_participant=True)

        assert Participant.objects.get(id=context.participant_id).display_name == "You"

    def test_soft_deleted_participant_is_restored(self, ledger):
        """A deleted self participant comes back with the same id."""
        ledger.participant.soft_delete()

        context = LedgerBootstrapService.resolve(ledger.user.id, ensure_participant=True)

        assert context.participant_id == ledger.participant.id
        assert Participant.objects.filter(id=ledger.participant.id).exists()


class TestEnsureDefaultCategories:
    def test_seeds_defaults_once(self, db):
        user = UserFactory()

        context = LedgerBootstrapService.resolve(user.id, ensure_default_categories=True)
        LedgerBootstrapService.resolve(user.id, ensure_default_categories=True)

        categories = Category.objects.filter(couple_id=context.couple_id)
        assert categories.count() == len(DEFAULT_CATEGORIES)
        assert all(category.is_default for category in categories)

    def test_not_reseeded_after_all_deleted(self, ledger):
        """Soft-deleted categories still count as 'the couple has categories'."""
        LedgerBootstrapService.resolve(ledger.user.id, ensure_default_categories=True)
        Category.objects.filter(couple_id=ledger.couple_id).delete()

        LedgerBootstrapService.resolve(ledger.user.id, ensure_default_categories=True)

        assert not Category.objects.filter(couple_id=ledger.couple_id).exists()

    def test_get_default_categories_returns_copies(self):
        definitions = LedgerBootstrapService.get_default_categories()
        definitions[0]["name"] = "Changed"

        assert LedgerBootstrapService.get_default_categories()[0]["name"] == "Food & Dining"
