"""
Test configuration and fixtures for ledger tests.

This module provides:
- User fixtures (the caller and an unrelated user for isolation checks)
- A bootstrapped ledger for the caller (couple + own participant)
- Guest participants, a category and a balanced expense
- API client helpers for authenticated requests

Usage:
    def test_example(ledger, make_expense_input):
        result = ExpenseService.create_expense(ledger.user.id, make_expense_input())
        assert result.success
"""

from dataclasses import dataclass
from datetime import date

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from ledger.models import Couple, Participant
from ledger.services import LedgerBootstrapService
from ledger.tests.factories import (
    BalancedExpenseFactory,
    CategoryFactory,
    ParticipantFactory,
)
from ledger.types import ExpenseInput, SplitInput


@dataclass
class Ledger:
    """A user together with their bootstrapped couple and participant."""

    user: object
    couple: Couple
    participant: Participant

    @property
    def couple_id(self):
        return self.couple.id


def bootstrap_ledger(user) -> Ledger:
    context = LedgerBootstrapService.resolve(user.id, ensure_participant=True)
    return Ledger(
        user=user,
        couple=Couple.objects.get(id=context.couple_id),
        participant=Participant.objects.get(id=context.participant_id),
    )


def authenticate(user) -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """The calling user."""
    return UserFactory(display_name="Alex", default_currency="EUR")


@pytest.fixture
def other_user(db):
    """A user with a ledger of their own, used for isolation tests."""
    return UserFactory(display_name="Sam")


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def ledger(user):
    """The caller's couple and own participant, created through the bootstrap."""
    return bootstrap_ledger(user)


@pytest.fixture
def other_ledger(other_user):
    return bootstrap_ledger(other_user)


@pytest.fixture
def me(ledger):
    """The caller's own participant."""
    return ledger.participant


@pytest.fixture
def partner(ledger):
    """A guest participant in the caller's couple."""
    return ParticipantFactory(couple=ledger.couple, display_name="Jordan")


@pytest.fixture
def guest(ledger):
    """A second guest participant in the caller's couple."""
    return ParticipantFactory(couple=ledger.couple, display_name="Casey")


@pytest.fixture
def foreign_participant(other_ledger):
    """A participant that belongs to another couple."""
    return other_ledger.participant


@pytest.fixture
def category(ledger):
    return CategoryFactory(couple=ledger.couple, name="Groceries")


@pytest.fixture
def expense(ledger, me):
    """A stored 10.00 expense paid by the caller with a single balanced split."""
    return BalancedExpenseFactory(
        couple=ledger.couple,
        created_by=ledger.user,
        paid_by_participant=me,
        amount_cents=1000,
    )


@pytest.fixture
def make_expense_input(me, partner):
    """
    Build an ExpenseInput split evenly between the caller and the partner.

    Keyword arguments override any ExpenseInput field.
    """

    def build(**overrides) -> ExpenseInput:
        amount = overrides.pop("amount_cents", 1000)
        # Non-integer amounts are under test themselves; split a plain 1000
        half = amount // 2 if isinstance(amount, int) else 500
        rest = amount - half if isinstance(amount, int) else 500
        values = {
            "description": "Groceries",
            "amount_cents": amount,
            "currency": "USD",
            "expense_date": date(2024, 5, 1),
            "paid_by_participant_id": me.id,
            "splits": [
                SplitInput(participant_id=me.id, share_cents=half),
                SplitInput(participant_id=partner.id, share_cents=rest),
            ],
        }
        values.update(overrides)
        return ExpenseInput(**values)

    return build


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def client_for(db):
    """Factory returning an authenticated client for any user."""
    return authenticate


@pytest.fixture
def auth_client(ledger):
    """Authenticated client for the caller (ledger already bootstrapped)."""
    return authenticate(ledger.user)
