"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates regular users with optional password
- create_superuser(): Creates admin users with elevated privileges
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(
            email="mgr_create_user@example.com", password="SecurePass123!"
        )

        assert user.pk is not None
        assert user.email == "mgr_create_user@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        """The domain portion is lowercased, the local part preserved."""
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="x")

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        with pytest.raises(ValueError, match="Email"):
            User.objects.create_user(email="", password="SecurePass123!")

    def test_without_password_sets_unusable_password(self, db):
        user = User.objects.create_user(email="nopass@example.com")

        assert user.has_usable_password() is False

    def test_uppercases_default_currency(self, db):
        """Currency codes are stored upper-case so participants copy a valid code."""
        user = User.objects.create_user(
            email="eur@example.com", password="x", default_currency="eur"
        )

        assert user.default_currency == "EUR"

    def test_default_currency_is_usd(self, db):
        user = User.objects.create_user(email="usd@example.com", password="x")

        assert user.default_currency == "USD"


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_correct_flags(self, db):
        admin = User.objects.create_superuser(
            email="root@example.com", password="AdminPass123!"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.email_verified is True

    def test_raises_valueerror_when_is_staff_is_false(self, db):
        with pytest.raises(ValueError, match="is_staff"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_staff=False
            )

    def test_raises_valueerror_when_is_superuser_is_false(self, db):
        with pytest.raises(ValueError, match="is_superuser"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_superuser=False
            )
