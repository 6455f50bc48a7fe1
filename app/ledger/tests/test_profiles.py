"""
Tests for ledger schema profile resolution.
"""

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.db import connection

from ledger.profiles import FULL, LIGHTWEIGHT, get_schema_profile, resolve_schema_profile


class TestResolveSchemaProfile:
    """
    Tests for resolve_schema_profile().

    Verifies:
    - auto picks full on PostgreSQL and lightweight elsewhere
    - explicit names are honored (case-insensitive)
    - full is refused on engines without trigger support
    """

    def test_auto_on_postgresql_is_full(self):
        assert resolve_schema_profile("auto", "postgresql") is FULL

    def test_auto_on_sqlite_is_lightweight(self):
        assert resolve_schema_profile("auto", "sqlite") is LIGHTWEIGHT

    def test_empty_value_behaves_like_auto(self):
        assert resolve_schema_profile("", "sqlite") is LIGHTWEIGHT

    def test_lightweight_allowed_on_postgresql(self):
        assert resolve_schema_profile("Lightweight", "postgresql") is LIGHTWEIGHT

    def test_full_requires_postgresql(self):
        with pytest.raises(ImproperlyConfigured):
            resolve_schema_profile("full", "sqlite")

    def test_unknown_name_rejected(self):
        with pytest.raises(ImproperlyConfigured):
            resolve_schema_profile("strict", "postgresql")

    def test_profiles_enforce_in_exactly_one_layer(self):
        for profile in (FULL, LIGHTWEIGHT):
            assert profile.database_trigger != profile.verifies_in_application


class TestGetSchemaProfile:
    def test_follows_setting_changes(self, settings):
        """Changing LEDGER_SCHEMA_PROFILE clears the cached profile."""
        settings.LEDGER_SCHEMA_PROFILE = "lightweight"

        assert get_schema_profile() is LIGHTWEIGHT

    def test_auto_matches_connection_vendor(self, settings):
        settings.LEDGER_SCHEMA_PROFILE = "auto"

        expected = FULL if connection.vendor == "postgresql" else LIGHTWEIGHT
        assert get_schema_profile() is expected
