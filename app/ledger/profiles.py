"""
Schema profiles for the ledger.

A schema profile says how much of the split-sum invariant the database
enforces on its own:

    full         PostgreSQL only. A deferred constraint trigger re-sums the
                 splits of every touched expense at commit time.
    lightweight  Any engine (SQLite for local runs and tests). The expense
                 service re-reads the split total inside the write
                 transaction and raises before commit.

The profile is picked once from settings.LEDGER_SCHEMA_PROFILE
("auto", "full" or "lightweight"); "auto" means full on PostgreSQL and
lightweight everywhere else. Migration 0002 reads the same setting to
decide whether to install the trigger.

Usage:
    from ledger.profiles import get_schema_profile

    if get_schema_profile().verifies_in_application:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.db import connection
from django.dispatch import receiver

AUTO = "auto"


@dataclass(frozen=True)
class SchemaProfile:
    """
    Immutable description of how split balances are enforced.

    Attributes:
        name: "full" or "lightweight"
        database_trigger: Whether the deferred balance trigger is installed
        verifies_in_application: Whether services re-read split totals before commit
    """

    name: str
    database_trigger: bool
    verifies_in_application: bool


FULL = SchemaProfile(name="full", database_trigger=True, verifies_in_application=False)
LIGHTWEIGHT = SchemaProfile(
    name="lightweight", database_trigger=False, verifies_in_application=True
)

PROFILES = {profile.name: profile for profile in (FULL, LIGHTWEIGHT)}


def resolve_schema_profile(requested: str, vendor: str) -> SchemaProfile:
    """
    Map a configured profile name and a database vendor to a profile.

    Args:
        requested: "auto", "full" or "lightweight" (case-insensitive)
        vendor: Django connection vendor, e.g. "postgresql" or "sqlite"

    Raises:
        ImproperlyConfigured: Unknown name, or "full" on a non-PostgreSQL engine
    """
    name = (requested or AUTO).strip().lower()
    if name == AUTO:
        return FULL if vendor == "postgresql" else LIGHTWEIGHT

    try:
        profile = PROFILES[name]
    except KeyError:
        raise ImproperlyConfigured(
            f"LEDGER_SCHEMA_PROFILE must be one of auto, full, lightweight; got {requested!r}"
        ) from None

    if profile.database_trigger and vendor != "postgresql":
        raise ImproperlyConfigured(
            f"The full ledger schema profile needs PostgreSQL, not {vendor}"
        )
    return profile


@lru_cache(maxsize=1)
def get_schema_profile() -> SchemaProfile:
    """Resolve the profile for the default database connection (cached)."""
    return resolve_schema_profile(
        getattr(settings, "LEDGER_SCHEMA_PROFILE", AUTO),
        connection.vendor,
    )


@receiver(setting_changed)
def _reset_schema_profile(*, setting, **kwargs):
    if setting in ("LEDGER_SCHEMA_PROFILE", "DATABASES"):
        get_schema_profile.cache_clear()
