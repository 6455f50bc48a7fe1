"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    SoftDeleteMixin: Soft delete support driven by a nullable deleted_at

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin

    class Document(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
        name = models.CharField(max_length=100)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
    - SoftDeleteMixin requires SoftDeleteManager (see core.managers)
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Note:
        UUIDs can be generated before the row is inserted, which lets
        services build related rows (expense + splits) in one pass.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class SoftDeleteMixin(models.Model):
    """
    Soft delete support for models.

    A record is deleted when deleted_at is set. Deleted rows stay in the
    table so history (old expenses, former group members) keeps its
    references intact.

    Fields:
        deleted_at: Timestamp when the record was soft deleted (NULL = active)

    Usage:
        from core.managers import SoftDeleteManager

        class Article(SoftDeleteMixin, BaseModel):
            objects = SoftDeleteManager()  # Excludes deleted by default
            all_objects = models.Manager()  # Includes deleted

        article.soft_delete()
    """

    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    @property
    def is_deleted(self) -> bool:
        """Whether this record has been soft deleted."""
        return self.deleted_at is not None

    def soft_delete(self, extra_fields: list[str] | None = None) -> None:
        """
        Mark this record as deleted.

        Idempotent: an already deleted record keeps its original timestamp.

        Args:
            extra_fields: Additional field names to persist in the same save
        """
        if self.deleted_at is None:
            self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at", *(extra_fields or [])])
