"""
Category registry.

Categories label expenses. Every ledger starts with the default set, which
is seeded the first time categories are listed. Names are unique per
couple, ignoring case, among categories that are not soft deleted.

Error codes:
    VALIDATION_ERROR: Blank name or a color that is not #RRGGBB
    CATEGORY_EXISTS: Another active category has the same name
    CATEGORY_NOT_FOUND: Missing, soft deleted or in another couple
    CATEGORY_IN_USE: An active expense still references the category
"""

from __future__ import annotations

import logging
from typing import Any

from core.helpers import parse_uuid
from core.services import BaseService, ServiceResult
from ledger.constants import COLOR_PATTERN
from ledger.exceptions import (
    LedgerBusinessRuleError,
    LedgerConflict,
    LedgerError,
    LedgerNotFound,
    LedgerValidationError,
)
from ledger.models import Category, Expense
from ledger.services.bootstrap import LedgerBootstrapService


def normalize_color(value: str | None, *, field: str = "color") -> str:
    """
    Validate a #RRGGBB color and return it upper-cased.

    Raises:
        LedgerValidationError: The value is not a six-digit hex color
    """
    color = (value or "").strip()
    if not COLOR_PATTERN.match(color):
        raise LedgerValidationError(
            "Color must be a hex value like #1A2B3C", field=field
        )
    return color.upper()


class CategoryService(BaseService):
    """CRUD for the categories of the caller's couple."""

    @classmethod
    def list_categories(cls, user_id) -> ServiceResult[list[Category]]:
        """
        Active categories of the caller's couple.

        The default categories are created on first use.
        """
        try:
            context = LedgerBootstrapService.resolve(
                user_id, ensure_participant=True, ensure_default_categories=True
            )
        except LedgerError as exc:
            return cls.handle_exception(exc, "list categories", logging.WARNING)

        categories = list(
            Category.objects.filter(couple_id=context.couple_id).order_by("name")
        )
        return ServiceResult.success(categories)

    @classmethod
    def get_default_categories(cls) -> ServiceResult[list[dict]]:
        """Definitions of the categories every new ledger starts with."""
        return ServiceResult.success(LedgerBootstrapService.get_default_categories())

    @classmethod
    def create_category(
        cls,
        user_id,
        *,
        name: str,
        color: str,
        icon: str | None = None,
    ) -> ServiceResult[Category]:
        """
        Create a category in the caller's couple.

        Args:
            user_id: ID of the calling user
            name: Category name (trimmed, required, unique ignoring case)
            color: Hex color #RRGGBB (stored upper-cased)
            icon: Optional icon name

        Returns:
            ServiceResult with the new Category
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)

            category_name = cls._clean_name(name)
            category_color = normalize_color(color)
            cls._assert_name_available(context.couple_id, category_name)

            category = Category.objects.create(
                couple_id=context.couple_id,
                name=category_name,
                color=category_color,
                icon=icon or None,
                is_default=False,
                created_by_id=user_id,
            )
        except LedgerError as exc:
            return cls.handle_exception(exc, "create category", logging.WARNING)

        cls.get_logger().info(
            f"Created category {category.id} in couple {context.couple_id}"
        )
        return ServiceResult.success(category)

    @classmethod
    def update_category(
        cls, user_id, category_id, changes: dict[str, Any]
    ) -> ServiceResult[Category]:
        """
        Apply a partial update.

        Recognized keys: name, color, icon (empty clears it).
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            category = cls._get_category(context.couple_id, category_id)

            if changes.get("name") is not None:
                category_name = cls._clean_name(changes["name"])
                if category_name.lower() != category.name.lower():
                    cls._assert_name_available(
                        context.couple_id, category_name, exclude_id=category.id
                    )
                category.name = category_name

            if changes.get("color") is not None:
                category.color = normalize_color(changes["color"])

            if "icon" in changes:
                category.icon = changes["icon"] or None

            category.save()
        except LedgerError as exc:
            return cls.handle_exception(exc, "update category", logging.WARNING)

        cls.get_logger().info(f"Updated category {category.id}")
        return ServiceResult.success(category)

    @classmethod
    def delete_category(cls, user_id, category_id) -> ServiceResult[None]:
        """Soft delete a category that no active expense uses."""
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            category = cls._get_category(context.couple_id, category_id)

            if Expense.objects.filter(category=category).exists():
                raise LedgerBusinessRuleError(
                    "Cannot delete a category that is used by expenses",
                    error_code="CATEGORY_IN_USE",
                )

            category.soft_delete()
        except LedgerError as exc:
            return cls.handle_exception(exc, "delete category", logging.WARNING)

        cls.get_logger().info(f"Deleted category {category.id}")
        return ServiceResult.success(None)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _clean_name(name: str | None) -> str:
        category_name = (name or "").strip()
        if not category_name:
            raise LedgerValidationError("Category name is required", field="name")
        return category_name

    @staticmethod
    def _get_category(couple_id, category_id) -> Category:
        category_uuid = parse_uuid(category_id)
        category = None
        if category_uuid is not None:
            category = Category.objects.filter(
                couple_id=couple_id, id=category_uuid
            ).first()
        if category is None:
            raise LedgerNotFound("Category not found", error_code="CATEGORY_NOT_FOUND")
        return category

    @staticmethod
    def _assert_name_available(couple_id, name: str, exclude_id=None) -> None:
        duplicates = Category.objects.filter(couple_id=couple_id, name__iexact=name)
        if exclude_id is not None:
            duplicates = duplicates.exclude(id=exclude_id)
        if duplicates.exists():
            raise LedgerConflict(
                "A category with this name already exists",
                error_code="CATEGORY_EXISTS",
                field="name",
            )
