"""
Expense and split ledger.

Every write validates the expense and its splits first, then stores the
expense and the complete split set in one transaction and runs the split
balance guard before commit. Updates replace the split set wholesale.
Deletion is soft and final.

Listing and statistics share one filtered queryset, so the totals always
describe exactly the expenses a listing with the same filters returns.

Error codes:
    VALIDATION_ERROR: Bad currency, description, amount or split type
    CATEGORY_NOT_FOUND / GROUP_NOT_FOUND: Reference outside the couple,
        soft deleted, or (groups) archived
    EXPENSE_NOT_FOUND: Missing, soft deleted or in another couple
    EXPENSE_VERSION_CONFLICT: expected_updated_at no longer matches
    Split codes from ledger.services.splits

Usage:
    from ledger.services import ExpenseService
    from ledger.types import ExpenseInput

    result = ExpenseService.create_expense(request.user.id, ExpenseInput(...))
    if result.success:
        expense = result.data  # splits prefetched
"""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.db.models import BigIntegerField, Count, QuerySet, Sum, Value
from django.db.models.functions import Coalesce

from core.helpers import calculate_pagination, parse_uuid
from core.services import BaseService, ServiceResult
from ledger.constants import CURRENCY_PATTERN
from ledger.exceptions import (
    LedgerConflict,
    LedgerError,
    LedgerNotFound,
    LedgerValidationError,
)
from ledger.models import Category, Expense, ExpenseGroup, ExpenseSplit, SplitType
from ledger.services.balance_guard import guard_split_balance
from ledger.services.bootstrap import LedgerBootstrapService
from ledger.services.participants import ParticipantService
from ledger.services.splits import (
    check_split_consistency,
    truncate_cents,
    validate_splits,
)
from ledger.types import (
    CategoryTotal,
    ExpenseFilters,
    ExpenseInput,
    ExpenseStatistics,
    NormalizedSplit,
    PaginatedExpenses,
    ParticipantTotal,
    SplitInput,
)

DESCRIPTION_MAX_LENGTH = 200


class ExpenseService(BaseService):
    """
    Service for expense listing, writes and statistics.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def list_expenses(
        cls, user_id, filters: ExpenseFilters | None = None
    ) -> ServiceResult[PaginatedExpenses]:
        """
        One page of active expenses, newest expense_date first.

        Args:
            user_id: ID of the calling user
            filters: Filters plus page/limit (limit clamped to 1..LEDGER_MAX_PAGE_SIZE)

        Returns:
            ServiceResult with PaginatedExpenses (splits prefetched)
        """
        filters = filters or ExpenseFilters()
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            queryset = cls._filtered_queryset(context.couple_id, filters)
        except LedgerError as exc:
            return cls.handle_exception(exc, "list expenses", logging.WARNING)

        page, limit = cls._page_bounds(filters)
        pagination = calculate_pagination(queryset.count(), page, limit)
        offset = pagination["offset"]
        expenses = list(
            queryset.prefetch_related("splits")[offset : offset + limit]
        )

        return ServiceResult.success(
            PaginatedExpenses(
                expenses=expenses,
                page=page,
                limit=limit,
                total=pagination["total"],
                has_more=pagination["has_more"],
            )
        )

    @classmethod
    def get_expense(cls, user_id, expense_id) -> ServiceResult[Expense]:
        """Fetch one active expense of the caller's couple with its splits."""
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            expense = cls._get_expense(
                Expense.objects.prefetch_related("splits"), context.couple_id, expense_id
            )
        except LedgerError as exc:
            return cls.handle_exception(exc, "get expense", logging.WARNING)

        return ServiceResult.success(expense)

    @classmethod
    def create_expense(cls, user_id, params: ExpenseInput) -> ServiceResult[Expense]:
        """
        Create an expense and its splits atomically.

        Args:
            user_id: ID of the calling user
            params: Expense fields and requested splits

        Returns:
            ServiceResult with the stored Expense (splits prefetched)
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            couple_id = context.couple_id

            currency = cls._clean_currency(params.currency)
            description = cls._clean_description(params.description)
            amount_cents = cls._clean_amount(params.amount_cents)
            split_type = cls._clean_split_type(params.split_type or SplitType.EQUAL)
            cls._assert_category(couple_id, params.category_id)
            cls._assert_group(couple_id, params.group_id)

            splits = validate_splits(
                couple_id,
                params.splits,
                amount_cents,
                split_type,
                params.paid_by_participant_id,
            )

            with cls.atomic():
                expense = Expense.objects.create(
                    couple_id=couple_id,
                    group_id=params.group_id or None,
                    category_id=params.category_id or None,
                    created_by_id=user_id,
                    paid_by_participant_id=parse_uuid(params.paid_by_participant_id),
                    description=description,
                    amount_cents=amount_cents,
                    currency=currency,
                    exchange_rate=params.exchange_rate,
                    expense_date=params.expense_date,
                    split_type=split_type,
                    notes=cls._optional_text(params.notes),
                    receipt_url=cls._optional_text(params.receipt_url),
                    location=cls._optional_text(params.location),
                )
                cls._write_splits(expense, splits)
                guard_split_balance(expense)
        except LedgerError as exc:
            return cls.handle_exception(exc, "create expense", logging.WARNING)

        cls.get_logger().info(
            f"Created expense {expense.id} ({amount_cents} {currency}, "
            f"{len(splits)} splits) in couple {couple_id}"
        )
        return ServiceResult.success(cls._reload(expense.id))

    @classmethod
    def update_expense(
        cls, user_id, expense_id, changes: dict[str, Any]
    ) -> ServiceResult[Expense]:
        """
        Apply a partial update and replace the split set.

        Recognized keys: description, amount_cents, currency, expense_date,
        split_type, paid_by_participant_id, category_id, group_id,
        exchange_rate, notes, receipt_url, location, splits and
        expected_updated_at. Keys that are absent leave the field unchanged;
        category_id, group_id and exchange_rate can be cleared with None.

        Without "splits" the stored splits are kept and re-checked against
        the new amount, split type and payer.

        With "expected_updated_at" the update fails with
        EXPENSE_VERSION_CONFLICT unless it matches the stored updated_at.
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            couple_id = context.couple_id

            with cls.atomic():
                expense = cls._get_expense(
                    Expense.objects.select_for_update(), couple_id, expense_id
                )

                expected = changes.get("expected_updated_at")
                if expected is not None and expected != expense.updated_at:
                    raise LedgerConflict(
                        "The expense was changed by someone else",
                        error_code="EXPENSE_VERSION_CONFLICT",
                        details={"updated_at": expense.updated_at.isoformat()},
                    )

                cls._apply_changes(expense, couple_id, changes)

                if changes.get("splits") is not None:
                    splits = validate_splits(
                        couple_id,
                        [
                            split if isinstance(split, SplitInput) else SplitInput.from_dict(split)
                            for split in changes["splits"]
                        ],
                        expense.amount_cents,
                        expense.split_type,
                        expense.paid_by_participant_id,
                    )
                else:
                    splits = [
                        NormalizedSplit(
                            participant_id=split.participant_id,
                            share_cents=split.share_cents,
                            share_percent=split.share_percent,
                        )
                        for split in ExpenseSplit.objects.filter(expense=expense)
                    ]
                    check_split_consistency(
                        splits,
                        expense.amount_cents,
                        expense.split_type,
                        expense.paid_by_participant_id,
                    )

                expense.save()
                ExpenseSplit.objects.filter(expense=expense).delete()
                cls._write_splits(expense, splits)
                guard_split_balance(expense)
        except LedgerError as exc:
            return cls.handle_exception(exc, "update expense", logging.WARNING)

        cls.get_logger().info(f"Updated expense {expense.id} ({len(splits)} splits)")
        return ServiceResult.success(cls._reload(expense.id))

    @classmethod
    def delete_expense(cls, user_id, expense_id) -> ServiceResult[None]:
        """Soft delete an expense. Its splits stay for history."""
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            expense = cls._get_expense(Expense.objects, context.couple_id, expense_id)
            expense.soft_delete()
        except LedgerError as exc:
            return cls.handle_exception(exc, "delete expense", logging.WARNING)

        cls.get_logger().info(f"Deleted expense {expense.id}")
        return ServiceResult.success(None)

    @classmethod
    def get_statistics(
        cls, user_id, filters: ExpenseFilters | None = None
    ) -> ServiceResult[ExpenseStatistics]:
        """
        Totals over the same expenses list_expenses() would return.

        Paging fields of the filters are ignored.
        """
        filters = filters or ExpenseFilters()
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            queryset = cls._filtered_queryset(context.couple_id, filters).order_by()
        except LedgerError as exc:
            return cls.handle_exception(exc, "expense statistics", logging.WARNING)

        totals = queryset.aggregate(
            total_spent=Coalesce(
                Sum("amount_cents"), Value(0), output_field=BigIntegerField()
            ),
            total_transactions=Count("id"),
        )
        by_category = (
            queryset.values("category_id")
            .annotate(total=Sum("amount_cents"))
            .order_by("category_id")
        )
        by_participant = (
            queryset.values("paid_by_participant_id")
            .annotate(total=Sum("amount_cents"))
            .order_by("paid_by_participant_id")
        )

        return ServiceResult.success(
            ExpenseStatistics(
                total_spent_cents=totals["total_spent"],
                total_transactions=totals["total_transactions"],
                totals_by_category=[
                    CategoryTotal(category_id=row["category_id"], total_cents=row["total"])
                    for row in by_category
                ],
                totals_by_participant=[
                    ParticipantTotal(
                        participant_id=row["paid_by_participant_id"],
                        total_cents=row["total"],
                    )
                    for row in by_participant
                ],
            )
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @classmethod
    def _filtered_queryset(cls, couple_id, filters: ExpenseFilters) -> QuerySet:
        queryset = Expense.objects.filter(couple_id=couple_id)

        if filters.category_id:
            queryset = queryset.filter(
                category_id=cls._filter_id(filters.category_id, "category_id")
            )
        if filters.paid_by_participant_id:
            queryset = queryset.filter(
                paid_by_participant_id=cls._filter_id(
                    filters.paid_by_participant_id, "paid_by_participant_id"
                )
            )
        if filters.group_id:
            queryset = queryset.filter(group_id=cls._filter_id(filters.group_id, "group_id"))
        if filters.start_date:
            queryset = queryset.filter(expense_date__gte=filters.start_date)
        if filters.end_date:
            queryset = queryset.filter(expense_date__lte=filters.end_date)
        if filters.min_amount is not None:
            queryset = queryset.filter(
                amount_cents__gte=cls._filter_amount(filters.min_amount, "min_amount")
            )
        if filters.max_amount is not None:
            queryset = queryset.filter(
                amount_cents__lte=cls._filter_amount(filters.max_amount, "max_amount")
            )
        if filters.search and filters.search.strip():
            queryset = queryset.filter(description__icontains=filters.search.strip())

        return queryset.order_by("-expense_date", "-created_at")

    @staticmethod
    def _page_bounds(filters: ExpenseFilters) -> tuple[int, int]:
        default_limit = getattr(settings, "LEDGER_DEFAULT_PAGE_SIZE", 50)
        max_limit = getattr(settings, "LEDGER_MAX_PAGE_SIZE", 100)
        page = max(1, int(filters.page or 1))
        limit = filters.limit if filters.limit is not None else default_limit
        return page, max(1, min(max_limit, int(limit)))

    @staticmethod
    def _get_expense(queryset: QuerySet, couple_id, expense_id) -> Expense:
        expense_uuid = parse_uuid(expense_id)
        expense = None
        if expense_uuid is not None:
            expense = queryset.filter(couple_id=couple_id, id=expense_uuid).first()
        if expense is None:
            raise LedgerNotFound("Expense not found", error_code="EXPENSE_NOT_FOUND")
        return expense

    @staticmethod
    def _reload(expense_id) -> Expense:
        return Expense.objects.prefetch_related("splits").get(pk=expense_id)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _write_splits(expense: Expense, splits: list[NormalizedSplit]) -> None:
        ExpenseSplit.objects.bulk_create(
            [
                ExpenseSplit(
                    expense=expense,
                    participant_id=split.participant_id,
                    share_cents=split.share_cents,
                    share_percent=split.share_percent,
                )
                for split in splits
            ]
        )

    @classmethod
    def _apply_changes(cls, expense: Expense, couple_id, changes: dict[str, Any]) -> None:
        if changes.get("currency"):
            expense.currency = cls._clean_currency(changes["currency"])

        if changes.get("description") is not None:
            expense.description = cls._clean_description(changes["description"])

        if changes.get("amount_cents") is not None:
            expense.amount_cents = cls._clean_amount(changes["amount_cents"])

        if changes.get("split_type"):
            expense.split_type = cls._clean_split_type(changes["split_type"])

        if "category_id" in changes:
            cls._assert_category(couple_id, changes["category_id"])
            expense.category_id = changes["category_id"] or None

        if "group_id" in changes:
            cls._assert_group(couple_id, changes["group_id"])
            expense.group_id = changes["group_id"] or None

        if changes.get("paid_by_participant_id"):
            payer = ParticipantService.assert_participants_belong_to_couple(
                couple_id, [changes["paid_by_participant_id"]]
            )[0]
            expense.paid_by_participant_id = payer.id

        if changes.get("expense_date"):
            expense.expense_date = changes["expense_date"]

        if "exchange_rate" in changes:
            expense.exchange_rate = changes["exchange_rate"]

        for text_field in ("notes", "receipt_url", "location"):
            if text_field in changes:
                setattr(expense, text_field, cls._optional_text(changes[text_field]))

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _clean_currency(currency: str | None) -> str:
        normalized = (currency or "").upper()
        if not CURRENCY_PATTERN.match(normalized):
            raise LedgerValidationError(
                "Currency must be a 3-letter ISO code", field="currency"
            )
        return normalized

    @staticmethod
    def _clean_description(description: str | None) -> str:
        normalized = (description or "").strip()
        if not normalized:
            raise LedgerValidationError("Description is required", field="description")
        if len(normalized) > DESCRIPTION_MAX_LENGTH:
            raise LedgerValidationError(
                f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
                field="description",
            )
        return normalized

    @staticmethod
    def _clean_amount(value) -> int:
        try:
            amount_cents = truncate_cents(value)
        except ValueError as exc:
            raise LedgerValidationError(
                "Amount must be a number", field="amount_cents"
            ) from exc
        if amount_cents <= 0:
            raise LedgerValidationError(
                "Amount must be greater than zero", field="amount_cents"
            )
        return amount_cents

    @staticmethod
    def _clean_split_type(split_type: str) -> str:
        if split_type not in SplitType.values:
            raise LedgerValidationError(
                "Split type must be equal, custom or percentage", field="split_type"
            )
        return split_type

    @staticmethod
    def _filter_amount(value, field: str) -> int:
        try:
            return truncate_cents(value)
        except ValueError as exc:
            raise LedgerValidationError("Amount filter must be a number", field=field) from exc

    @staticmethod
    def _filter_id(value, field: str):
        identifier = parse_uuid(value)
        if identifier is None:
            raise LedgerValidationError("Filter id must be a UUID", field=field)
        return identifier

    @staticmethod
    def _optional_text(value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @staticmethod
    def _assert_category(couple_id, category_id) -> None:
        if not category_id:
            return
        category_uuid = parse_uuid(category_id)
        if category_uuid is None or not Category.objects.filter(
            couple_id=couple_id, id=category_uuid
        ).exists():
            raise LedgerNotFound(
                "Category not found for this ledger",
                error_code="CATEGORY_NOT_FOUND",
                field="category_id",
            )

    @staticmethod
    def _assert_group(couple_id, group_id) -> None:
        if not group_id:
            return
        group_uuid = parse_uuid(group_id)
        if group_uuid is None or not ExpenseGroup.objects.filter(
            couple_id=couple_id, id=group_uuid, is_archived=False
        ).exists():
            raise LedgerNotFound(
                "Group not found for this ledger",
                error_code="GROUP_NOT_FOUND",
                field="group_id",
            )
