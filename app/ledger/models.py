"""
Ledger models for shared household expenses.

This module defines the tenant-scoped models of the expense ledger:
- Couple: The tenant; every other ledger row belongs to exactly one couple
- CoupleMember: Links a user account to a couple
- Participant: Someone who can pay for or share an expense (registered or guest)
- Category: Labels for expenses, unique per couple (case-insensitive)
- ExpenseGroup / GroupMember: Named subsets of participants (trips, flats)
- Expense / ExpenseSplit: An amount paid by one participant, split in cents

Invariant:
    For every committed expense, the sum of its split share_cents equals
    amount_cents. Services check this before writing; the split balance
    guard (trigger or read-back) checks it again before commit.

Usage:
    from ledger.models import Expense, ExpenseSplit, SplitType

    expense = Expense.objects.get(id=expense_id)
    assert expense.splits_total() == expense.amount_cents
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum, Value
from django.db.models.functions import Coalesce, Lower
from django.utils import timezone

from core.managers import SoftDeleteManager
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from ledger.constants import (
    DEFAULT_COUPLE_NAME,
    DEFAULT_CURRENCY,
    default_notification_preferences,
)


class CoupleStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    PENDING = "pending", "Pending"
    ARCHIVED = "archived", "Archived"


class MemberRole(models.TextChoices):
    """Role of a user in a couple or of a participant in a group."""

    OWNER = "owner", "Owner"
    MEMBER = "member", "Member"


class CoupleMemberStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INVITED = "invited", "Invited"
    REMOVED = "removed", "Removed"


class GroupMemberStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INVITED = "invited", "Invited"
    LEFT = "left", "Left"


class SplitType(models.TextChoices):
    """
    How an expense amount is divided.

    Values:
        EQUAL: Shares computed by the client, roughly equal
        CUSTOM: Arbitrary cent shares
        PERCENTAGE: Every split carries a percent; percents total 100
    """

    EQUAL = "equal", "Equal"
    CUSTOM = "custom", "Custom"
    PERCENTAGE = "percentage", "Percentage"


class Couple(UUIDPrimaryKeyMixin, BaseModel):
    """
    A ledger tenant.

    Created lazily by the bootstrap service the first time a user touches
    the ledger. All participants, categories, groups and expenses hang off
    a couple and are never visible across couples.

    Fields:
        name: Display name of the ledger
        invite_code: 10 upper-case alphanumerics, unique
        status: active, pending or archived
        created_by: User that caused the couple to be created
    """

    name = models.CharField(max_length=100, default=DEFAULT_COUPLE_NAME)
    invite_code = models.CharField(
        max_length=10,
        unique=True,
        help_text="Code another user can use to join this ledger",
    )
    status = models.CharField(
        max_length=20,
        choices=CoupleStatus.choices,
        default=CoupleStatus.ACTIVE,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_couples",
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(status__in=CoupleStatus.values),
                name="couple_status_valid",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.invite_code})"


class CoupleMember(UUIDPrimaryKeyMixin, BaseModel):
    """Membership of a user account in a couple."""

    couple = models.ForeignKey(
        Couple,
        on_delete=models.CASCADE,
        related_name="members",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="couple_memberships",
    )
    role = models.CharField(
        max_length=20,
        choices=MemberRole.choices,
        default=MemberRole.MEMBER,
    )
    status = models.CharField(
        max_length=20,
        choices=CoupleMemberStatus.choices,
        default=CoupleMemberStatus.ACTIVE,
    )
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["couple", "user"],
                name="unique_couple_member",
            ),
            models.CheckConstraint(
                condition=Q(role__in=MemberRole.values),
                name="couple_member_role_valid",
            ),
            models.CheckConstraint(
                condition=Q(status__in=CoupleMemberStatus.values),
                name="couple_member_status_valid",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} in {self.couple_id} ({self.role})"


class Participant(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    Someone who can pay for or share expenses within a couple.

    Registered participants are linked to a user account; guests are not.
    A registered participant must have a user (checked by the database).

    Fields:
        user: Linked account, null for guests
        display_name: Name shown in the ledger
        email: Optional contact email, unique among active participants
        is_registered: Whether the participant is backed by a user account
        default_currency: Preferred ISO 4217 code
        notification_preferences: {"expenses", "invites", "reminders"} booleans
    """

    couple = models.ForeignKey(
        Couple,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ledger_participants",
    )
    display_name = models.CharField(max_length=100)
    email = models.EmailField(max_length=254, null=True, blank=True)
    is_registered = models.BooleanField(default=False)
    default_currency = models.CharField(max_length=3, default=DEFAULT_CURRENCY)
    notification_preferences = models.JSONField(
        default=default_notification_preferences,
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ["display_name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(is_registered=False) | Q(user__isnull=False),
                name="participant_registered_has_user",
            ),
            models.UniqueConstraint(
                fields=["couple", "user"],
                condition=Q(user__isnull=False),
                name="unique_participant_user_per_couple",
            ),
        ]

    def __str__(self) -> str:
        return self.display_name


class Category(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    Expense category within a couple.

    Names are unique per couple ignoring case, among categories that are not
    soft deleted. Colors are stored upper-case as #RRGGBB.
    """

    couple = models.ForeignKey(
        Couple,
        on_delete=models.CASCADE,
        related_name="categories",
    )
    name = models.CharField(max_length=50)
    color = models.CharField(max_length=7)
    icon = models.CharField(max_length=50, null=True, blank=True)
    is_default = models.BooleanField(
        default=False,
        help_text="Seeded automatically when the ledger was created",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"
        constraints = [
            models.UniqueConstraint(
                Lower("name"),
                "couple",
                condition=Q(deleted_at__isnull=True),
                name="unique_active_category_name",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class ExpenseGroup(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    A named subset of participants, such as a trip or a shared flat.

    Archiving a group also soft deletes it; the memberships survive with
    status "left" so historic expenses keep pointing at valid rows.
    """

    couple = models.ForeignKey(
        Couple,
        on_delete=models.CASCADE,
        related_name="groups",
    )
    name = models.CharField(max_length=100)
    description = models.TextField(null=True, blank=True)
    color = models.CharField(max_length=7, null=True, blank=True)
    default_currency = models.CharField(max_length=3, null=True, blank=True)
    is_archived = models.BooleanField(default=False)
    owner_participant = models.ForeignKey(
        Participant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="owned_groups",
        help_text="Participant that always stays in the group as owner",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class GroupMember(UUIDPrimaryKeyMixin, BaseModel):
    """
    Membership of a participant in a group.

    (group, participant) is unique. Rows are never deleted: leaving a group
    flips the status to "left" and re-joining reactivates the same row.
    """

    group = models.ForeignKey(
        ExpenseGroup,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    participant = models.ForeignKey(
        Participant,
        on_delete=models.CASCADE,
        related_name="group_memberships",
    )
    role = models.CharField(
        max_length=20,
        choices=MemberRole.choices,
        default=MemberRole.MEMBER,
    )
    status = models.CharField(
        max_length=20,
        choices=GroupMemberStatus.choices,
        default=GroupMemberStatus.ACTIVE,
    )
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["joined_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["group", "participant"],
                name="unique_group_member",
            ),
            models.CheckConstraint(
                condition=Q(role__in=MemberRole.values),
                name="group_member_role_valid",
            ),
            models.CheckConstraint(
                condition=Q(status__in=GroupMemberStatus.values),
                name="group_member_status_valid",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.participant_id} in {self.group_id} ({self.status})"


class Expense(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    An amount paid by one participant and shared between several.

    Fields:
        amount_cents: Positive integer amount in the smallest currency unit
        currency: Upper-case ISO 4217 code
        exchange_rate: Stored as given, never used for arithmetic
        expense_date: Calendar date of the expense
        split_type: equal, custom or percentage
        paid_by_participant: Payer; always one of the split participants

    Constraints:
        - amount_cents > 0
        - split_type in SplitType
    """

    couple = models.ForeignKey(
        Couple,
        on_delete=models.CASCADE,
        related_name="expenses",
    )
    group = models.ForeignKey(
        ExpenseGroup,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="expenses",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="expenses",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_expenses",
    )
    paid_by_participant = models.ForeignKey(
        Participant,
        on_delete=models.PROTECT,
        related_name="paid_expenses",
    )
    description = models.CharField(max_length=200)
    amount_cents = models.BigIntegerField(
        help_text="Amount in cents (always positive)",
    )
    currency = models.CharField(max_length=3, default=DEFAULT_CURRENCY)
    exchange_rate = models.DecimalField(
        max_digits=12,
        decimal_places=6,
        null=True,
        blank=True,
    )
    expense_date = models.DateField(db_index=True)
    split_type = models.CharField(
        max_length=20,
        choices=SplitType.choices,
        default=SplitType.EQUAL,
    )
    notes = models.TextField(null=True, blank=True)
    receipt_url = models.CharField(max_length=500, null=True, blank=True)
    location = models.CharField(max_length=255, null=True, blank=True)

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ["-expense_date", "-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_cents__gt=0),
                name="expense_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(split_type__in=SplitType.values),
                name="expense_split_type_valid",
            ),
        ]
        indexes = [
            models.Index(
                fields=["couple", "expense_date"],
                name="expense_couple_date_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.description}: {self.amount_cents} {self.currency}"

    def splits_total(self) -> int:
        """
        Sum of share_cents over this expense's splits, read from the database.

        Returns:
            Total in cents (0 when there are no splits)
        """
        return ExpenseSplit.objects.filter(expense_id=self.pk).aggregate(
            total=Coalesce(
                Sum("share_cents"),
                Value(0),
                output_field=models.BigIntegerField(),
            )
        )["total"]


class ExpenseSplit(UUIDPrimaryKeyMixin, BaseModel):
    """
    One participant's share of an expense.

    Splits are replaced wholesale whenever an expense is updated, so they
    have no soft delete of their own.

    Constraints:
        - share_cents >= 0
        - share_percent is NULL or within [0, 100]
        - one split per (expense, participant)
    """

    expense = models.ForeignKey(
        Expense,
        on_delete=models.CASCADE,
        related_name="splits",
    )
    participant = models.ForeignKey(
        Participant,
        on_delete=models.PROTECT,
        related_name="expense_splits",
    )
    share_cents = models.BigIntegerField()
    share_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["expense", "participant"],
                name="unique_split_participant",
            ),
            models.CheckConstraint(
                condition=Q(share_cents__gte=0),
                name="split_share_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(share_percent__isnull=True)
                | Q(share_percent__gte=0, share_percent__lte=100),
                name="split_percent_in_range",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.participant_id}: {self.share_cents}"
