"""
Django admin configuration for ledger models.

Provides admin interfaces for:
- Couples and their members
- Participants, categories and groups
- Expenses with read-only splits

Splits are read-only here: editing one share on its own would break the
split balance of the expense.
"""

from django.contrib import admin

from ledger.models import (
    Category,
    Couple,
    CoupleMember,
    Expense,
    ExpenseGroup,
    ExpenseSplit,
    GroupMember,
    Participant,
)


class CoupleMemberInline(admin.TabularInline):
    """Inline display of user memberships in couple admin."""

    model = CoupleMember
    extra = 0
    readonly_fields = ["joined_at"]
    raw_id_fields = ["user"]


class GroupMemberInline(admin.TabularInline):
    model = GroupMember
    extra = 0
    readonly_fields = ["joined_at"]
    raw_id_fields = ["participant"]


class ExpenseSplitInline(admin.TabularInline):
    """Read-only splits of an expense."""

    model = ExpenseSplit
    extra = 0
    max_num = 0
    can_delete = False
    readonly_fields = ["participant", "share_cents", "share_percent"]


@admin.register(Couple)
class CoupleAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "invite_code", "status", "created_by", "created_at"]
    list_filter = ["status", "created_at"]
    search_fields = ["name", "invite_code", "id"]
    readonly_fields = ["invite_code", "created_at", "updated_at"]
    raw_id_fields = ["created_by"]
    inlines = [CoupleMemberInline]


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    """Admin interface for Participant model, including soft-deleted rows."""

    list_display = [
        "id",
        "display_name",
        "email",
        "couple",
        "is_registered",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["is_registered", "created_at"]
    search_fields = ["display_name", "email", "id"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["couple", "user"]

    def get_queryset(self, request):
        return Participant.all_objects.all()


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ["name", "color", "icon", "couple", "is_default", "is_deleted"]
    list_filter = ["is_default"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["couple", "created_by"]

    def get_queryset(self, request):
        return Category.all_objects.all()


@admin.register(ExpenseGroup)
class ExpenseGroupAdmin(admin.ModelAdmin):
    list_display = ["name", "couple", "owner_participant", "is_archived", "created_at"]
    list_filter = ["is_archived", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["couple", "owner_participant", "created_by"]
    inlines = [GroupMemberInline]

    def get_queryset(self, request):
        return ExpenseGroup.all_objects.all()


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    """Admin interface for Expense model. Amounts are read-only."""

    list_display = [
        "id",
        "description",
        "amount_cents",
        "currency",
        "expense_date",
        "split_type",
        "paid_by_participant",
        "is_deleted",
    ]
    list_filter = ["split_type", "currency", "expense_date"]
    search_fields = ["description", "id"]
    readonly_fields = ["amount_cents", "created_at", "updated_at", "deleted_at"]
    raw_id_fields = ["couple", "group", "category", "created_by", "paid_by_participant"]
    inlines = [ExpenseSplitInline]
    ordering = ["-expense_date", "-created_at"]

    def get_queryset(self, request):
        return Expense.all_objects.all()
