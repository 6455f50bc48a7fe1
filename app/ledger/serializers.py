"""
Serializers for the ledger API.

Request serializers only check the shape of a payload (types, UUIDs,
dates). Ledger rules such as split totals, currency format and name
uniqueness are checked by the services so every caller gets the same
error codes.

Serializer Hierarchy:
    Requests:
        ExpenseWriteSerializer: Create (full) and update (partial=True)
        ExpenseQuerySerializer: Filters for listing and statistics
        ParticipantWriteSerializer: Participant create/update
        CategoryWriteSerializer: Category create/update
        GroupWriteSerializer: Group create/update

    Responses:
        ExpenseSerializer (with ExpenseSplitSerializer)
        ExpenseStatisticsSerializer
        ParticipantSerializer
        CategorySerializer, DefaultCategorySerializer
        GroupSerializer

Design Decisions:
    - Expenses and categories use snake_case keys, participants and groups
      camelCase, matching what mobile clients already consume
    - Amounts are accepted as numbers and truncated by the services
"""

from __future__ import annotations

from rest_framework import serializers

from ledger.models import Category, Expense, ExpenseSplit, SplitType
from ledger.types import ExpenseFilters, ExpenseInput


# =============================================================================
# Expense Serializers
# =============================================================================


class SplitInputSerializer(serializers.Serializer):
    """One requested share of an expense."""

    participant_id = serializers.UUIDField()
    share_cents = serializers.DecimalField(max_digits=None, decimal_places=None)
    share_percent = serializers.DecimalField(
        max_digits=None, decimal_places=None, required=False, allow_null=True
    )


class ExpenseWriteSerializer(serializers.Serializer):
    """
    Expense payload for create and update.

    Create uses the serializer as is; update passes partial=True so only
    supplied keys reach the service. expected_updated_at is only honored
    on update.
    """

    description = serializers.CharField(allow_blank=True, trim_whitespace=False)
    amount_cents = serializers.DecimalField(max_digits=None, decimal_places=None)
    currency = serializers.CharField(default="USD")
    expense_date = serializers.DateField()
    category_id = serializers.UUIDField(required=False, allow_null=True)
    group_id = serializers.UUIDField(required=False, allow_null=True)
    paid_by_participant_id = serializers.UUIDField(required=False, allow_null=True)
    split_type = serializers.ChoiceField(choices=SplitType.choices, required=False)
    splits = SplitInputSerializer(many=True, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    receipt_url = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=500
    )
    location = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=255
    )
    exchange_rate = serializers.DecimalField(
        max_digits=12, decimal_places=6, required=False, allow_null=True
    )
    expected_updated_at = serializers.DateTimeField(required=False)

    def to_input(self) -> ExpenseInput:
        """Build the service input for a create request."""
        return ExpenseInput.from_dict(self.validated_data)

    def to_changes(self) -> dict:
        """Supplied keys only, for an update request."""
        return dict(self.validated_data)


class ExpenseQuerySerializer(serializers.Serializer):
    """Query parameters shared by the expense list and statistics endpoints."""

    page = serializers.IntegerField(required=False)
    limit = serializers.IntegerField(required=False)
    category_id = serializers.UUIDField(required=False)
    paid_by_participant_id = serializers.UUIDField(required=False)
    group_id = serializers.UUIDField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    min_amount = serializers.DecimalField(
        max_digits=None, decimal_places=None, required=False
    )
    max_amount = serializers.DecimalField(
        max_digits=None, decimal_places=None, required=False
    )
    search = serializers.CharField(required=False, allow_blank=True)

    def to_filters(self) -> ExpenseFilters:
        return ExpenseFilters.from_dict(self.validated_data)


class ExpenseSplitSerializer(serializers.ModelSerializer):
    participant_id = serializers.UUIDField(read_only=True)
    share_percent = serializers.FloatField(read_only=True, allow_null=True)

    class Meta:
        model = ExpenseSplit
        fields = ["participant_id", "share_cents", "share_percent"]
        read_only_fields = fields


class ExpenseSerializer(serializers.ModelSerializer):
    """Expense with its splits."""

    couple_id = serializers.UUIDField(read_only=True)
    group_id = serializers.UUIDField(read_only=True, allow_null=True)
    category_id = serializers.UUIDField(read_only=True, allow_null=True)
    created_by = serializers.IntegerField(source="created_by_id", read_only=True)
    paid_by_participant_id = serializers.UUIDField(read_only=True)
    exchange_rate = serializers.FloatField(read_only=True, allow_null=True)
    splits = ExpenseSplitSerializer(many=True, read_only=True)

    class Meta:
        model = Expense
        fields = [
            "id",
            "couple_id",
            "group_id",
            "category_id",
            "created_by",
            "paid_by_participant_id",
            "description",
            "amount_cents",
            "currency",
            "exchange_rate",
            "expense_date",
            "split_type",
            "notes",
            "receipt_url",
            "location",
            "created_at",
            "updated_at",
            "splits",
        ]
        read_only_fields = fields


class CategoryTotalSerializer(serializers.Serializer):
    category_id = serializers.UUIDField(allow_null=True)
    amount_cents = serializers.IntegerField(source="total_cents")


class ParticipantTotalSerializer(serializers.Serializer):
    participant_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField(source="total_cents")


class ExpenseStatisticsSerializer(serializers.Serializer):
    total_spent_cents = serializers.IntegerField()
    total_transactions = serializers.IntegerField()
    totals_by_category = CategoryTotalSerializer(many=True)
    totals_by_participant = ParticipantTotalSerializer(many=True)


# =============================================================================
# Participant Serializers
# =============================================================================


class NotificationPreferencesSerializer(serializers.Serializer):
    expenses = serializers.BooleanField(required=False)
    invites = serializers.BooleanField(required=False)
    reminders = serializers.BooleanField(required=False)


class ParticipantWriteSerializer(serializers.Serializer):
    """Participant payload; update passes partial=True."""

    name = serializers.CharField(allow_blank=True, trim_whitespace=False)
    email = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    defaultCurrency = serializers.RegexField(r"^[A-Z]{3}$", required=False)
    notifications = NotificationPreferencesSerializer(required=False)

    def to_changes(self) -> dict:
        """Map camelCase request keys to service keyword names."""
        data = self.validated_data
        changes = {}
        if "name" in data:
            changes["name"] = data["name"]
        if "email" in data:
            changes["email"] = data["email"]
        if "defaultCurrency" in data:
            changes["default_currency"] = data["defaultCurrency"]
        if "notifications" in data:
            changes["notifications"] = dict(data["notifications"])
        return changes


class ParticipantSerializer(serializers.Serializer):
    """Participant as returned to clients."""

    id = serializers.UUIDField()
    name = serializers.CharField(source="display_name")
    email = serializers.CharField(allow_null=True)
    avatar = serializers.SerializerMethodField()
    isRegistered = serializers.BooleanField(source="is_registered")
    defaultCurrency = serializers.CharField(source="default_currency")
    lastActiveAt = serializers.SerializerMethodField()
    notifications = serializers.JSONField(source="notification_preferences")

    def get_avatar(self, obj) -> str | None:
        return None

    def get_lastActiveAt(self, obj) -> str | None:
        return None


# =============================================================================
# Category Serializers
# =============================================================================


class CategoryWriteSerializer(serializers.Serializer):
    """Category payload; update passes partial=True."""

    name = serializers.CharField(allow_blank=True, max_length=50)
    color = serializers.CharField()
    icon = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CategorySerializer(serializers.ModelSerializer):
    couple_id = serializers.UUIDField(read_only=True)
    created_by = serializers.IntegerField(
        source="created_by_id", read_only=True, allow_null=True
    )

    class Meta:
        model = Category
        fields = [
            "id",
            "couple_id",
            "name",
            "color",
            "icon",
            "is_default",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DefaultCategorySerializer(serializers.Serializer):
    name = serializers.CharField()
    color = serializers.CharField()
    icon = serializers.CharField(allow_null=True)


# =============================================================================
# Group Serializers
# =============================================================================


class GroupWriteSerializer(serializers.Serializer):
    """Group payload; update passes partial=True."""

    name = serializers.CharField(allow_blank=True, trim_whitespace=False)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    defaultCurrency = serializers.RegexField(r"^[A-Z]{3}$", required=False)
    participantIds = serializers.ListField(
        child=serializers.UUIDField(), required=False
    )
    isArchived = serializers.BooleanField(required=False)

    KEY_MAP = {
        "name": "name",
        "description": "description",
        "color": "color",
        "defaultCurrency": "default_currency",
        "participantIds": "participant_ids",
        "isArchived": "is_archived",
    }

    def to_changes(self) -> dict:
        """Map camelCase request keys to service keyword names."""
        return {
            self.KEY_MAP[key]: value for key, value in self.validated_data.items()
        }


class GroupSerializer(serializers.Serializer):
    """GroupDetails as returned to clients."""

    id = serializers.UUIDField(source="group.id")
    name = serializers.CharField(source="group.name")
    description = serializers.CharField(source="group.description", allow_null=True)
    color = serializers.CharField(source="group.color", allow_null=True)
    defaultCurrency = serializers.CharField(
        source="group.default_currency", allow_null=True
    )
    isArchived = serializers.BooleanField(source="group.is_archived")
    createdAt = serializers.DateTimeField(source="group.created_at")
    updatedAt = serializers.DateTimeField(source="group.updated_at")
    participants = ParticipantSerializer(many=True)
