"""
ViewSets for the ledger API.

This module provides REST API endpoints for the shared expense ledger:
- ExpenseViewSet: Expense CRUD plus statistics
- ParticipantViewSet: Participant directory
- CategoryViewSet: Category registry plus the default definitions
- GroupViewSet: Expense groups

URL Structure:
    /api/v1/expenses/               GET, POST
    /api/v1/expenses/statistics/    GET
    /api/v1/expenses/{id}/          GET, PUT, PATCH, DELETE
    /api/v1/participants/           GET, POST
    /api/v1/participants/{id}/      PUT, PATCH, DELETE
    /api/v1/categories/             GET, POST
    /api/v1/categories/default/     GET
    /api/v1/categories/{id}/        PUT, PATCH, DELETE
    /api/v1/groups/                 GET, POST
    /api/v1/groups/{id}/            PUT, PATCH, DELETE

Design Decisions:
    - Every response uses the ServiceResult envelope
      ({"success": ..., "data": ...} or the error fields)
    - Serializers check payload shape, services check ledger rules
    - Error codes map to statuses through ledger.exceptions.http_status_for
    - PUT and PATCH are both partial updates
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.services import ServiceResult
from ledger.exceptions import http_status_for
from ledger.serializers import (
    CategorySerializer,
    CategoryWriteSerializer,
    DefaultCategorySerializer,
    ExpenseQuerySerializer,
    ExpenseSerializer,
    ExpenseStatisticsSerializer,
    ExpenseWriteSerializer,
    GroupSerializer,
    GroupWriteSerializer,
    ParticipantSerializer,
    ParticipantWriteSerializer,
)
from ledger.services import (
    CategoryService,
    ExpenseService,
    GroupService,
    ParticipantService,
)

UUID_LOOKUP = r"[0-9a-fA-F-]{36}"


# =============================================================================
# Response Helpers
# =============================================================================


def failure_response(result: ServiceResult) -> Response:
    """Envelope for a failed ServiceResult, with the status for its code."""
    return Response(result.to_response(), status=http_status_for(result.error_code))


def invalid_request_response(serializer) -> Response:
    """Envelope for a payload rejected by a serializer."""
    result = ServiceResult.failure(
        "Invalid request payload",
        error_code="VALIDATION_ERROR",
        errors=serializer.errors,
    )
    return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)


def success_response(data, status_code: int = status.HTTP_200_OK) -> Response:
    return Response(ServiceResult.success(data).to_response(), status=status_code)


class LedgerViewSet(viewsets.ViewSet):
    """Base for ledger viewsets: authenticated, UUID lookups."""

    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_LOOKUP

    def update(self, request, pk=None):
        """PUT behaves like PATCH."""
        return self.partial_update(request, pk=pk)


# =============================================================================
# Expenses
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_expenses",
        summary="List expenses",
        parameters=[ExpenseQuerySerializer],
        tags=["Ledger - Expenses"],
    ),
    create=extend_schema(
        operation_id="create_expense",
        summary="Create expense",
        request=ExpenseWriteSerializer,
        responses={201: ExpenseSerializer},
        tags=["Ledger - Expenses"],
    ),
    retrieve=extend_schema(
        operation_id="get_expense",
        summary="Get expense",
        responses={200: ExpenseSerializer, 404: OpenApiResponse(description="Expense not found")},
        tags=["Ledger - Expenses"],
    ),
    update=extend_schema(
        operation_id="replace_expense",
        summary="Update expense (PUT)",
        request=ExpenseWriteSerializer,
        responses={200: ExpenseSerializer},
        tags=["Ledger - Expenses"],
    ),
    partial_update=extend_schema(
        operation_id="update_expense",
        summary="Update expense",
        request=ExpenseWriteSerializer,
        responses={
            200: ExpenseSerializer,
            409: OpenApiResponse(description="expected_updated_at is stale"),
        },
        tags=["Ledger - Expenses"],
    ),
    destroy=extend_schema(
        operation_id="delete_expense",
        summary="Delete expense",
        responses={204: None},
        tags=["Ledger - Expenses"],
    ),
)
class ExpenseViewSet(LedgerViewSet):
    """
    ViewSet for expenses.

    list:
        One page of active expenses, newest first, with pagination metadata.

    create:
        Create an expense and its splits. Split shares must add up to
        amount_cents exactly and the payer must be one of the splits.

    partial_update:
        Update fields and optionally replace the splits. Send
        expected_updated_at to fail with 409 if someone else saved first.

    destroy:
        Soft delete the expense.

    statistics:
        Totals over the expenses matching the same filters as list.
    """

    def list(self, request):
        query = ExpenseQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_request_response(query)

        result = ExpenseService.list_expenses(request.user.id, query.to_filters())
        if not result.success:
            return failure_response(result)

        page = result.data
        return success_response(
            {
                "expenses": ExpenseSerializer(page.expenses, many=True).data,
                "pagination": {
                    "page": page.page,
                    "limit": page.limit,
                    "total": page.total,
                    "has_more": page.has_more,
                },
            }
        )

    def create(self, request):
        serializer = ExpenseWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = ExpenseService.create_expense(request.user.id, serializer.to_input())
        if not result.success:
            return failure_response(result)

        return success_response(
            {"expense": ExpenseSerializer(result.data).data},
            status.HTTP_201_CREATED,
        )

    def retrieve(self, request, pk=None):
        result = ExpenseService.get_expense(request.user.id, pk)
        if not result.success:
            return failure_response(result)

        return success_response({"expense": ExpenseSerializer(result.data).data})

    def partial_update(self, request, pk=None):
        serializer = ExpenseWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = ExpenseService.update_expense(
            request.user.id, pk, serializer.to_changes()
        )
        if not result.success:
            return failure_response(result)

        return success_response({"expense": ExpenseSerializer(result.data).data})

    def destroy(self, request, pk=None):
        result = ExpenseService.delete_expense(request.user.id, pk)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="get_expense_statistics",
        summary="Expense statistics",
        parameters=[ExpenseQuerySerializer],
        responses={200: ExpenseStatisticsSerializer},
        tags=["Ledger - Expenses"],
    )
    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request):
        query = ExpenseQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return invalid_request_response(query)

        result = ExpenseService.get_statistics(request.user.id, query.to_filters())
        if not result.success:
            return failure_response(result)

        return success_response(
            {"statistics": ExpenseStatisticsSerializer(result.data).data}
        )


# =============================================================================
# Participants
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_participants",
        summary="List participants",
        responses={200: ParticipantSerializer(many=True)},
        tags=["Ledger - Participants"],
    ),
    create=extend_schema(
        operation_id="create_participant",
        summary="Add participant",
        request=ParticipantWriteSerializer,
        responses={201: ParticipantSerializer},
        tags=["Ledger - Participants"],
    ),
    update=extend_schema(
        operation_id="replace_participant",
        summary="Update participant (PUT)",
        request=ParticipantWriteSerializer,
        responses={200: ParticipantSerializer},
        tags=["Ledger - Participants"],
    ),
    partial_update=extend_schema(
        operation_id="update_participant",
        summary="Update participant",
        request=ParticipantWriteSerializer,
        responses={200: ParticipantSerializer},
        tags=["Ledger - Participants"],
    ),
    destroy=extend_schema(
        operation_id="delete_participant",
        summary="Remove participant",
        responses={204: None},
        tags=["Ledger - Participants"],
    ),
)
class ParticipantViewSet(LedgerViewSet):
    """
    ViewSet for participants.

    destroy:
        Soft delete a participant and remove it from every group.
        The caller's own participant cannot be removed.
    """

    def list(self, request):
        result = ParticipantService.list_participants(request.user.id)
        if not result.success:
            return failure_response(result)

        return success_response(
            {"participants": ParticipantSerializer(result.data, many=True).data}
        )

    def create(self, request):
        serializer = ParticipantWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = ParticipantService.create_participant(
            request.user.id, **serializer.to_changes()
        )
        if not result.success:
            return failure_response(result)

        return success_response(
            {"participant": ParticipantSerializer(result.data).data},
            status.HTTP_201_CREATED,
        )

    def partial_update(self, request, pk=None):
        serializer = ParticipantWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = ParticipantService.update_participant(
            request.user.id, pk, serializer.to_changes()
        )
        if not result.success:
            return failure_response(result)

        return success_response({"participant": ParticipantSerializer(result.data).data})

    def destroy(self, request, pk=None):
        result = ParticipantService.delete_participant(request.user.id, pk)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Categories
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_categories",
        summary="List categories",
        responses={200: CategorySerializer(many=True)},
        tags=["Ledger - Categories"],
    ),
    create=extend_schema(
        operation_id="create_category",
        summary="Create category",
        request=CategoryWriteSerializer,
        responses={201: CategorySerializer},
        tags=["Ledger - Categories"],
    ),
    update=extend_schema(
        operation_id="replace_category",
        summary="Update category (PUT)",
        request=CategoryWriteSerializer,
        responses={200: CategorySerializer},
        tags=["Ledger - Categories"],
    ),
    partial_update=extend_schema(
        operation_id="update_category",
        summary="Update category",
        request=CategoryWriteSerializer,
        responses={200: CategorySerializer},
        tags=["Ledger - Categories"],
    ),
    destroy=extend_schema(
        operation_id="delete_category",
        summary="Delete category",
        responses={204: None},
        tags=["Ledger - Categories"],
    ),
)
class CategoryViewSet(LedgerViewSet):
    """ViewSet for categories. Listing seeds the defaults on first use."""

    def list(self, request):
        result = CategoryService.list_categories(request.user.id)
        if not result.success:
            return failure_response(result)

        return success_response(
            {"categories": CategorySerializer(result.data, many=True).data}
        )

    def create(self, request):
        serializer = CategoryWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = CategoryService.create_category(
            request.user.id, **serializer.validated_data
        )
        if not result.success:
            return failure_response(result)

        return success_response(
            {"category": CategorySerializer(result.data).data},
            status.HTTP_201_CREATED,
        )

    def partial_update(self, request, pk=None):
        serializer = CategoryWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = CategoryService.update_category(
            request.user.id, pk, dict(serializer.validated_data)
        )
        if not result.success:
            return failure_response(result)

        return success_response({"category": CategorySerializer(result.data).data})

    def destroy(self, request, pk=None):
        result = CategoryService.delete_category(request.user.id, pk)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="list_default_categories",
        summary="Default category definitions",
        responses={200: DefaultCategorySerializer(many=True)},
        tags=["Ledger - Categories"],
    )
    @action(detail=False, methods=["get"], url_path="default")
    def default(self, request):
        result = CategoryService.get_default_categories()
        return success_response(
            {"categories": DefaultCategorySerializer(result.data, many=True).data}
        )


# =============================================================================
# Groups
# =============================================================================


@extend_schema_view(
    list=extend_schema(
        operation_id="list_groups",
        summary="List groups",
        responses={200: GroupSerializer(many=True)},
        tags=["Ledger - Groups"],
    ),
    create=extend_schema(
        operation_id="create_group",
        summary="Create group",
        request=GroupWriteSerializer,
        responses={201: GroupSerializer},
        tags=["Ledger - Groups"],
    ),
    update=extend_schema(
        operation_id="replace_group",
        summary="Update group (PUT)",
        request=GroupWriteSerializer,
        responses={200: GroupSerializer},
        tags=["Ledger - Groups"],
    ),
    partial_update=extend_schema(
        operation_id="update_group",
        summary="Update group",
        request=GroupWriteSerializer,
        responses={200: GroupSerializer},
        tags=["Ledger - Groups"],
    ),
    destroy=extend_schema(
        operation_id="delete_group",
        summary="Delete group",
        responses={204: None},
        tags=["Ledger - Groups"],
    ),
)
class GroupViewSet(LedgerViewSet):
    """
    ViewSet for expense groups.

    partial_update:
        participantIds replaces the member set and must include the group's
        owner. isArchived archives or restores the group.
    """

    def list(self, request):
        result = GroupService.list_groups(request.user.id)
        if not result.success:
            return failure_response(result)

        return success_response({"groups": GroupSerializer(result.data, many=True).data})

    def create(self, request):
        serializer = GroupWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        changes = serializer.to_changes()
        changes.pop("is_archived", None)
        result = GroupService.create_group(
            request.user.id,
            name=changes.pop("name"),
            participant_ids=changes.pop("participant_ids", []),
            **changes,
        )
        if not result.success:
            return failure_response(result)

        return success_response(
            {"group": GroupSerializer(result.data).data},
            status.HTTP_201_CREATED,
        )

    def partial_update(self, request, pk=None):
        serializer = GroupWriteSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_request_response(serializer)

        result = GroupService.update_group(request.user.id, pk, serializer.to_changes())
        if not result.success:
            return failure_response(result)

        return success_response({"group": GroupSerializer(result.data).data})

    def destroy(self, request, pk=None):
        result = GroupService.delete_group(request.user.id, pk)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)
