"""
Expense groups and membership reconciliation.

A group is a named subset of participants (a trip, a shared flat). The
creating participant owns the group and always keeps an active membership.

Membership rows are never deleted. sync_group_members() brings the rows
of a group in line with a desired participant set:

    desired and existing   -> reactivated, role corrected
    desired and missing    -> inserted as active
    existing, not desired  -> status "left"

Error codes:
    VALIDATION_ERROR: Blank name, bad color, no participants
    INVALID_PARTICIPANTS: Unknown participant ids, or owner left out
    GROUP_NOT_FOUND: Missing, deleted, archived or in another couple
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from django.utils import timezone

from core.helpers import parse_uuid
from core.services import BaseService, ServiceResult
from ledger.constants import DEFAULT_CURRENCY
from ledger.exceptions import (
    LedgerError,
    LedgerNotFound,
    LedgerValidationError,
    SplitValidationError,
)
from ledger.models import (
    ExpenseGroup,
    GroupMember,
    GroupMemberStatus,
    MemberRole,
    Participant,
)
from ledger.services.bootstrap import LedgerBootstrapService
from ledger.services.categories import normalize_color
from ledger.services.participants import ParticipantService
from ledger.types import GroupDetails


class GroupService(BaseService):
    """CRUD for expense groups of the caller's couple."""

    @classmethod
    def list_groups(cls, user_id) -> ServiceResult[list[GroupDetails]]:
        """Active groups, newest first, each with its active participants."""
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
        except LedgerError as exc:
            return cls.handle_exception(exc, "list groups", logging.WARNING)

        groups = list(
            ExpenseGroup.objects.filter(
                couple_id=context.couple_id, is_archived=False
            ).order_by("-created_at")
        )
        participants_by_group = cls._load_participants(groups)
        return ServiceResult.success(
            [
                GroupDetails(group=group, participants=participants_by_group[group.id])
                for group in groups
            ]
        )

    @classmethod
    def create_group(
        cls,
        user_id,
        *,
        name: str,
        participant_ids: Iterable,
        description: str | None = None,
        color: str | None = None,
        default_currency: str | None = None,
    ) -> ServiceResult[GroupDetails]:
        """
        Create a group owned by the caller's participant.

        Args:
            user_id: ID of the calling user
            name: Group name (trimmed, required)
            participant_ids: At least one participant; the caller is added
            description: Optional free text
            color: Optional #RRGGBB color
            default_currency: ISO 4217 code (default USD)

        Returns:
            ServiceResult with GroupDetails
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)

            group_name = (name or "").strip()
            if not group_name:
                raise LedgerValidationError("Group name is required", field="name")

            requested_ids = list(participant_ids or [])
            if not requested_ids:
                raise LedgerValidationError(
                    "At least one participant is required", field="participantIds"
                )

            participants = ParticipantService.assert_participants_belong_to_couple(
                context.couple_id, [*requested_ids, context.participant_id]
            )
            group_color = normalize_color(color) if color else None

            with cls.atomic():
                group = ExpenseGroup.objects.create(
                    couple_id=context.couple_id,
                    name=group_name,
                    description=description or None,
                    color=group_color,
                    default_currency=(default_currency or DEFAULT_CURRENCY).upper(),
                    is_archived=False,
                    owner_participant_id=context.participant_id,
                    created_by_id=user_id,
                )
                GroupMember.objects.bulk_create(
                    [
                        GroupMember(
                            group=group,
                            participant=participant,
                            role=cls._role_for(participant.id, context.participant_id),
                            status=GroupMemberStatus.ACTIVE,
                        )
                        for participant in participants
                    ]
                )
        except LedgerError as exc:
            return cls.handle_exception(exc, "create group", logging.WARNING)

        cls.get_logger().info(
            f"Created group {group.id} with {len(participants)} participants"
        )
        return ServiceResult.success(
            GroupDetails(group=group, participants=cls._sorted(participants))
        )

    @classmethod
    def update_group(
        cls, user_id, group_id, changes: dict[str, Any]
    ) -> ServiceResult[GroupDetails]:
        """
        Apply a partial update.

        Recognized keys: name, description, color (empty clears it),
        default_currency, is_archived, participant_ids (the full desired
        member set, reconciled with sync_group_members; it must still
        contain the group's owner participant).

        An archived group can only be reached by a request that un-archives
        it. Deleted groups are never reachable.
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            group = cls._get_group(
                context.couple_id,
                group_id,
                include_archived=changes.get("is_archived") is False,
            )

            if changes.get("name") is not None:
                group_name = changes["name"].strip()
                if not group_name:
                    raise LedgerValidationError("Group name is required", field="name")
                group.name = group_name

            if "description" in changes:
                group.description = changes["description"] or None

            if "color" in changes:
                color = changes["color"]
                group.color = normalize_color(color) if color else None

            if changes.get("default_currency"):
                group.default_currency = changes["default_currency"].upper()

            if changes.get("is_archived") is not None:
                group.is_archived = changes["is_archived"]

            with cls.atomic():
                if changes.get("participant_ids") is not None:
                    owner_id = group.owner_participant_id or context.participant_id
                    participants = (
                        ParticipantService.assert_participants_belong_to_couple(
                            context.couple_id, changes["participant_ids"]
                        )
                    )
                    cls._sync_members(group, participants, owner_id)
                group.save()
        except LedgerError as exc:
            return cls.handle_exception(exc, "update group", logging.WARNING)

        cls.get_logger().info(f"Updated group {group.id}")
        return ServiceResult.success(
            GroupDetails(group=group, participants=cls._load_participants([group])[group.id])
        )

    @classmethod
    def delete_group(cls, user_id, group_id) -> ServiceResult[None]:
        """
        Archive and soft delete a group; every membership becomes "left".

        Deletion is final: no later update can reach the group again.
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            group = cls._get_group(context.couple_id, group_id, include_archived=True)

            with cls.atomic():
                group.is_archived = True
                group.soft_delete(extra_fields=["is_archived"])
                GroupMember.objects.filter(group=group).update(
                    status=GroupMemberStatus.LEFT
                )
        except LedgerError as exc:
            return cls.handle_exception(exc, "delete group", logging.WARNING)

        cls.get_logger().info(f"Deleted group {group.id}")
        return ServiceResult.success(None)

    @classmethod
    def sync_group_members(
        cls,
        group: ExpenseGroup,
        desired_participants: Iterable[Participant],
        owner_participant_id,
    ) -> ServiceResult[None]:
        """
        Reconcile the membership rows of a group with a desired set.

        Args:
            group: The group to reconcile
            desired_participants: Participants that should be active members
            owner_participant_id: Must be in the desired set; gets role owner

        Returns:
            ServiceResult (INVALID_PARTICIPANTS when the owner is missing)
        """
        try:
            with cls.atomic():
                cls._sync_members(group, desired_participants, owner_participant_id)
        except LedgerError as exc:
            return cls.handle_exception(exc, "sync group members", logging.WARNING)
        return ServiceResult.success(None)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @classmethod
    def _sync_members(cls, group, desired_participants, owner_participant_id) -> None:
        desired = {participant.id: participant for participant in desired_participants}
        owner_id = parse_uuid(owner_participant_id)

        if owner_id not in desired:
            raise SplitValidationError(
                "Group must include the owner participant",
                error_code="INVALID_PARTICIPANTS",
                field="participantIds",
            )

        existing = {
            membership.participant_id: membership
            for membership in GroupMember.objects.select_for_update().filter(group=group)
        }

        additions = []
        for participant_id in desired:
            role = cls._role_for(participant_id, owner_id)
            membership = existing.get(participant_id)
            if membership is None:
                additions.append(
                    GroupMember(
                        group=group,
                        participant_id=participant_id,
                        role=role,
                        status=GroupMemberStatus.ACTIVE,
                    )
                )
            elif membership.status != GroupMemberStatus.ACTIVE or membership.role != role:
                membership.status = GroupMemberStatus.ACTIVE
                membership.role = role
                membership.save(update_fields=["status", "role", "updated_at"])

        if additions:
            GroupMember.objects.bulk_create(additions)

        departed = [
            membership.id
            for participant_id, membership in existing.items()
            if participant_id not in desired
            and membership.status != GroupMemberStatus.LEFT
        ]
        if departed:
            GroupMember.objects.filter(id__in=departed).update(
                status=GroupMemberStatus.LEFT, updated_at=timezone.now()
            )

        cls.get_logger().info(
            f"Synced group {group.id}: {len(additions)} added, {len(departed)} left"
        )

    @staticmethod
    def _role_for(participant_id, owner_id) -> str:
        return MemberRole.OWNER if participant_id == owner_id else MemberRole.MEMBER

    @staticmethod
    def _get_group(couple_id, group_id, *, include_archived: bool = False) -> ExpenseGroup:
        group_uuid = parse_uuid(group_id)
        group = None
        if group_uuid is not None:
            group = ExpenseGroup.objects.filter(couple_id=couple_id, id=group_uuid).first()
            if group is not None and group.is_archived and not include_archived:
                group = None
        if group is None:
            raise LedgerNotFound("Group not found", error_code="GROUP_NOT_FOUND")
        return group

    @staticmethod
    def _sorted(participants: Iterable[Participant]) -> list[Participant]:
        return sorted(participants, key=lambda participant: participant.display_name)

    @classmethod
    def _load_participants(cls, groups) -> dict:
        """Map group id to its active, non-deleted participants."""
        participants_by_group = defaultdict(list)
        if not groups:
            return participants_by_group

        memberships = GroupMember.objects.filter(
            group__in=groups,
            status=GroupMemberStatus.ACTIVE,
            participant__deleted_at__isnull=True,
        ).select_related("participant")
        for membership in memberships:
            participants_by_group[membership.group_id].append(membership.participant)

        for group_id, participants in participants_by_group.items():
            participants_by_group[group_id] = cls._sorted(participants)
        return participants_by_group
