"""
Participant directory.

Participants are the people expenses are split between. The caller's own
participant is created by the bootstrap; everyone else is added here as
an unregistered guest.

Error codes:
    VALIDATION_ERROR: Blank name
    PARTICIPANT_EMAIL_EXISTS: Another active participant uses the email
    PARTICIPANT_NOT_FOUND: Missing, soft deleted or in another couple
    CANNOT_REMOVE_SELF: Attempt to delete the caller's own participant
    INVALID_PARTICIPANTS: Referenced ids are not active participants of the couple
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from core.helpers import parse_uuid
from core.services import BaseService, ServiceResult
from ledger.constants import (
    DEFAULT_CURRENCY,
    NOTIFICATION_KEYS,
    default_notification_preferences,
)
from ledger.exceptions import (
    LedgerBusinessRuleError,
    LedgerConflict,
    LedgerError,
    LedgerNotFound,
    LedgerValidationError,
    SplitValidationError,
)
from ledger.models import GroupMember, GroupMemberStatus, Participant
from ledger.services.bootstrap import LedgerBootstrapService


def merge_notification_preferences(
    current: dict | None, updates: dict | None
) -> dict[str, bool]:
    """
    Overlay boolean updates on the current preferences.

    Missing keys fall back to the defaults; non-boolean update values and
    unknown keys are ignored.
    """
    merged = default_notification_preferences()
    merged.update(
        {key: value for key, value in (current or {}).items() if key in NOTIFICATION_KEYS}
    )
    for key, value in (updates or {}).items():
        if key in NOTIFICATION_KEYS and isinstance(value, bool):
            merged[key] = value
    return merged


class ParticipantService(BaseService):
    """CRUD for participants of the caller's couple."""

    @classmethod
    def list_participants(cls, user_id) -> ServiceResult[list[Participant]]:
        """Active participants of the caller's couple, ordered by display name."""
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
        except LedgerError as exc:
            return cls.handle_exception(exc, "list participants", logging.WARNING)

        participants = list(
            Participant.objects.filter(couple_id=context.couple_id).order_by(
                "display_name"
            )
        )
        return ServiceResult.success(participants)

    @classmethod
    def create_participant(
        cls,
        user_id,
        *,
        name: str,
        email: str | None = None,
        default_currency: str | None = None,
        notifications: dict | None = None,
    ) -> ServiceResult[Participant]:
        """
        Add an unregistered guest participant.

        Args:
            user_id: ID of the calling user
            name: Display name (trimmed, required)
            email: Optional email, unique among active participants of the couple
            default_currency: ISO 4217 code (default USD)
            notifications: Partial notification preferences

        Returns:
            ServiceResult with the new Participant
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)

            display_name = (name or "").strip()
            if not display_name:
                raise LedgerValidationError("Participant name is required", field="name")

            email = email or None
            if email:
                cls._assert_email_available(context.couple_id, email)

            participant = Participant.objects.create(
                couple_id=context.couple_id,
                user=None,
                display_name=display_name,
                email=email,
                is_registered=False,
                default_currency=(default_currency or DEFAULT_CURRENCY).upper(),
                notification_preferences=merge_notification_preferences(
                    None, notifications
                ),
            )
        except LedgerError as exc:
            return cls.handle_exception(exc, "create participant", logging.WARNING)

        cls.get_logger().info(
            f"Created participant {participant.id} in couple {context.couple_id}"
        )
        return ServiceResult.success(participant)

    @classmethod
    def update_participant(
        cls, user_id, participant_id, changes: dict[str, Any]
    ) -> ServiceResult[Participant]:
        """
        Apply a partial update.

        Recognized keys: name, email (empty clears it), default_currency,
        notifications (partial merge; only boolean values are applied).
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)
            participant = cls._get_participant(context.couple_id, participant_id)

            if changes.get("name") is not None:
                display_name = changes["name"].strip()
                if not display_name:
                    raise LedgerValidationError(
                        "Participant name is required", field="name"
                    )
                participant.display_name = display_name

            if "email" in changes:
                email = changes["email"] or None
                if email:
                    cls._assert_email_available(
                        context.couple_id, email, exclude_id=participant.id
                    )
                participant.email = email

            if changes.get("default_currency"):
                participant.default_currency = changes["default_currency"].upper()

            if changes.get("notifications"):
                participant.notification_preferences = merge_notification_preferences(
                    participant.notification_preferences, changes["notifications"]
                )

            participant.save()
        except LedgerError as exc:
            return cls.handle_exception(exc, "update participant", logging.WARNING)

        cls.get_logger().info(f"Updated participant {participant.id}")
        return ServiceResult.success(participant)

    @classmethod
    def delete_participant(cls, user_id, participant_id) -> ServiceResult[None]:
        """
        Soft delete a participant and mark all its group memberships as left.

        The caller's own participant can never be removed; that check runs
        before the participant is looked up.
        """
        try:
            context = LedgerBootstrapService.resolve(user_id, ensure_participant=True)

            if parse_uuid(participant_id) == context.participant_id:
                raise LedgerBusinessRuleError(
                    "You cannot remove yourself from the ledger",
                    error_code="CANNOT_REMOVE_SELF",
                )

            with cls.atomic():
                participant = cls._get_participant(context.couple_id, participant_id)
                participant.soft_delete()
                GroupMember.objects.filter(participant=participant).update(
                    status=GroupMemberStatus.LEFT
                )
        except LedgerError as exc:
            return cls.handle_exception(exc, "delete participant", logging.WARNING)

        cls.get_logger().info(f"Deleted participant {participant.id}")
        return ServiceResult.success(None)

    # -------------------------------------------------------------------------
    # Shared checks
    # -------------------------------------------------------------------------

    @staticmethod
    def assert_participants_belong_to_couple(
        couple_id, participant_ids: Iterable
    ) -> list[Participant]:
        """
        Return the participants for the given ids.

        Raises:
            SplitValidationError (INVALID_PARTICIPANTS): Any id is malformed,
                unknown, soft deleted or belongs to another couple
        """
        raw_ids = list(participant_ids)
        if not raw_ids:
            return []

        parsed = {parse_uuid(value) for value in raw_ids}
        participants = []
        if None not in parsed:
            participants = list(
                Participant.objects.filter(couple_id=couple_id, id__in=parsed)
            )

        if None in parsed or len(participants) != len(parsed):
            raise SplitValidationError(
                "One or more participants are invalid for this ledger",
                error_code="INVALID_PARTICIPANTS",
                field="participantIds",
            )
        return participants

    @staticmethod
    def _get_participant(couple_id, participant_id) -> Participant:
        participant_uuid = parse_uuid(participant_id)
        participant = None
        if participant_uuid is not None:
            participant = Participant.objects.filter(
                couple_id=couple_id, id=participant_uuid
            ).first()
        if participant is None:
            raise LedgerNotFound(
                "Participant not found", error_code="PARTICIPANT_NOT_FOUND"
            )
        return participant

    @staticmethod
    def _assert_email_available(couple_id, email: str, exclude_id=None) -> None:
        duplicates = Participant.objects.filter(couple_id=couple_id, email=email)
        if exclude_id is not None:
            duplicates = duplicates.exclude(id=exclude_id)
        if duplicates.exists():
            raise LedgerConflict(
                "A participant with this email already exists",
                error_code="PARTICIPANT_EMAIL_EXISTS",
                field="email",
            )
