"""
Tenant bootstrap for the ledger.

Every authenticated request starts here: the caller's couple is found (or
created on first use), optionally together with the caller's own
participant and the default categories.

The whole bootstrap runs in one transaction and locks the user row first,
so two concurrent first requests for the same user cannot both create a
couple. Calling it again is a no-op.

Usage:
    from ledger.services import LedgerBootstrapService

    result = LedgerBootstrapService.ensure_ledger(
        request.user.id, ensure_participant=True
    )
    if result.success:
        couple_id = result.data.couple_id
"""

from __future__ import annotations

import logging
import uuid

from django.contrib.auth import get_user_model

from core.helpers import generate_code
from core.services import BaseService, ServiceResult
from ledger.constants import (
    DEFAULT_CATEGORIES,
    DEFAULT_COUPLE_NAME,
    DEFAULT_CURRENCY,
    INVITE_CODE_LENGTH,
    SELF_PARTICIPANT_FALLBACK_NAME,
    default_notification_preferences,
)
from ledger.exceptions import LedgerError, UserNotFound
from ledger.models import (
    Category,
    Couple,
    CoupleMember,
    CoupleMemberStatus,
    CoupleStatus,
    MemberRole,
    Participant,
)
from ledger.types import LedgerContext


class LedgerBootstrapService(BaseService):
    """
    Resolves a user to their couple, creating it on first use.

    All methods are class methods - no instance state is maintained.
    """

    @classmethod
    def ensure_ledger(
        cls,
        user_id,
        *,
        ensure_participant: bool = False,
        ensure_default_categories: bool = False,
    ) -> ServiceResult[LedgerContext]:
        """
        Make sure the user has a couple, and optionally a participant and
        the default categories.

        Args:
            user_id: ID of the calling user
            ensure_participant: Find, restore or create the caller's participant
            ensure_default_categories: Seed the 8 default categories when the
                couple has never had any (soft-deleted ones count)

        Returns:
            ServiceResult with LedgerContext

        Error codes:
            USER_NOT_FOUND: The user does not exist
        """
        try:
            context = cls.resolve(
                user_id,
                ensure_participant=ensure_participant,
                ensure_default_categories=ensure_default_categories,
            )
        except LedgerError as exc:
            return cls.handle_exception(exc, "ensure ledger", logging.WARNING)
        return ServiceResult.success(context)

    @classmethod
    def resolve(
        cls,
        user_id,
        *,
        ensure_participant: bool = False,
        ensure_default_categories: bool = False,
    ) -> LedgerContext:
        """
        Raising variant of ensure_ledger() for use inside other services.

        Raises:
            UserNotFound: The user does not exist
        """
        with cls.atomic():
            user = (
                get_user_model()
                .objects.select_for_update()
                .filter(pk=user_id)
                .first()
            )
            if user is None:
                raise UserNotFound(details={"user_id": str(user_id)})

            couple_id = cls._ensure_couple(user)

            participant_id = None
            if ensure_participant:
                participant_id = cls._ensure_participant(user, couple_id).id

            if ensure_default_categories:
                cls._ensure_default_categories(user, couple_id)

        return LedgerContext(couple_id=couple_id, participant_id=participant_id)

    @staticmethod
    def get_default_categories() -> list[dict]:
        """Return the definitions seeded into every new ledger."""
        return [dict(definition) for definition in DEFAULT_CATEGORIES]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @classmethod
    def _ensure_couple(cls, user) -> uuid.UUID:
        membership = (
            CoupleMember.objects.filter(user=user, status=CoupleMemberStatus.ACTIVE)
            .order_by("joined_at")
            .first()
        )
        if membership:
            return membership.couple_id

        couple = Couple.objects.create(
            name=DEFAULT_COUPLE_NAME,
            invite_code=cls._generate_invite_code(),
            status=CoupleStatus.ACTIVE,
            created_by=user,
        )
        CoupleMember.objects.create(
            couple=couple,
            user=user,
            role=MemberRole.OWNER,
            status=CoupleMemberStatus.ACTIVE,
        )

        cls.get_logger().info(f"Created couple {couple.id} for user {user.pk}")
        return couple.id

    @classmethod
    def _ensure_participant(cls, user, couple_id) -> Participant:
        existing = Participant.all_objects.filter(couple_id=couple_id, user=user).first()

        if existing:
            if existing.deleted_at is not None:
                existing.deleted_at = None
                if not existing.notification_preferences:
                    existing.notification_preferences = default_notification_preferences()
                existing.save(
                    update_fields=["deleted_at", "notification_preferences", "updated_at"]
                )
                cls.get_logger().info(
                    f"Restored participant {existing.id} for user {user.pk}"
                )
            return existing

        participant = Participant.objects.create(
            couple_id=couple_id,
            user=user,
            display_name=user.display_name or SELF_PARTICIPANT_FALLBACK_NAME,
            email=user.email or None,
            is_registered=True,
            default_currency=user.default_currency or DEFAULT_CURRENCY,
            notification_preferences=default_notification_preferences(),
        )
        cls.get_logger().info(f"Created participant {participant.id} for user {user.pk}")
        return participant

    @classmethod
    def _ensure_default_categories(cls, user, couple_id) -> None:
        if Category.all_objects.filter(couple_id=couple_id).exists():
            return

        Category.all_objects.bulk_create(
            [
                Category(
                    couple_id=couple_id,
                    created_by=user,
                    name=definition["name"],
                    color=definition["color"],
                    icon=definition.get("icon"),
                    is_default=True,
                )
                for definition in DEFAULT_CATEGORIES
            ]
        )
        cls.get_logger().info(f"Seeded default categories for couple {couple_id}")

    @staticmethod
    def _generate_invite_code() -> str:
        code = generate_code(INVITE_CODE_LENGTH)
        while Couple.objects.filter(invite_code=code).exists():
            code = generate_code(INVITE_CODE_LENGTH)
        return code
