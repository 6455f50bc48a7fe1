"""
Split validation.

Turns requested shares into NormalizedSplit values and checks them against
the expense amount before anything is written. The checks run in a fixed
order and stop at the first failure:

    1. payer present, at least one split
    2. no participant appears twice
    3. every participant is an active participant of the couple
    4. shares are non-negative integers, percents numeric and in [0, 100]
    5. shares add up to the amount exactly, percentage splits add up to
       100 (within PERCENT_TOLERANCE), payer is one of the split participants

Step 5 is also used on its own when an expense update keeps the stored
splits but changes the amount, split type or payer.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.helpers import parse_uuid
from ledger.constants import PERCENT_TOLERANCE
from ledger.exceptions import SplitValidationError
from ledger.models import SplitType
from ledger.services.participants import ParticipantService
from ledger.types import NormalizedSplit, SplitInput

HUNDRED = Decimal("100")
# Stored precision of ExpenseSplit.share_percent
PERCENT_PLACES = Decimal("0.01")


def truncate_cents(value) -> int:
    """
    Truncate a numeric amount toward zero.

    Accepts ints, floats, Decimals and numeric strings.

    Raises:
        ValueError: value is not numeric
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not an amount")
    if isinstance(value, int):
        return value
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return int(number)


def validate_splits(
    couple_id,
    splits: Sequence[SplitInput] | None,
    amount_cents: int,
    split_type: str,
    payer_id,
) -> list[NormalizedSplit]:
    """
    Validate and normalize the requested splits of an expense.

    Args:
        couple_id: The caller's couple
        splits: Requested shares
        amount_cents: Authoritative expense amount
        split_type: equal, custom or percentage
        payer_id: Participant who paid

    Returns:
        Normalized splits, in request order

    Raises:
        SplitValidationError: With the code of the first failed check
    """
    if not payer_id:
        raise SplitValidationError(
            "Payer participant is required",
            error_code="PAYER_REQUIRED",
            field="paid_by_participant_id",
        )

    if not splits:
        raise SplitValidationError(
            "At least one split entry is required",
            error_code="SPLITS_REQUIRED",
            field="splits",
        )

    keys = [parse_uuid(split.participant_id) or split.participant_id for split in splits]
    if len(set(keys)) != len(keys):
        raise SplitValidationError(
            "Splits cannot contain duplicate participants",
            error_code="DUPLICATE_SPLIT_PARTICIPANT",
            field="splits",
        )

    ParticipantService.assert_participants_belong_to_couple(couple_id, keys)

    normalized = [_normalize_split(split) for split in splits]

    check_split_consistency(normalized, amount_cents, split_type, payer_id)
    return normalized


def check_split_consistency(
    splits: Iterable[NormalizedSplit],
    amount_cents: int,
    split_type: str,
    payer_id,
) -> None:
    """
    Check totals, percentages and payer inclusion of normalized splits.

    Raises:
        SplitValidationError: INVALID_SPLIT_TOTAL, INVALID_SPLIT_PERCENT or
            PAYER_NOT_IN_SPLITS
    """
    splits = list(splits)

    if sum(split.share_cents for split in splits) != amount_cents:
        raise SplitValidationError(
            "Split shares must add up to the total amount",
            error_code="INVALID_SPLIT_TOTAL",
            field="splits",
        )

    if split_type == SplitType.PERCENTAGE:
        if any(split.share_percent is None for split in splits):
            raise SplitValidationError(
                "Percentage splits require share_percent values",
                error_code="INVALID_SPLIT_PERCENT",
                field="splits",
            )
        total_percent = sum((split.share_percent for split in splits), Decimal("0"))
        if abs(total_percent - HUNDRED) > PERCENT_TOLERANCE:
            raise SplitValidationError(
                "Percentage splits must total 100%",
                error_code="INVALID_SPLIT_PERCENT",
                field="splits",
            )

    payer_uuid = parse_uuid(payer_id)
    if not any(split.participant_id == payer_uuid for split in splits):
        raise SplitValidationError(
            "Payer must be included in the expense splits",
            error_code="PAYER_NOT_IN_SPLITS",
            field="paid_by_participant_id",
        )


def _normalize_split(split: SplitInput) -> NormalizedSplit:
    try:
        share_cents = truncate_cents(split.share_cents)
    except ValueError as exc:
        raise SplitValidationError(
            "Split shares must be integers",
            error_code="INVALID_SPLIT_SHARE",
            field="splits",
        ) from exc
    if share_cents < 0:
        raise SplitValidationError(
            "Split shares must be positive integers",
            error_code="INVALID_SPLIT_SHARE",
            field="splits",
        )

    share_percent = None
    if split.share_percent is not None:
        try:
            share_percent = Decimal(str(split.share_percent))
        except InvalidOperation as exc:
            raise SplitValidationError(
                "Split percentage must be numeric",
                error_code="INVALID_SPLIT_PERCENT",
                field="splits",
            ) from exc
        if not share_percent.is_finite() or not (0 <= share_percent <= HUNDRED):
            raise SplitValidationError(
                "Split percentage must be between 0 and 100",
                error_code="INVALID_SPLIT_PERCENT",
                field="splits",
            )

        share_percent = share_percent.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)

    return NormalizedSplit(
        participant_id=parse_uuid(split.participant_id),
        share_cents=share_cents,
        share_percent=share_percent,
    )
