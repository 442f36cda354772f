"""Split calculation: turn an expense amount into per-participant shares.

Every function here is pure. Amounts are worked in integer cents so the
returned splits always add up to the expense amount exactly; whatever cents
are left over after flooring go to one designated line (the payer's, when the
payer takes part).
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_FLOOR, Decimal

from .exceptions import ValidationError
from .models import SPLIT_KINDS, Split
from .money import SPLIT_EPSILON, from_cents, to_cents, to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def compute_splits(
    amount: Decimal | int | str,
    payer_id: str,
    participant_ids: Iterable[str],
    kind: str = "equal",
    explicit_shares: Mapping[str, Decimal | int | str] | None = None,
) -> list[Split]:
    """
    Compute validated per-participant splits for an expense.

    For equal splits the payer always takes part, whether or not they are
    listed. For the explicit kinds the participant set is exactly
    participant_ids and explicit_shares must carry one value per participant:
    an amount (unequal), a percentage (percentage) or a share count (shares).

    Args:
        amount: Expense amount, positive, at most 2 decimal places
        payer_id: User who paid
        participant_ids: Users sharing the expense
        kind: One of equal, unequal, percentage, shares
        explicit_shares: Per-participant values for the explicit kinds

    Returns:
        One split per participant, amounts summing exactly to amount

    Raises:
        ValidationError: On non-positive amount, empty or duplicated
            participants, unknown kind, or values that don't add up
    """
    total_cents = to_cents(amount)
    if total_cents <= 0:
        raise ValidationError("must be greater than 0", "amount")

    participants = list(participant_ids)
    if not participants:
        raise ValidationError("at least one participant is required", "participants")
    if len(participants) != len(set(participants)):
        raise ValidationError("duplicate participant", "participants")

    if kind not in SPLIT_KINDS:
        raise ValidationError(f"unknown split kind {kind!r}", "kind")

    if kind == "equal":
        return _equal_splits(total_cents, payer_id, participants)

    if explicit_shares is None:
        raise ValidationError(f"{kind} split requires explicit values", "splits")
    if set(explicit_shares) != set(participants):
        raise ValidationError(
            "explicit values must cover exactly the participants", "splits"
        )

    if kind == "unequal":
        return _unequal_splits(total_cents, payer_id, participants, explicit_shares)
    if kind == "percentage":
        return _percentage_splits(total_cents, payer_id, participants, explicit_shares)
    return _share_splits(total_cents, payer_id, participants, explicit_shares)


def validate_split_sum(amount: Decimal | int | str, splits: list[Split]) -> None:
    """
    Check the split invariant for an expense.

    Split user ids must be unique, amounts non-negative, and their sum within
    SPLIT_EPSILON of the expense amount.

    Raises:
        ValidationError: If any of the checks fail
    """
    if not splits:
        raise ValidationError("at least one split is required", "splits")

    user_ids = [split.user_id for split in splits]
    if len(user_ids) != len(set(user_ids)):
        raise ValidationError("duplicate participant", "splits")

    if any(split.amount < 0 for split in splits):
        raise ValidationError("split amounts must not be negative", "splits")

    total = sum((split.amount for split in splits), Decimal("0"))
    if abs(total - to_decimal(amount)) > SPLIT_EPSILON:
        raise ValidationError(
            f"split amounts must sum to expense amount "
            f"(splits total {total}, expense amount {amount})",
            "splits",
        )


# ============================================================================
# Per-kind calculations
# ============================================================================


def _equal_splits(total_cents: int, payer_id: str, participants: list[str]) -> list[Split]:
    members = [payer_id] + [uid for uid in participants if uid != payer_id]
    base, residual = divmod(total_cents, len(members))

    cents = {uid: base for uid in members}
    cents[payer_id] += residual

    if residual:
        logger.debug(f"Equal split: {residual} residual cent(s) assigned to payer {payer_id}")

    return [Split(user_id=uid, amount=from_cents(cents[uid])) for uid in members]


def _unequal_splits(
    total_cents: int,
    payer_id: str,
    participants: list[str],
    values: Mapping[str, Decimal | int | str],
) -> list[Split]:
    cents = {}
    for uid in participants:
        amount_cents = to_cents(values[uid], f"splits.{uid}")
        if amount_cents < 0:
            raise ValidationError("must not be negative", f"splits.{uid}")
        cents[uid] = amount_cents

    _check_converted_total(Decimal(sum(cents.values())), total_cents)
    _assign_residual(cents, total_cents, payer_id)

    return [Split(user_id=uid, amount=from_cents(cents[uid])) for uid in participants]


def _percentage_splits(
    total_cents: int,
    payer_id: str,
    participants: list[str],
    values: Mapping[str, Decimal | int | str],
) -> list[Split]:
    percentages = {}
    for uid in participants:
        pct = to_decimal(values[uid], f"splits.{uid}")
        if pct < 0:
            raise ValidationError("percentage must not be negative", f"splits.{uid}")
        percentages[uid] = pct

    pct_total = sum(percentages.values(), Decimal("0"))
    if abs(pct_total - HUNDRED) > SPLIT_EPSILON:
        raise ValidationError(
            f"percentages must sum to 100 (got {pct_total})", "splits"
        )

    exact = {uid: total_cents * pct / HUNDRED for uid, pct in percentages.items()}
    _check_converted_total(sum(exact.values(), Decimal("0")), total_cents)

    cents = {uid: _floor(value) for uid, value in exact.items()}
    _assign_residual(cents, total_cents, payer_id)

    return [
        Split(user_id=uid, amount=from_cents(cents[uid]), percentage=percentages[uid])
        for uid in participants
    ]


def _share_splits(
    total_cents: int,
    payer_id: str,
    participants: list[str],
    values: Mapping[str, Decimal | int | str],
) -> list[Split]:
    counts = {}
    for uid in participants:
        count = values[uid]
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValidationError("shares must be positive integers", f"splits.{uid}")
        counts[uid] = count

    share_total = sum(counts.values())
    cents = {uid: total_cents * count // share_total for uid, count in counts.items()}
    _assign_residual(cents, total_cents, payer_id)

    return [
        Split(user_id=uid, amount=from_cents(cents[uid]), shares=counts[uid])
        for uid in participants
    ]


# ============================================================================
# Helpers
# ============================================================================


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _check_converted_total(converted_cents: Decimal, total_cents: int) -> None:
    """Converted amounts must land within SPLIT_EPSILON of the expense amount."""
    residual = abs(converted_cents - total_cents) / 100
    if residual > SPLIT_EPSILON:
        raise ValidationError(
            f"split amounts must sum to expense amount "
            f"(off by {residual.quantize(Decimal('0.01'))})",
            "splits",
        )


def _assign_residual(cents: dict[str, int], total_cents: int, payer_id: str) -> None:
    """
    Move the leftover cents onto one line so the total is exact.

    The payer's line takes the residual when the payer participates,
    otherwise the largest line does (ties go to the first listed).
    """
    residual = total_cents - sum(cents.values())
    if residual == 0:
        return

    if payer_id in cents:
        target = payer_id
    else:
        target = max(cents, key=lambda uid: cents[uid])

    if cents[target] + residual < 0:
        raise ValidationError("split amounts must sum to expense amount", "splits")

    cents[target] += residual
    logger.debug(f"Assigned {residual} residual cent(s) to {target}")
