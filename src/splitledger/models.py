"""Pydantic domain models for splitledger."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

SplitKind = Literal["equal", "unequal", "percentage", "shares"]
ObligationStatus = Literal["pending", "settled"]

SPLIT_KINDS: tuple[str, ...] = ("equal", "unequal", "percentage", "shares")
OBLIGATION_STATUSES: tuple[str, ...] = ("pending", "settled")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


# ============================================================================
# Ledger records
# ============================================================================


class Split(BaseModel):
    """One participant's share of an expense."""

    user_id: str
    amount: Decimal = Field(ge=0)
    percentage: Decimal | None = None  # set for percentage splits
    shares: int | None = None  # set for shares splits


class Expense(BaseModel):
    """A payment made by one user on behalf of a set of participants.

    Immutable once stored; the only later change is deletion, which cascades
    to the obligations generated from it.
    """

    id: int | None = None
    description: str
    amount: Decimal = Field(gt=0)
    payer_id: str
    group_id: str | None = None
    category: str = "General"
    split_kind: SplitKind = "equal"
    splits: list[Split]
    date: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)

    def split_for(self, user_id: str) -> Split | None:
        """Get the split line for a specific user, if they take part."""
        for split in self.splits:
            if split.user_id == user_id:
                return split
        return None

    @property
    def participant_ids(self) -> list[str]:
        return [split.user_id for split in self.splits]


class Obligation(BaseModel):
    """A directed debt: the debtor owes the creditor a fixed amount.

    Created pending alongside its source expense. The single permitted
    mutation is the pending -> settled transition.
    """

    id: int | None = None
    debtor_id: str
    creditor_id: str
    amount: Decimal = Field(gt=0)
    group_id: str | None = None
    expense_id: int | None = None
    status: ObligationStatus = "pending"
    created_at: datetime = Field(default_factory=utc_now)
    settled_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def counterparty_of(self, user_id: str) -> str:
        """Get the other side of this obligation from user_id's point of view."""
        if user_id == self.debtor_id:
            return self.creditor_id
        if user_id == self.creditor_id:
            return self.debtor_id
        raise ValueError(f"User {user_id} is not a party to obligation {self.id}")


# ============================================================================
# Derived views (never stored)
# ============================================================================


class NetBalance(BaseModel):
    """Signed net of pending obligations with one counterparty.

    Positive: the user owes the counterparty. Negative: the counterparty owes
    the user. Zero: settled up.
    """

    counterparty_id: str
    net_amount: Decimal


class BalanceSummary(BaseModel):
    """Totals across all counterparties for one user."""

    you_owe: Decimal
    owed_to_you: Decimal
    net: Decimal
