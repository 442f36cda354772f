"""Service layer for the debt ledger.

This module composes the split calculator, obligation generator, balance
aggregator and the store into the operations callers use: recording and
deleting expenses, reading balances and listings, and settling obligations.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from decimal import Decimal

from .balances import aggregate_balances
from .config import Settings
from .db import Database
from .exceptions import (
    AlreadySettledError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from .groups import GroupDirectory
from .models import (
    OBLIGATION_STATUSES,
    SPLIT_KINDS,
    Expense,
    NetBalance,
    Obligation,
    Split,
    utc_now,
)
from .money import to_cents, to_decimal
from .obligations import generate_obligations
from .splits import compute_splits, validate_split_sum

logger = logging.getLogger(__name__)


class LedgerService:
    """Service for recording expenses and tracking who owes whom."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        groups: GroupDirectory,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database
        self.groups = groups
        self.clock = clock

    # ========================================================================
    # Expenses
    # ========================================================================

    def record_expense(
        self,
        description: str,
        amount: Decimal | int | str,
        payer_id: str,
        participant_ids: Iterable[str],
        kind: str = "equal",
        explicit_shares: Mapping[str, Decimal | int | str] | None = None,
        group_id: str | None = None,
        category: str = "General",
        date: datetime | None = None,
    ) -> tuple[Expense, list[Obligation]]:
        """
        Compute splits for an expense and record it.

        Convenience wrapper around compute_splits() and create_expense().
        """
        splits = compute_splits(amount, payer_id, participant_ids, kind, explicit_shares)
        return self.create_expense(
            description=description,
            amount=amount,
            payer_id=payer_id,
            splits=splits,
            group_id=group_id,
            category=category,
            split_kind=kind,
            date=date,
        )

    def create_expense(
        self,
        description: str,
        amount: Decimal | int | str,
        payer_id: str,
        splits: list[Split],
        group_id: str | None = None,
        category: str = "General",
        split_kind: str = "equal",
        date: datetime | None = None,
    ) -> tuple[Expense, list[Obligation]]:
        """
        Record an expense and the obligations it creates.

        Every non-payer split becomes a pending obligation owed to the payer.
        The expense, its splits and its obligations are written in one
        transaction; on failure nothing is stored.

        Args:
            description: What the expense was for
            amount: Total paid
            payer_id: User who paid
            splits: Per-participant shares
            group_id: Optional group the expense belongs to
            category: Free-form category
            split_kind: How the splits were computed
            date: When the expense happened (defaults to now)

        Returns:
            Tuple of (stored expense, stored obligations)

        Raises:
            ValidationError: If the input is malformed or splits don't add up
            AuthorizationError: If the payer is not in the given group
            StorageError: If the write fails (and was rolled back)
        """
        description = (description or "").strip()
        if not description:
            raise ValidationError("must not be empty", "description")

        if to_cents(amount) <= 0:
            raise ValidationError("must be greater than 0", "amount")

        if split_kind not in SPLIT_KINDS:
            raise ValidationError(f"unknown split kind {split_kind!r}", "split_kind")

        validate_split_sum(amount, splits)

        if group_id is not None:
            self._require_group_member(group_id, payer_id)

        now = self.clock()
        expense = Expense(
            description=description,
            amount=to_decimal(amount),
            payer_id=payer_id,
            group_id=group_id,
            category=category or "General",
            split_kind=split_kind,
            splits=splits,
            date=date or now,
            created_at=now,
        )

        expense, obligations = self.db.save_expense(expense, generate_obligations(expense))

        logger.info(
            f"Created expense {expense.id} ({expense.amount} paid by {payer_id}) "
            f"with {len(obligations)} obligations"
        )
        return expense, obligations

    def delete_expense(self, expense_id: int, requester_id: str) -> int:
        """
        Delete an expense and every obligation generated from it.

        Only the payer may delete. Unless allow_delete_settled is set, an
        expense with any settled obligation is kept, since money has already
        changed hands against it.

        Returns:
            Number of obligations removed
        """
        expense = self.db.get_expense(expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)

        if expense.payer_id != requester_id:
            logger.warning(f"User {requester_id} refused deletion of expense {expense_id}")
            raise AuthorizationError()

        removed = self.db.delete_expense(
            expense_id, only_if_all_pending=not self.settings.allow_delete_settled
        )
        logger.info(f"Deleted expense {expense_id} and {removed} obligations")
        return removed

    def get_expense(self, expense_id: int, requester_id: str) -> Expense:
        """Get an expense visible to the requester (payer or participant)."""
        expense = self.db.get_expense(expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)

        if requester_id != expense.payer_id and expense.split_for(requester_id) is None:
            raise AuthorizationError()

        return expense

    def list_expenses(self, user_id: str, group_id: str | None = None) -> list[Expense]:
        """
        List expenses for a user, newest first.

        With group_id, all expenses of the group, provided the user is a
        member. Otherwise the expenses the user paid or takes part in.
        """
        if group_id is not None:
            self._require_group_member(group_id, user_id)

        expenses = self.db.list_expenses(user_id, group_id)
        logger.debug(f"Listed {len(expenses)} expenses for {user_id}")
        return expenses

    # ========================================================================
    # Obligations and balances
    # ========================================================================

    def list_obligations(
        self,
        user_id: str,
        group_id: str | None = None,
        status: str | None = None,
    ) -> list[Obligation]:
        """List obligations involving the user, optionally filtered."""
        if status is not None and status not in OBLIGATION_STATUSES:
            raise ValidationError(f"unknown status {status!r}", "status")
        return self.db.list_obligations(user_id, group_id=group_id, status=status)

    def get_balances(self, user_id: str) -> list[NetBalance]:
        """
        Compute the user's net balance with every counterparty.

        Recomputed from the current obligations on each call.
        """
        obligations = self.db.list_obligations(user_id)
        balances = aggregate_balances(user_id, obligations)
        logger.debug(
            f"Aggregated {len(obligations)} obligations into "
            f"{len(balances)} balances for {user_id}"
        )
        return balances

    def settle(self, obligation_id: int, requester_id: str) -> Obligation:
        """
        Mark an obligation as settled.

        Settlement is self-attested by the debtor and one-way. A second
        attempt fails rather than succeeding silently.

        Raises:
            NotFoundError: If the obligation does not exist
            AlreadySettledError: If it is already settled, including when a
                concurrent call won the race
            AuthorizationError: If the requester is not the debtor
        """
        obligation = self.db.get_obligation(obligation_id)
        if obligation is None:
            raise NotFoundError("obligation", obligation_id)

        if not obligation.is_pending:
            raise AlreadySettledError(obligation_id)

        if obligation.debtor_id != requester_id:
            logger.warning(
                f"User {requester_id} refused settlement of obligation {obligation_id}"
            )
            raise AuthorizationError()

        if not self.db.mark_obligation_settled(obligation_id, self.clock()):
            raise AlreadySettledError(obligation_id)

        settled = self.db.get_obligation(obligation_id)
        if settled is None:
            # Source expense deleted between the update and this read
            raise NotFoundError("obligation", obligation_id)

        logger.info(
            f"Settled obligation {obligation_id}: {settled.debtor_id} paid "
            f"{settled.creditor_id} {settled.amount}"
        )
        return settled

    # ========================================================================
    # Helpers
    # ========================================================================

    def _require_group_member(self, group_id: str, user_id: str):
        if not (
            self.groups.is_member(group_id, user_id)
            or self.groups.is_admin(group_id, user_id)
        ):
            logger.warning(f"User {user_id} is not a member of group {group_id}")
            raise AuthorizationError()
