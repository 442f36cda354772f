"""Derive pairwise obligations from an expense's split lines."""

import logging

from .models import Expense, Obligation

logger = logging.getLogger(__name__)


def generate_obligations(expense: Expense) -> list[Obligation]:
    """
    Build one pending obligation per non-payer split line.

    The debtor is the split's user and the creditor is the payer. The payer's
    own line, and any zero-amount line, produces nothing.

    This is a pure function; expense_id is copied from the expense and is
    None until the store assigns one.
    """
    obligations = []
    for split in expense.splits:
        if split.user_id == expense.payer_id:
            continue
        if split.amount == 0:
            logger.debug(f"Skipping zero split for {split.user_id}")
            continue

        obligations.append(
            Obligation(
                debtor_id=split.user_id,
                creditor_id=expense.payer_id,
                amount=split.amount,
                group_id=expense.group_id,
                expense_id=expense.id,
                status="pending",
                created_at=expense.created_at,
            )
        )

    return obligations
