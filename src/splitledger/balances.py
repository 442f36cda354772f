"""Net balance aggregation.

Balances are a view over the obligation set and are recomputed from a
snapshot on every query. Nothing here holds state.
"""

from collections.abc import Iterable
from decimal import Decimal

from .models import BalanceSummary, NetBalance, Obligation
from .money import from_cents, round_money, to_cents


def aggregate_balances(
    user_id: str, obligations: Iterable[Obligation]
) -> list[NetBalance]:
    """
    Net every obligation involving user_id into one balance per counterparty.

    Pending obligations count +amount where the user is the debtor and
    -amount where the user is the creditor. Settled obligations add nothing
    but still register the counterparty, so a relationship that is fully
    settled shows up as 0 instead of disappearing.

    Args:
        user_id: The user whose point of view is taken
        obligations: Snapshot of obligations; ones not involving user_id are ignored

    Returns:
        Balances sorted by counterparty id
    """
    totals: dict[str, int] = {}

    for obligation in obligations:
        if user_id == obligation.debtor_id:
            sign = 1
        elif user_id == obligation.creditor_id:
            sign = -1
        else:
            continue

        counterparty = obligation.counterparty_of(user_id)
        totals.setdefault(counterparty, 0)

        if obligation.is_pending:
            # Accumulate in cents; round once at the end
            totals[counterparty] += sign * to_cents(obligation.amount)

    return [
        NetBalance(counterparty_id=counterparty, net_amount=from_cents(cents))
        for counterparty, cents in sorted(totals.items())
    ]


def summarize_balances(balances: Iterable[NetBalance]) -> BalanceSummary:
    """Total what the user owes and is owed across counterparties."""
    you_owe = Decimal("0")
    owed_to_you = Decimal("0")

    for balance in balances:
        if balance.net_amount > 0:
            you_owe += balance.net_amount
        else:
            owed_to_you -= balance.net_amount

    return BalanceSummary(
        you_owe=round_money(you_owe),
        owed_to_you=round_money(owed_to_you),
        net=round_money(you_owe - owed_to_you),
    )
