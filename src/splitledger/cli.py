"""CLI for splitledger using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .balances import summarize_balances
from .config import load_settings
from .db import Database
from .exceptions import ConfigurationError, LedgerError, ValidationError
from .groups import GroupServiceClient, load_group_directory
from .models import Expense, Obligation
from .service import LedgerService

app = typer.Typer(
    name="splitledger",
    help="Track shared expenses and who owes whom",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_ledger(
    user: str | None, verbose: bool
) -> Iterator[tuple[LedgerService, str]]:
    """Build the service for one command and report ledger errors uniformly."""
    setup_logging(verbose)
    db = None
    groups = None

    try:
        settings = load_settings()
        user_id = user or settings.current_user_id
        if not user_id:
            raise ConfigurationError(
                "No current user. Pass --user or set SPLITLEDGER_CURRENT_USER_ID."
            )

        db = Database(settings.database_path)
        groups = load_group_directory(settings)
        yield LedgerService(settings, db, groups), user_id

    except LedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if isinstance(groups, GroupServiceClient):
            groups.close()
        if db is not None:
            db.close()


def parse_shares(values: list[str], kind: str) -> dict[str, Decimal | int | str]:
    """Parse repeated USER=VALUE options into an explicit shares mapping."""
    shares: dict[str, Decimal | int | str] = {}
    for item in values:
        user_id, sep, value = item.partition("=")
        if not sep or not user_id or not value:
            raise ValidationError(f"expected USER=VALUE, got {item!r}", "share")
        if user_id in shares:
            raise ValidationError("duplicate participant", "share")
        if kind == "shares":
            try:
                shares[user_id] = int(value)
            except ValueError as e:
                raise ValidationError(
                    "shares must be positive integers", f"splits.{user_id}"
                ) from e
        else:
            shares[user_id] = value
    return shares


def format_money(amount: Decimal, use_color: bool = True) -> str:
    """
    Format a balance in accounting style with alignment.

    Positive amounts (you owe) use parentheses: ($85.02)
    Negative amounts (owed to you) have spaces:  $85.02
    """
    abs_amount = abs(amount)
    if amount > 0:
        if use_color:
            return f"($[red]{abs_amount:,.2f}[/red])"
        return f"(${abs_amount:,.2f})"
    if use_color:
        return f" [green]${abs_amount:,.2f}[/green] "
    return f" ${abs_amount:,.2f} "


def display_expense(expense: Expense, obligations: list[Obligation] | None = None):
    """Display an expense and its splits."""
    console.print(f"\n[bold]Expense {expense.id}:[/bold] {expense.description}")
    console.print(f"  Date: {expense.date.date()}")
    console.print(f"  Paid by: {expense.payer_id}")
    console.print(f"  Amount: ${expense.amount:,.2f}")
    console.print(f"  Category: {expense.category}")
    if expense.group_id:
        console.print(f"  Group: {expense.group_id}")

    table = Table(
        title=f"Splits ({expense.split_kind})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("User", style="cyan")
    table.add_column("Amount", justify="right")
    if expense.split_kind == "percentage":
        table.add_column("Percent", justify="right", style="dim")
    if expense.split_kind == "shares":
        table.add_column("Shares", justify="right", style="dim")

    for split in expense.splits:
        row = [split.user_id, f"${split.amount:,.2f}"]
        if expense.split_kind == "percentage":
            row.append(f"{split.percentage}%")
        if expense.split_kind == "shares":
            row.append(str(split.shares))
        table.add_row(*row)

    console.print(table)

    if obligations:
        display_obligations(obligations, title="Obligations created")


def display_obligations(obligations: list[Obligation], title: str = "Obligations"):
    """Display obligations in a table."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Debtor", style="cyan")
    table.add_column("Creditor", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Expense", style="dim")
    table.add_column("Status")

    for obligation in obligations:
        status = (
            "[yellow]pending[/yellow]"
            if obligation.is_pending
            else f"[green]settled[/green] {obligation.settled_at:%Y-%m-%d}"
        )
        table.add_row(
            str(obligation.id),
            obligation.debtor_id,
            obligation.creditor_id,
            f"${obligation.amount:,.2f}",
            str(obligation.expense_id),
            status,
        )

    console.print(table)


@app.command()
def add(
    description: str = typer.Argument(..., help="What the expense was for"),
    amount: str = typer.Argument(..., help="Total amount paid, e.g. 42.50"),
    participants: Optional[List[str]] = typer.Option(
        None, "--with", "-w", help="Participant to split equally with (repeatable)"
    ),
    kind: str = typer.Option(
        "equal", "--kind", "-k", help="equal, unequal, percentage or shares"
    ),
    shares: Optional[List[str]] = typer.Option(
        None, "--share", "-s", help="USER=VALUE for unequal/percentage/shares splits"
    ),
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Group id"),
    category: str = typer.Option("General", "--category", help="Expense category"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Paying user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record an expense paid by the current user.

    Equal splits always include the payer. For the other kinds, list every
    participant (payer included, if they share the cost) with --share.
    """
    with open_ledger(user, verbose) as (service, user_id):
        if kind == "equal":
            if shares:
                raise ValidationError(
                    "--share only applies to unequal, percentage or shares splits",
                    "share",
                )
            participant_ids = list(participants or [])
            explicit = None
        else:
            if participants:
                raise ValidationError("--with only applies to equal splits", "with")
            explicit = parse_shares(list(shares or []), kind)
            participant_ids = list(explicit)

        expense, obligations = service.record_expense(
            description=description,
            amount=amount,
            payer_id=user_id,
            participant_ids=participant_ids,
            kind=kind,
            explicit_shares=explicit,
            group_id=group,
            category=category,
        )

        display_expense(expense, obligations)
        console.print("\n[bold green]✓ Expense recorded[/bold green]")


@app.command()
def show(
    expense_id: int = typer.Argument(..., help="Expense id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show one expense with its splits and obligations."""
    with open_ledger(user, verbose) as (service, user_id):
        expense = service.get_expense(expense_id, user_id)
        obligations = service.db.list_obligations_for_expense(expense_id)
        display_expense(expense, obligations)


@app.command()
def expenses(
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Group id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List expenses you paid or take part in."""
    with open_ledger(user, verbose) as (service, user_id):
        items = service.list_expenses(user_id, group_id=group)

        if not items:
            console.print("[yellow]No expenses found.[/yellow]")
            return

        table = Table(title="Expenses", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Date")
        table.add_column("Description", style="cyan", width=40)
        table.add_column("Paid by")
        table.add_column("Amount", justify="right")
        table.add_column("Your share", justify="right")

        for expense in items:
            split = expense.split_for(user_id)
            share = f"${split.amount:,.2f}" if split else "—"
            desc = expense.description
            table.add_row(
                str(expense.id),
                str(expense.date.date()),
                desc[:40] + "..." if len(desc) > 40 else desc,
                expense.payer_id,
                f"${expense.amount:,.2f}",
                share,
            )

        console.print(table)


@app.command()
def delete(
    expense_id: int = typer.Argument(..., help="Expense id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense you paid, along with its obligations."""
    with open_ledger(user, verbose) as (service, user_id):
        removed = service.delete_expense(expense_id, user_id)
        console.print(
            f"[bold green]✓ Deleted expense {expense_id}[/bold green] "
            f"({removed} obligations removed)"
        )


@app.command()
def obligations(
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Group id"),
    status: Optional[str] = typer.Option(
        None, "--status", help="Filter by status: pending or settled"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List obligations you owe or are owed."""
    with open_ledger(user, verbose) as (service, user_id):
        items = service.list_obligations(user_id, group_id=group, status=status)

        if not items:
            console.print("[yellow]No obligations found.[/yellow]")
            return

        display_obligations(items)


@app.command()
def balances(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show your net balance with each counterparty."""
    with open_ledger(user, verbose) as (service, user_id):
        items = service.get_balances(user_id)

        if not items:
            console.print("[yellow]No balances yet.[/yellow]")
            return

        table = Table(
            title=f"Balances for {user_id}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Counterparty", style="cyan")
        table.add_column("Net", justify="right")
        table.add_column("", style="dim")

        for balance in items:
            if balance.net_amount > 0:
                note = "you owe"
            elif balance.net_amount < 0:
                note = "owes you"
            else:
                note = "settled up"
            table.add_row(balance.counterparty_id, format_money(balance.net_amount), note)

        console.print(table)

        summary = summarize_balances(items)
        console.print()
        console.print("[bold]Summary:[/bold]")
        console.print(f"  You owe: ${summary.you_owe:,.2f}")
        console.print(f"  Owed to you: ${summary.owed_to_you:,.2f}")
        console.print(f"  Net: {format_money(summary.net)}")


@app.command()
def settle(
    obligation_id: int = typer.Argument(..., help="Obligation id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark an obligation you owe as paid."""
    with open_ledger(user, verbose) as (service, user_id):
        obligation = service.settle(obligation_id, user_id)
        console.print(
            f"[bold green]✓ Settled obligation {obligation.id}[/bold green]: "
            f"{obligation.debtor_id} → {obligation.creditor_id} "
            f"${obligation.amount:,.2f}"
        )


if __name__ == "__main__":
    app()
