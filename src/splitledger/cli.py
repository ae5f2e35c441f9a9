"""CLI for SplitLedger using Typer."""

import logging
import sys
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .exceptions import SplitLedgerError
from .ledger import member_name, summarize_balances, total_spent
from .models import EqualSplit, FixedSplit, PercentageSplit, ProjectSnapshot
from .money import round_display
from .service import LedgerService, parse_member_names
from .ui import confirm_warnings, resolve_member, select_member_interactive

app = typer.Typer(
    name="splitledger",
    help="Track shared group expenses across currencies and see who owes whom",
)
project_app = typer.Typer(help="Create, inspect and edit projects")
expense_app = typer.Typer(help="Record and remove expenses")
app.add_typer(project_app, name="project")
app.add_typer(expense_app, name="expense")

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def open_service() -> tuple[LedgerService, Database]:
    """Load settings and open the database for one command."""
    settings = load_settings()
    db = Database(settings.database_path)
    return LedgerService(settings, db), db


def fail(error: Exception, verbose: bool):
    """Print an error and exit, re-raising in verbose mode."""
    console.print(f"\n[bold red]Error:[/bold red] {error}")
    if verbose:
        raise error
    sys.exit(1)


def parse_decimal(value: str, name: str) -> Decimal:
    """Parse a CLI number into a Decimal."""
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        raise typer.BadParameter(f"{name} must be a number, got {value!r}")


def format_money(amount: Decimal, currency: str, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (HKD 85.02)
    Positive amounts have spaces:      HKD 85.02
    """
    abs_amount = abs(round_display(amount))
    if amount < 0:
        if use_color:
            return f"({currency} [green]{abs_amount:,.2f}[/green])"
        return f"({currency} {abs_amount:,.2f})"
    if use_color and abs_amount > 0:
        return f" {currency} [red]{abs_amount:,.2f}[/red] "
    return f" {currency} {abs_amount:,.2f} "


def display_balances(snapshot: ProjectSnapshot, currency: str, your_name: str):
    """Display member balances. Positive = owes, negative = is owed."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Member", style="cyan")
    table.add_column("Balance", justify="right", width=20)
    table.add_column("Status")
    table.add_column("Settled", justify="center")

    for line in summarize_balances(snapshot, your_name):
        name = f"{line.name} (you)" if line.is_me else line.name
        table.add_row(
            name,
            format_money(line.balance, currency),
            {"owes": "owes", "owed": "is owed", "even": "[dim]even[/dim]"}[line.status],
            "✓" if line.settled else "",
        )

    console.print(table)


def display_expenses(snapshot: ProjectSnapshot, currency: str):
    """Display a project's expenses."""
    project = snapshot.project
    if not snapshot.expenses:
        console.print("[dim]No expenses yet.[/dim]")
        return

    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=10)
    table.add_column("Date")
    table.add_column("Description", style="cyan", width=30)
    table.add_column("Paid by")
    table.add_column("Amount", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column(currency, justify="right")
    table.add_column("Split")

    for expense in snapshot.expenses:
        desc = expense.description
        table.add_row(
            expense.id[:8],
            str(expense.spent_on or ""),
            desc[:30] + "..." if len(desc) > 30 else desc,
            member_name(project, expense.payer_id),
            f"{expense.amount_foreign:,.2f} {expense.currency}",
            f"{expense.effective_rate:.4f}",
            f"{round_display(expense.amount_settlement):,.2f}",
            expense.split_mode,
        )

    console.print(table)


# ============================================================================
# Projects
# ============================================================================


@project_app.command("create")
def project_create(
    name: str = typer.Argument(..., help="Project name"),
    members: str = typer.Option(..., "--members", "-m", help="Comma separated member names"),
    editors: list[str] = typer.Option([], "--editor", "-e", help="Email allowed to edit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a new project owned by you."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        project = service.create_project(name, parse_member_names(members), editors)
        console.print(f"[bold green]✓ Created project {project.name}[/bold green]")
        console.print(f"  ID: [cyan]{project.id}[/cyan]")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@project_app.command("list")
def project_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List your projects, newest first."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        projects = service.list_projects()
        if not projects:
            console.print("[yellow]No projects yet.[/yellow]")
            return

        table = Table(title="Projects", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Members")
        table.add_column("Created")
        for project in projects:
            table.add_row(
                project.id,
                project.name,
                ", ".join(m.name for m in project.members),
                project.created_at.strftime("%Y-%m-%d"),
            )
        console.print(table)
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@project_app.command("show")
def project_show(
    project_id: str = typer.Argument(..., help="Project ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show members, balances and expenses of a project."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        snapshot = service.snapshot(project_id)
        project = snapshot.project
        currency = service.settings.settlement_currency

        console.print(f"\n[bold]{project.name}[/bold]")
        console.print(
            f"  {len(project.members)} members, {len(snapshot.expenses)} expenses, "
            f"total {format_money(total_spent(snapshot), currency, use_color=False)}"
        )
        if project.last_updated_at:
            who = project.last_updated_by_name or project.last_updated_by_email or "unknown"
            console.print(
                f"  [dim]Last updated {project.last_updated_at:%Y-%m-%d %H:%M} by {who}[/dim]"
            )
        console.print()

        display_balances(snapshot, currency, service.your_name)
        console.print()
        display_expenses(snapshot, currency)
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@project_app.command("edit")
def project_edit(
    project_id: str = typer.Argument(..., help="Project ID"),
    name: str | None = typer.Option(None, "--name", help="New project name"),
    members: str | None = typer.Option(
        None, "--members", "-m", help="Full comma separated member list"
    ),
    editors: list[str] | None = typer.Option(
        None, "--editor", "-e", help="Replace editors (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rename a project or change its members and editors."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        project = service.edit_project(
            project_id,
            name=name,
            member_names=parse_member_names(members) if members is not None else None,
            editor_ids=editors or None,
        )
        console.print(f"[bold green]✓ Updated project {project.name}[/bold green]")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@project_app.command("delete")
def project_delete(
    project_id: str = typer.Argument(..., help="Project ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a project and all of its expenses."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        project = service.get_project(project_id)
        if not yes and not typer.confirm(
            f"Delete project {project.name} and all its expenses?"
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.delete_project(project_id)
        console.print(f"[bold green]✓ Deleted project {project.name}[/bold green]")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@project_app.command("share")
def project_share(
    project_id: str = typer.Argument(..., help="Project ID"),
    base_url: str = typer.Option(
        "http://localhost:8000/", "--base-url", help="Address the app is served from"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Print a link that opens the project directly."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        console.print(service.share_link(project_id, base_url))
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


# ============================================================================
# Expenses
# ============================================================================


@expense_app.command("add")
def expense_add(
    project_id: str = typer.Argument(..., help="Project ID"),
    amount: str = typer.Option(..., "--amount", "-a", help="Amount in the expense currency"),
    currency: str | None = typer.Option(
        None, "--currency", "-c", help="Currency code (defaults to settlement currency)"
    ),
    description: str = typer.Option("", "--description", "-d", help="What it was for"),
    spent_on: datetime | None = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Date of the expense"
    ),
    payer: str | None = typer.Option(None, "--payer", "-p", help="Member who paid"),
    participants: list[str] = typer.Option(
        [], "--participant", help="Member sharing the cost (repeatable, default all)"
    ),
    rate: str | None = typer.Option(None, "--rate", help="Raw exchange rate"),
    fee: str = typer.Option("0", "--fee", help="Fee percentage on top of the rate"),
    split: str = typer.Option("equal", "--split", "-s", help="equal, fixed or percentage"),
    shares: list[str] = typer.Option(
        [], "--share", help="NAME=VALUE for fixed or percentage splits (repeatable)"
    ),
    fetch_rate: bool = typer.Option(
        True, "--fetch-rate/--no-fetch-rate", help="Look up the official rate"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Save despite warnings"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record an expense, converting it to the settlement currency."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        project = service.get_project(project_id)
        settlement = service.settings.settlement_currency
        code = (currency or settlement).strip().upper()
        expense_date = spent_on.date() if spent_on else date.today()

        # Payer
        if payer is None:
            payer_id = select_member_interactive(
                project.members, your_name=service.your_name
            )
            if payer_id is None:
                console.print("[yellow]No payer selected.[/yellow]")
                return
        else:
            payer_id = resolve_member(project.members, payer)
            if payer_id is None:
                raise typer.BadParameter(f"Unknown member: {payer}")

        # Participants
        participant_ids = None
        if participants:
            participant_ids = []
            for ref in participants:
                member_id = resolve_member(project.members, ref)
                if member_id is None:
                    raise typer.BadParameter(f"Unknown member: {ref}")
                participant_ids.append(member_id)

        # Split policy
        mode = split.strip().lower()
        entries = {}
        for item in shares:
            ref, sep, value = item.partition("=")
            member_id = resolve_member(project.members, ref)
            if not sep or member_id is None:
                raise typer.BadParameter(f"Invalid share {item!r}, expected NAME=VALUE")
            entries[member_id] = parse_decimal(value, "share")
        if mode == "equal":
            policy = EqualSplit()
        elif mode in ("fixed", "custom"):
            policy = FixedSplit(shares=entries)
        elif mode in ("percentage", "percent"):
            policy = PercentageSplit(shares=entries)
        else:
            raise typer.BadParameter(f"Unknown split mode: {split}")

        # Exchange rate
        rate_raw = parse_decimal(rate, "rate") if rate is not None else None
        rate_source = "manual"
        if rate_raw is None and code != settlement and fetch_rate:
            console.print(f"[bold blue]Fetching {code} -> {settlement} rate...[/bold blue]")
            rate_raw = service.lookup_rate(expense_date, code)
            if rate_raw is not None:
                rate_source = "official"
                console.print(f"  Official rate: {rate_raw}")
        if rate_raw is None and code != settlement:
            console.print("[yellow]Rate unavailable. Please enter it manually.[/yellow]")
            rate_raw = parse_decimal(typer.prompt(f"{code} -> {settlement} rate"), "rate")

        draft = service.draft_expense(
            project_id,
            payer_id=payer_id,
            currency=code,
            amount_foreign=parse_decimal(amount, "amount"),
            rate_raw=rate_raw,
            fee_percent=parse_decimal(fee, "fee"),
            participant_ids=participant_ids,
            split=policy,
            rate_source=rate_source,
            description=description,
            spent_on=expense_date,
        )

        console.print(
            f"\n[bold]{draft.expense.amount_foreign} {draft.expense.currency}[/bold] = "
            f"{format_money(draft.expense.amount_settlement, settlement)}"
        )
        for member_id, share in draft.shares.items():
            console.print(
                f"  {member_name(project, member_id)}: {format_money(share, settlement, use_color=False)}"
            )

        if draft.warnings and not yes and not confirm_warnings(draft.warnings):
            console.print("[yellow]Not saved.[/yellow]")
            return

        expense = service.save_expense(draft)
        console.print(f"\n[bold green]✓ Expense saved ({expense.id})[/bold green]")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@expense_app.command("list")
def expense_list(
    project_id: str = typer.Argument(..., help="Project ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List the expenses of a project."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        display_expenses(service.snapshot(project_id), service.settings.settlement_currency)
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@expense_app.command("delete")
def expense_delete(
    project_id: str = typer.Argument(..., help="Project ID"),
    expense_id: str = typer.Argument(..., help="Expense ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        if not yes and not typer.confirm("Delete this expense?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.delete_expense(project_id, expense_id)
        console.print("[bold green]✓ Expense deleted[/bold green]")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


# ============================================================================
# Misc
# ============================================================================


@app.command()
def settle(
    project_id: str = typer.Argument(..., help="Project ID"),
    member: str = typer.Argument(..., help="Member name or ID"),
    undo: bool = typer.Option(False, "--undo", help="Mark as not settled"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark a member as settled up (bookkeeping only)."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        project = service.get_project(project_id)
        member_id = resolve_member(project.members, member)
        if member_id is None:
            raise typer.BadParameter(f"Unknown member: {member}")
        service.set_settled(project_id, member_id, not undo)
        state = "not settled" if undo else "settled"
        console.print(f"[bold green]✓ {member_name(project, member_id)} marked {state}[/bold green]")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def rate(
    currency: str = typer.Argument(..., help="Currency to convert from"),
    on: datetime | None = typer.Option(
        None, "--date", formats=["%Y-%m-%d"], help="Rate date (default today)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Look up the official rate into the settlement currency."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        on_date = on.date() if on else date.today()
        value = service.lookup_rate(on_date, currency)
        settlement = service.settings.settlement_currency
        if value is None:
            console.print("[yellow]Rate unavailable. Enter it manually with --rate.[/yellow]")
            sys.exit(1)
        console.print(f"1 {currency.upper()} = {value} {settlement} ({on_date})")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def whoami(
    name: str | None = typer.Argument(None, help="Set the name that marks you"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show or set the member name that refers to you."""
    setup_logging(verbose)

    try:
        service, db = open_service()
        if name is not None:
            service.set_your_name(name)
        console.print(f"Actor: {service.actor.id}")
        console.print(f"Your name: {service.your_name or '[dim]not set[/dim]'}")
    except SplitLedgerError as e:
        fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


if __name__ == "__main__":
    app()
