"""Balance ledger: fold every expense of a project into net member balances."""

import logging
from decimal import Decimal

from .exceptions import InvalidSplitError, StaleReferenceError
from .models import (
    BalanceLine,
    EqualSplit,
    Member,
    Project,
    ProjectSnapshot,
)
from .money import round_display
from .splitter import compute_shares

logger = logging.getLogger(__name__)

UNKNOWN_MEMBER = "Unknown"
EVEN_THRESHOLD = Decimal("0.01")


def compute_balances(snapshot: ProjectSnapshot) -> dict[str, Decimal]:
    """
    Compute each current member's net balance.

    A positive balance is what the member still owes the group; a negative
    balance is what the group owes them back for expenses they fronted.
    Ids that no longer belong to the project are skipped, and an expense
    paid by a removed member is skipped as a whole since nobody can be
    credited for it. Each member keeps a single unrounded running sum, so
    the result does not depend on expense order.

    Args:
        snapshot: Project and its expenses

    Returns:
        Mapping with one entry per current member
    """
    members = snapshot.project.member_ids
    balances = {m.id: Decimal("0") for m in snapshot.project.members}

    for expense in snapshot.expenses:
        if not expense.participant_ids:
            logger.debug(f"Expense {expense.id} has no participants, skipping")
            continue
        if expense.payer_id not in members:
            logger.debug(
                f"Expense {expense.id} paid by removed member {expense.payer_id}, skipping"
            )
            continue

        try:
            shares = compute_shares(expense)
        except InvalidSplitError as e:
            logger.warning(f"Expense {expense.id} cannot be split, skipping: {e}")
            continue

        for member_id, share in shares.items():
            if member_id not in members:
                logger.debug(
                    f"Expense {expense.id} references removed member {member_id}"
                )
                continue
            if member_id == expense.payer_id:
                continue
            balances[member_id] += share
            balances[expense.payer_id] -= share

    return balances


def find_stale_references(snapshot: ProjectSnapshot) -> list[tuple[str, str]]:
    """List (expense id, member id) pairs pointing at members no longer in the project."""
    members = snapshot.project.member_ids
    stale: list[tuple[str, str]] = []

    for expense in snapshot.expenses:
        referenced = [expense.payer_id, *expense.participant_ids]
        if not isinstance(expense.split, EqualSplit):
            referenced.extend(expense.split.shares)
        for member_id in dict.fromkeys(referenced):
            if member_id not in members:
                stale.append((expense.id, member_id))

    return stale


def get_member(project: Project, member_id: str) -> Member:
    """Look up a member, raising StaleReferenceError when it was removed."""
    for member in project.members:
        if member.id == member_id:
            return member
    raise StaleReferenceError(member_id, project.id)


def member_name(project: Project, member_id: str) -> str:
    """Display name for a member id, ``Unknown`` for removed members."""
    try:
        return get_member(project, member_id).name
    except StaleReferenceError:
        return UNKNOWN_MEMBER


def is_me(member: Member, your_name: str) -> bool:
    """Whether a member is the current user, by trimmed case-insensitive name."""
    if not your_name or not your_name.strip():
        return False
    return member.name.strip().casefold() == your_name.strip().casefold()


def balance_status(balance: Decimal) -> str:
    """Classify a balance as owes, owed or even (within one cent)."""
    if balance > EVEN_THRESHOLD:
        return "owes"
    if balance < -EVEN_THRESHOLD:
        return "owed"
    return "even"


def summarize_balances(snapshot: ProjectSnapshot, your_name: str = "") -> list[BalanceLine]:
    """Balance rows in member order, rounded for display."""
    balances = compute_balances(snapshot)
    project = snapshot.project

    return [
        BalanceLine(
            member_id=member.id,
            name=member.name,
            balance=round_display(balances[member.id]),
            status=balance_status(balances[member.id]),
            settled=project.settled.get(member.id, False),
            is_me=is_me(member, your_name),
        )
        for member in project.members
    ]


def total_spent(snapshot: ProjectSnapshot) -> Decimal:
    """Sum of all expenses in the settlement currency."""
    return sum((e.amount_settlement for e in snapshot.expenses), Decimal("0"))
