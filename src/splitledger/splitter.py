"""Split policy engine: turn one expense into per-member owed shares."""

import logging
from decimal import Decimal

from .exceptions import InvalidSplitError
from .models import (
    EqualSplit,
    Expense,
    FixedSplit,
    PercentageSplit,
    SplitResult,
    SplitWarning,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.5")


def positive_entries(
    shares: dict[str, Decimal], participant_ids: list[str]
) -> dict[str, Decimal]:
    """Keep only positive entries that belong to a participant, in participant order."""
    return {
        member_id: shares[member_id]
        for member_id in participant_ids
        if member_id in shares and shares[member_id] > 0
    }


def validate_policy(
    policy: EqualSplit | FixedSplit | PercentageSplit, participant_ids: list[str]
) -> None:
    """
    Reject split inputs that cannot produce any shares.

    Raises:
        InvalidSplitError: If there are no participants, or a fixed/percentage
            split has no positive entry for any participant
    """
    if not participant_ids:
        raise InvalidSplitError("Choose at least one participant")

    if isinstance(policy, FixedSplit):
        if not positive_entries(policy.shares, participant_ids):
            raise InvalidSplitError(
                "Enter a positive fixed share for at least one participant"
            )
    elif isinstance(policy, PercentageSplit):
        entries = positive_entries(policy.shares, participant_ids)
        if sum(entries.values(), Decimal("0")) <= 0:
            raise InvalidSplitError(
                "Enter a positive percentage for at least one participant"
            )


def compute_shares(expense: Expense) -> dict[str, Decimal]:
    """
    Compute what each participant owes for an expense, in settlement currency.

    The payer appears in the result when they participate; the ledger
    cancels their own share against their payment.

    Args:
        expense: The expense to split

    Returns:
        Mapping of member id to owed amount, over participants only

    Raises:
        InvalidSplitError: If the split inputs cannot produce shares
    """
    policy = expense.split
    participants = expense.participant_ids
    validate_policy(policy, participants)

    total = expense.amount_settlement

    if isinstance(policy, EqualSplit):
        per_person = total / len(participants)
        return {member_id: per_person for member_id in participants}

    if isinstance(policy, FixedSplit):
        return positive_entries(policy.shares, participants)

    # Percentage points need not add up to 100
    percents = positive_entries(policy.shares, participants)
    sum_percent = sum(percents.values(), Decimal("0"))
    return {
        member_id: percent / sum_percent * total
        for member_id, percent in percents.items()
    }


def split_expense(
    expense: Expense, tolerance: Decimal = DEFAULT_TOLERANCE
) -> SplitResult:
    """
    Compute shares and flag a shares total that drifts from the expense total.

    A mismatch is advisory: shares are returned as supplied and the caller
    chooses whether to save anyway.
    """
    shares = compute_shares(expense)
    warnings: list[SplitWarning] = []

    if not isinstance(expense.split, EqualSplit):
        shares_total = sum(shares.values(), Decimal("0"))
        expense_total = expense.amount_settlement
        difference = abs(shares_total - expense_total)
        if difference > tolerance:
            warnings.append(
                SplitWarning(
                    code="share_sum_mismatch",
                    message=(
                        f"Total {expense.split.mode} shares ({shares_total:.2f}) differ "
                        f"from the expense total ({expense_total:.2f}) by {difference:.2f}"
                    ),
                    shares_total=shares_total,
                    expense_total=expense_total,
                    difference=difference,
                )
            )
            logger.warning(f"Expense {expense.id}: {warnings[-1].message}")

    return SplitResult(shares=shares, warnings=warnings)
