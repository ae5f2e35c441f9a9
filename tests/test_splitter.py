"""Tests for the split policy engine."""

import random
from decimal import Decimal

import pytest

from splitledger.exceptions import InvalidSplitError
from splitledger.models import EqualSplit, Expense, FixedSplit, PercentageSplit
from splitledger.splitter import compute_shares, split_expense, validate_policy


# Helper function for tests
def make_expense(
    amount: str,
    participants: list[str],
    split=None,
    payer: str = "A",
    rate: str = "1",
    fee: str = "0",
) -> Expense:
    """Create an expense in the settlement currency unless a rate is given."""
    return Expense(
        project_id="p1",
        payer_id=payer,
        currency="HKD" if rate == "1" else "USD",
        amount_foreign=Decimal(amount),
        rate_raw=Decimal(rate),
        fee_percent=Decimal(fee),
        participant_ids=participants,
        split=split or EqualSplit(),
    )


class TestEqualSplit:
    """Equal splits across all participants."""

    def test_three_way(self):
        shares = compute_shares(make_expense("300", ["A", "B", "C"]))
        assert shares == {"A": Decimal("100"), "B": Decimal("100"), "C": Decimal("100")}

    def test_payer_not_participating(self):
        shares = compute_shares(make_expense("90", ["B", "C"]))
        assert shares == {"B": Decimal("45"), "C": Decimal("45")}

    def test_uses_converted_amount(self):
        """Shares are in the settlement currency."""
        shares = compute_shares(make_expense("100", ["A", "B"], rate="7.8", fee="2"))
        assert shares["A"] == shares["B"] == Decimal("397.8")

    @pytest.mark.parametrize("n", [1, 2, 3, 6, 7, 11])
    def test_shares_sum_to_total(self, n):
        """n equal shares of amount / n add back up to the amount."""
        participants = [f"m{i}" for i in range(n)]
        expense = make_expense("100", participants, payer="m0")
        shares = compute_shares(expense)

        assert len(shares) == n
        assert len(set(shares.values())) == 1
        assert abs(sum(shares.values()) - expense.amount_settlement) < Decimal("1e-9")

    def test_empty_participants(self):
        with pytest.raises(InvalidSplitError, match="participant"):
            compute_shares(make_expense("100", []))


class TestFixedSplit:
    """Explicit amounts per member."""

    def test_pass_through(self):
        """Supplied positive entries come back unmodified."""
        split = FixedSplit(shares={"B": Decimal("100"), "C": Decimal("50")})
        shares = compute_shares(make_expense("300", ["A", "B", "C"], split))
        assert shares == {"B": Decimal("100"), "C": Decimal("50")}

    def test_drops_zero_and_non_participants(self):
        split = FixedSplit(
            shares={"A": Decimal("0"), "B": Decimal("80"), "D": Decimal("20")}
        )
        shares = compute_shares(make_expense("100", ["A", "B", "C"], split))
        assert shares == {"B": Decimal("80")}

    def test_no_positive_share(self):
        split = FixedSplit(shares={"B": Decimal("0")})
        with pytest.raises(InvalidSplitError, match="positive"):
            compute_shares(make_expense("100", ["A", "B"], split))

    def test_mismatch_is_a_warning_not_an_error(self):
        """Shares far from the total are kept as supplied, with a warning."""
        split = FixedSplit(shares={"B": Decimal("100"), "C": Decimal("50")})
        result = split_expense(make_expense("300", ["A", "B", "C"], split))

        assert result.shares == {"B": Decimal("100"), "C": Decimal("50")}
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.code == "share_sum_mismatch"
        assert warning.difference == Decimal("150")
        assert warning.shares_total == Decimal("150")
        assert warning.expense_total == Decimal("300")

    def test_within_tolerance_has_no_warning(self):
        split = FixedSplit(shares={"B": Decimal("60"), "C": Decimal("39.6")})
        result = split_expense(make_expense("100", ["A", "B", "C"], split))
        assert result.warnings == []

    def test_tolerance_boundary(self):
        """A difference of exactly 0.5 is accepted; more is flagged."""
        at_limit = FixedSplit(shares={"B": Decimal("99.5")})
        over_limit = FixedSplit(shares={"B": Decimal("99.49")})

        assert split_expense(make_expense("100", ["B"], at_limit)).warnings == []
        assert len(split_expense(make_expense("100", ["B"], over_limit)).warnings) == 1

    def test_custom_tolerance(self):
        split = FixedSplit(shares={"B": Decimal("99")})
        result = split_expense(make_expense("100", ["B"], split), tolerance=Decimal("2"))
        assert result.warnings == []


class TestPercentageSplit:
    """Percentage points, rescaled by their sum."""

    def test_sixty_forty(self):
        split = PercentageSplit(shares={"B": Decimal("60"), "C": Decimal("40")})
        shares = compute_shares(make_expense("300", ["A", "B", "C"], split))
        assert shares == {"B": Decimal("180"), "C": Decimal("120")}

    def test_renormalizes_when_not_hundred(self):
        """30/10 behaves like 75/25."""
        split = PercentageSplit(shares={"B": Decimal("30"), "C": Decimal("10")})
        shares = compute_shares(make_expense("200", ["B", "C"], split))
        assert shares == {"B": Decimal("150"), "C": Decimal("50")}

    def test_only_participants_count(self):
        split = PercentageSplit(shares={"B": Decimal("50"), "Z": Decimal("50")})
        shares = compute_shares(make_expense("80", ["A", "B"], split))
        assert shares == {"B": Decimal("80")}

    def test_zero_sum_rejected(self):
        """No silent fallback to an equal split."""
        split = PercentageSplit(shares={"B": Decimal("0"), "C": Decimal("-5")})
        with pytest.raises(InvalidSplitError):
            compute_shares(make_expense("100", ["B", "C"], split))

    @pytest.mark.parametrize("seed", range(25))
    def test_shares_always_sum_to_total(self, seed):
        """Any positive percentages add back up to the converted amount."""
        rng = random.Random(seed)
        participants = [f"m{i}" for i in range(rng.randint(1, 8))]
        percents = {
            p: Decimal(rng.randint(1, 10_000)) / 100 for p in participants
        }
        amount = str(Decimal(rng.randint(1, 10_000_000)) / 100)
        expense = make_expense(
            amount, participants, PercentageSplit(shares=percents),
            payer="m0", rate="7.8123", fee="1.75",
        )

        result = split_expense(expense)

        assert abs(sum(result.shares.values()) - expense.amount_settlement) < Decimal("1e-6")
        assert result.warnings == []


class TestValidatePolicy:
    """Validation before anything is saved."""

    def test_equal_with_participants(self):
        validate_policy(EqualSplit(), ["A"])

    def test_fixed_without_entries(self):
        with pytest.raises(InvalidSplitError):
            validate_policy(FixedSplit(shares={}), ["A", "B"])

    def test_percentage_for_non_participant_only(self):
        with pytest.raises(InvalidSplitError):
            validate_policy(PercentageSplit(shares={"C": Decimal("100")}), ["A", "B"])
