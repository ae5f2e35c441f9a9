"""Tests for domain models and their storage documents."""

import json
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from splitledger.models import (
    EqualSplit,
    Expense,
    FixedSplit,
    Member,
    PercentageSplit,
    Project,
    normalize_split_mode,
)


@pytest.fixture
def fixed_expense():
    return Expense(
        id="e1",
        project_id="p1",
        description="Dinner",
        spent_on=date(2025, 3, 1),
        payer_id="A",
        currency="usd",
        amount_foreign=Decimal("100"),
        rate_source="official",
        rate_raw=Decimal("7.8"),
        fee_percent=Decimal("2"),
        participant_ids=["A", "B", "C"],
        split=FixedSplit(shares={"B": Decimal("500"), "C": Decimal("295.6")}),
    )


class TestExpenseDocument:
    """The flat camelCase document shape."""

    def test_document_shape(self, fixed_expense):
        doc = fixed_expense.to_document()

        assert doc["payerId"] == "A"
        assert doc["currency"] == "USD"
        assert doc["date"] == "2025-03-01"
        assert doc["participantIds"] == ["A", "B", "C"]
        assert doc["splitMode"] == "fixed"
        assert doc["shares"] == {"B": "500", "C": "295.6"}
        assert Decimal(doc["effectiveRate"]) == Decimal("7.956")
        assert Decimal(doc["amountSettlement"]) == Decimal("795.6")
        assert "split" not in doc

    def test_document_survives_json(self, fixed_expense):
        doc = json.loads(json.dumps(fixed_expense.to_document()))
        assert Expense.model_validate(doc) == fixed_expense

    def test_equal_split_has_no_shares(self):
        expense = Expense(
            project_id="p1",
            payer_id="A",
            currency="HKD",
            amount_foreign=Decimal("10"),
            rate_raw=Decimal("1"),
            participant_ids=["A"],
        )
        doc = expense.to_document()

        assert doc["splitMode"] == "equal"
        assert doc["shares"] is None
        assert isinstance(Expense.model_validate(doc).split, EqualSplit)

    def test_percentage_policy_loaded(self):
        doc = {
            "projectId": "p1",
            "payerId": "A",
            "currency": "HKD",
            "amountForeign": 300,
            "rateRaw": 1,
            "participantIds": ["A", "B"],
            "splitMode": "percentage",
            "shares": {"B": 60},
        }
        expense = Expense.model_validate(doc)

        assert isinstance(expense.split, PercentageSplit)
        assert expense.split.shares == {"B": Decimal("60")}

    def test_legacy_custom_mode(self):
        """Older documents used 'custom' and amountHKD."""
        doc = {
            "projectId": "p1",
            "payerId": "A",
            "currency": "HKD",
            "amountForeign": 300,
            "rateRaw": 1,
            "feePercent": 0,
            "effectiveRate": 1,
            "amountHKD": 300,
            "participantIds": ["A", "B"],
            "splitMode": "custom",
            "shares": {"B": 100},
        }
        expense = Expense.model_validate(doc)

        assert isinstance(expense.split, FixedSplit)
        assert expense.split_mode == "fixed"
        assert expense.amount_settlement == Decimal("300")

    @pytest.mark.parametrize("shares", [None, {}, "missing"])
    def test_legacy_custom_mode_without_shares_splits_equally(self, shares):
        doc = {
            "projectId": "p1",
            "payerId": "A",
            "currency": "HKD",
            "amountForeign": 100,
            "rateRaw": 1,
            "participantIds": ["A", "B"],
            "splitMode": "custom",
        }
        if shares != "missing":
            doc["shares"] = shares

        expense = Expense.model_validate(doc)

        assert isinstance(expense.split, EqualSplit)

    def test_stored_derived_values_are_recomputed(self, fixed_expense):
        doc = fixed_expense.to_document()
        doc["amountSettlement"] = "1"
        assert Expense.model_validate(doc).amount_settlement == Decimal("795.6")


class TestExpenseValidation:
    """Field constraints."""

    def base(self, **overrides):
        fields = {
            "project_id": "p1",
            "payer_id": "A",
            "currency": "HKD",
            "amount_foreign": Decimal("10"),
            "rate_raw": Decimal("1"),
            "participant_ids": ["A"],
        }
        fields.update(overrides)
        return fields

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount_foreign": Decimal("0")},
            {"amount_foreign": Decimal("-1")},
            {"rate_raw": Decimal("0")},
            {"fee_percent": Decimal("-0.1")},
            {"currency": "DOLLARS"},
            {"currency": "U$"},
        ],
    )
    def test_rejects_bad_values(self, overrides):
        with pytest.raises(ValidationError):
            Expense(**self.base(**overrides))

    def test_duplicate_participants_collapse(self):
        expense = Expense(**self.base(participant_ids=["A", "B", "A"]))
        assert expense.participant_ids == ["A", "B"]

    def test_frozen(self):
        expense = Expense(**self.base())
        with pytest.raises(ValidationError):
            expense.payer_id = "B"


class TestProject:
    """Project model."""

    def test_document_round_trip(self):
        project = Project(
            name="Trip",
            owner_id="u1",
            members=[Member(name=" Alice "), Member(name="Bob")],
            editor_ids=["Friend@Example.com", "friend@example.com", " "],
            settled={"x": True},
        )
        doc = json.loads(json.dumps(project.to_document()))

        assert doc["ownerId"] == "u1"
        assert doc["editorIds"] == ["Friend@Example.com"]
        assert doc["members"][0]["name"] == "Alice"
        assert Project.model_validate(doc) == project

    def test_legacy_owner_uid(self):
        project = Project.model_validate({"name": "Old", "ownerUid": "u9"})
        assert project.owner_id == "u9"

    def test_duplicate_member_ids_rejected(self):
        with pytest.raises(ValidationError):
            Project(
                name="Trip",
                owner_id="u1",
                members=[Member(id="m", name="A"), Member(id="m", name="B")],
            )


@pytest.mark.parametrize(
    "raw,expected",
    [(None, "equal"), ("", "equal"), ("Equal", "equal"), ("custom", "fixed"),
     ("percent", "percentage"), ("percentage", "percentage")],
)
def test_normalize_split_mode(raw, expected):
    assert normalize_split_mode(raw) == expected
