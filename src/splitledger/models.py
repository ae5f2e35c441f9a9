"""Pydantic domain models for SplitLedger.

Python attributes are snake_case; documents exchanged with storage use the
camelCase names (``payerId``, ``amountForeign``, ``splitMode`` ...). Every model
is frozen: edits go through ``model_copy(update=...)`` so the ledger always
works on an immutable snapshot.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .money import convert, effective_rate


def new_id() -> str:
    """Generate an opaque record id."""
    return uuid.uuid4().hex


class LedgerModel(BaseModel):
    """Base for all domain models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ============================================================================
# Project Models
# ============================================================================


class Member(LedgerModel):
    """A person taking part in a project."""

    id: str = Field(default_factory=new_id)
    name: str

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()


class Project(LedgerModel):
    """A group of members sharing expenses."""

    id: str = Field(default_factory=new_id)
    name: str
    owner_id: str
    members: list[Member] = Field(default_factory=list)
    editor_ids: list[str] = Field(default_factory=list)  # external identities
    settled: dict[str, bool] = Field(default_factory=dict)  # advisory only
    created_at: datetime = Field(default_factory=datetime.now)
    last_updated_at: datetime | None = None
    last_updated_by_name: str | None = None
    last_updated_by_email: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_owner(cls, data: Any) -> Any:
        # Older documents stored the owner as ownerUid
        if isinstance(data, dict) and "ownerUid" in data and "ownerId" not in data:
            data = {**data, "ownerId": data["ownerUid"]}
        return data

    @field_validator("members")
    @classmethod
    def _unique_member_ids(cls, members: list[Member]) -> list[Member]:
        seen: set[str] = set()
        for member in members:
            if member.id in seen:
                raise ValueError(f"Duplicate member id {member.id}")
            seen.add(member.id)
        return members

    @field_validator("editor_ids")
    @classmethod
    def _dedupe_editors(cls, editor_ids: list[str]) -> list[str]:
        result: list[str] = []
        seen: set[str] = set()
        for editor in editor_ids:
            key = editor.strip().casefold()
            if key and key not in seen:
                seen.add(key)
                result.append(editor.strip())
        return result

    @property
    def member_ids(self) -> set[str]:
        return {m.id for m in self.members}

    def to_document(self) -> dict[str, Any]:
        """Serialize to the storage shape."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# Split Policies
# ============================================================================


class EqualSplit(LedgerModel):
    """Everyone in the participant set pays the same share."""

    mode: Literal["equal"] = "equal"


class FixedSplit(LedgerModel):
    """Explicit settlement-currency amounts per member."""

    mode: Literal["fixed"] = "fixed"
    shares: dict[str, Decimal]


class PercentageSplit(LedgerModel):
    """Percentage points per member, renormalized by their sum."""

    mode: Literal["percentage"] = "percentage"
    shares: dict[str, Decimal]


SplitPolicy = Annotated[
    EqualSplit | FixedSplit | PercentageSplit, Field(discriminator="mode")
]

# Names used by earlier versions of the stored documents
SPLIT_MODE_ALIASES = {
    "custom": "fixed",
    "amount": "fixed",
    "percent": "percentage",
}


def normalize_split_mode(mode: str | None) -> str:
    """Map a stored or user-entered split mode name onto its canonical name."""
    if not mode:
        return "equal"
    key = mode.strip().lower()
    return SPLIT_MODE_ALIASES.get(key, key)


# ============================================================================
# Expense Models
# ============================================================================


class Expense(LedgerModel):
    """A single payment fronted by one member on behalf of others."""

    id: str = Field(default_factory=new_id)
    project_id: str
    description: str = ""
    spent_on: date | None = Field(default=None, alias="date")
    payer_id: str
    currency: str
    amount_foreign: Decimal = Field(gt=0)
    rate_source: Literal["manual", "official"] = "manual"
    rate_raw: Decimal = Field(gt=0)
    fee_percent: Decimal = Field(default=Decimal("0"), ge=0)
    participant_ids: list[str] = Field(default_factory=list)
    split: SplitPolicy = Field(default_factory=EqualSplit)
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="before")
    @classmethod
    def _from_document(cls, data: Any) -> Any:
        """Fold the flat splitMode/shares storage fields into a split policy."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # Derived values are always recomputed
        for key in ("effectiveRate", "effective_rate", "amountSettlement",
                    "amount_settlement", "amountHKD"):
            data.pop(key, None)

        if "split" in data:
            return data

        mode_key = "splitMode" if "splitMode" in data else "split_mode"
        mode = normalize_split_mode(data.pop(mode_key, None))
        shares = data.pop("shares", None)
        # Older documents kept the custom mode with no shares; those split equally
        if mode == "equal" or not shares:
            data["split"] = EqualSplit()
        else:
            data["split"] = {"mode": mode, "shares": shares or {}}
        return data

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        code = value.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {value!r}")
        return code

    @field_validator("participant_ids")
    @classmethod
    def _dedupe_participants(cls, participant_ids: list[str]) -> list[str]:
        return list(dict.fromkeys(participant_ids))

    @property
    def split_mode(self) -> str:
        return self.split.mode

    @property
    def effective_rate(self) -> Decimal:
        return effective_rate(self.rate_raw, self.fee_percent)

    @property
    def amount_settlement(self) -> Decimal:
        return convert(self.amount_foreign, self.rate_raw, self.fee_percent)

    def to_document(self) -> dict[str, Any]:
        """
        Serialize to the flat storage shape.

        The split policy becomes ``splitMode`` plus ``shares`` (``None`` for an
        equal split); derived amounts are included for readers of the raw data.
        """
        document = self.model_dump(mode="json", by_alias=True, exclude={"split"})
        document["splitMode"] = self.split.mode
        document["shares"] = (
            None
            if isinstance(self.split, EqualSplit)
            else {k: str(v) for k, v in self.split.shares.items()}
        )
        document["effectiveRate"] = str(self.effective_rate)
        document["amountSettlement"] = str(self.amount_settlement)
        return document


# ============================================================================
# Computation Models
# ============================================================================


class Actor(LedgerModel):
    """The identity performing an operation."""

    id: str
    email: str | None = None
    name: str | None = None


class ProjectSnapshot(LedgerModel):
    """An immutable view of a project and all of its expenses."""

    project: Project
    expenses: tuple[Expense, ...] = ()


class SplitWarning(LedgerModel):
    """Advisory problem with a split; the caller decides whether to proceed."""

    code: str
    message: str
    shares_total: Decimal
    expense_total: Decimal
    difference: Decimal


class SplitResult(LedgerModel):
    """Shares computed for one expense plus any advisory warnings."""

    shares: dict[str, Decimal]
    warnings: list[SplitWarning] = Field(default_factory=list)


class ExpenseDraft(LedgerModel):
    """A validated expense waiting to be saved."""

    expense: Expense
    shares: dict[str, Decimal]
    warnings: list[SplitWarning] = Field(default_factory=list)
    is_new: bool = True


class BalanceLine(LedgerModel):
    """One row of a project's balance summary."""

    member_id: str
    name: str
    balance: Decimal  # positive = owes the group, negative = is owed
    status: Literal["owed", "owes", "even"]
    settled: bool = False
    is_me: bool = False
