"""Service layer that composes storage, rate lookup and the ledger core.

``LedgerService`` is the session object for one actor: reads hand out
immutable snapshots, writes are checked for permission and validated in full
before anything reaches the database.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal

import httpx
from pydantic import ValidationError

from .auth import require_mutate
from .clients.rates import RateClient
from .config import Settings
from .db import Database
from .exceptions import (
    ExpenseNotFoundError,
    InvalidExpenseError,
    InvalidProjectError,
    InvalidSplitError,
    ProjectNotFoundError,
    RateUnavailableError,
)
from .ledger import get_member, summarize_balances
from .models import (
    Actor,
    BalanceLine,
    EqualSplit,
    Expense,
    ExpenseDraft,
    FixedSplit,
    Member,
    PercentageSplit,
    Project,
    ProjectSnapshot,
)
from .money import resolve_rate, to_decimal
from .splitter import positive_entries, split_expense

logger = logging.getLogger(__name__)

YOUR_NAME_KEY = "your_name"


class LedgerService:
    """Service for managing projects and expenses on behalf of one actor."""

    def __init__(self, settings: Settings, database: Database, actor: Actor | None = None):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database
        self.actor = actor or Actor(
            id=settings.actor_id,
            email=settings.actor_email,
            name=settings.actor_name,
        )

    # ========================================================================
    # Reads
    # ========================================================================

    def get_project(self, project_id: str) -> Project:
        """Get a project or raise ProjectNotFoundError."""
        project = self.db.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def list_projects(self) -> list[Project]:
        """Projects owned by the current actor, newest first."""
        return self.db.list_projects_for_owner(self.actor.id)

    def snapshot(self, project_id: str) -> ProjectSnapshot:
        """Load a project with all of its expenses as one immutable value."""
        project = self.get_project(project_id)
        expenses = self.db.list_expenses(project_id)
        return ProjectSnapshot(project=project, expenses=tuple(expenses))

    def balances(self, project_id: str, your_name: str | None = None) -> list[BalanceLine]:
        """Balance summary for a project, marking ``your_name`` (default: the saved name)."""
        if your_name is None:
            your_name = self.your_name
        return summarize_balances(self.snapshot(project_id), your_name)

    @property
    def your_name(self) -> str:
        """The name used to mark "you" in member lists."""
        return self.db.get_config(YOUR_NAME_KEY) or self.settings.your_name

    def set_your_name(self, name: str):
        """Remember the current user's display name."""
        self.db.set_config(YOUR_NAME_KEY, name.strip())

    def share_link(self, project_id: str, base_url: str) -> str:
        """Link that opens a project directly."""
        project = self.get_project(project_id)
        url = httpx.URL(base_url).copy_merge_params({"project": project.id})
        return str(url)

    # ========================================================================
    # Projects
    # ========================================================================

    def create_project(
        self,
        name: str,
        member_names: Sequence[str],
        editor_ids: Iterable[str] = (),
    ) -> Project:
        """
        Create a project owned by the current actor.

        Args:
            name: Project name
            member_names: Member display names; blanks are dropped
            editor_ids: External identities (emails) allowed to edit

        Returns:
            The saved project
        """
        name = name.strip()
        names = clean_member_names(member_names)
        if not name or not names:
            raise InvalidProjectError("A project needs a name and at least one member")

        project = Project(
            name=name,
            owner_id=self.actor.id,
            members=[Member(name=n) for n in names],
            editor_ids=list(editor_ids),
            **self._stamp(),
        )
        self.db.put_project(project)
        logger.info(f"Created project {project.id} ({project.name})")
        return project

    def edit_project(
        self,
        project_id: str,
        name: str | None = None,
        member_names: Sequence[str] | None = None,
        editor_ids: Iterable[str] | None = None,
    ) -> Project:
        """
        Update a project's name, members or editors.

        Members whose names match an existing member keep their id; members
        left out are removed and their expenses keep dangling references.
        """
        project = self.get_project(project_id)
        require_mutate(self.actor, project)

        update: dict = self._stamp()
        if name is not None:
            if not name.strip():
                raise InvalidProjectError("Project name cannot be empty")
            update["name"] = name.strip()
        if member_names is not None:
            names = clean_member_names(member_names)
            if not names:
                raise InvalidProjectError("A project needs at least one member")
            update["members"] = merge_members(project.members, names)
        if editor_ids is not None:
            update["editor_ids"] = list(editor_ids)

        updated = Project.model_validate(
            {**project.model_dump(), **update}
        )
        self.db.put_project(updated)
        logger.info(f"Updated project {project.id}")
        return updated

    def delete_project(self, project_id: str):
        """Delete a project together with all of its expenses."""
        project = self.get_project(project_id)
        require_mutate(self.actor, project)
        self.db.delete_project(project_id)
        logger.info(f"Deleted project {project_id}")

    def set_settled(self, project_id: str, member_id: str, settled: bool = True) -> Project:
        """Record whether a member has settled up. Does not touch balances."""
        project = self.get_project(project_id)
        require_mutate(self.actor, project)
        get_member(project, member_id)

        updated = project.model_copy(
            update={"settled": {**project.settled, member_id: settled}, **self._stamp()}
        )
        self.db.put_project(updated)
        logger.info(f"Marked {member_id} as {'settled' if settled else 'unsettled'}")
        return updated

    # ========================================================================
    # Expenses
    # ========================================================================

    def draft_expense(
        self,
        project_id: str,
        *,
        payer_id: str,
        currency: str,
        amount_foreign: Decimal,
        rate_raw: Decimal | None = None,
        fee_percent: Decimal = Decimal("0"),
        participant_ids: Sequence[str] | None = None,
        split: EqualSplit | FixedSplit | PercentageSplit | None = None,
        rate_source: str = "manual",
        description: str = "",
        spent_on: date | None = None,
        expense_id: str | None = None,
    ) -> ExpenseDraft:
        """
        Build and validate an expense without saving it.

        The settlement currency is pinned to a rate of 1, fixed and percentage
        entries are restricted to participants, and the split is computed once
        so that invalid input fails here. Advisory warnings travel with the
        draft for the caller to confirm.

        Args:
            project_id: Project the expense belongs to
            expense_id: Existing expense to replace, None for a new one

        Returns:
            Draft ready for ``save_expense``

        Raises:
            PermissionDeniedError: If the actor may not edit the project
            InvalidSplitError: If no shares can be computed
            InvalidExpenseError: If the payer, participants or amounts are invalid
            RateUnavailableError: If a foreign currency has no rate
        """
        project = self.get_project(project_id)
        require_mutate(self.actor, project)

        existing = None
        if expense_id is not None:
            existing = self.db.get_expense(project_id, expense_id)
            if existing is None:
                raise ExpenseNotFoundError(project_id, expense_id)

        members = project.member_ids
        if payer_id not in members:
            raise InvalidExpenseError(f"Payer {payer_id} is not a member of this project")

        participants = (
            list(participant_ids)
            if participant_ids is not None
            else [m.id for m in project.members]
        )
        unknown = [p for p in participants if p not in members]
        if unknown:
            raise InvalidSplitError(f"Unknown participants: {', '.join(unknown)}")

        policy = split or EqualSplit()
        if isinstance(policy, (FixedSplit, PercentageSplit)):
            policy = policy.model_copy(
                update={"shares": positive_entries(policy.shares, participants)}
            )

        rate = resolve_rate(
            currency,
            to_decimal(rate_raw) if rate_raw is not None else None,
            self.settings.settlement_currency,
        )

        fields = {
            "project_id": project.id,
            "description": description.strip(),
            "spent_on": spent_on,
            "payer_id": payer_id,
            "currency": currency,
            "amount_foreign": to_decimal(amount_foreign),
            "rate_source": rate_source,
            "rate_raw": rate,
            "fee_percent": to_decimal(fee_percent),
            "participant_ids": participants,
            "split": policy,
        }
        if existing is not None:
            fields["id"] = existing.id
            fields["created_at"] = existing.created_at

        try:
            expense = Expense(**fields)
        except ValidationError as e:
            raise InvalidExpenseError(f"Invalid expense: {e}") from e

        result = split_expense(expense, tolerance=self.settings.share_tolerance)
        return ExpenseDraft(
            expense=expense,
            shares=result.shares,
            warnings=result.warnings,
            is_new=existing is None,
        )

    def save_expense(self, draft: ExpenseDraft) -> Expense:
        """
        Persist a draft, overwriting any previous version of the expense.

        Permission is checked again against the current project since the
        draft may have been prepared earlier.
        """
        project = self.get_project(draft.expense.project_id)
        require_mutate(self.actor, project)

        for warning in draft.warnings:
            logger.warning(f"Saving expense {draft.expense.id} despite: {warning.message}")

        self.db.put_expense(draft.expense)
        self.db.put_project(project.model_copy(update=self._stamp()))

        action = "Added" if draft.is_new else "Updated"
        logger.info(
            f"{action} expense {draft.expense.id}: {draft.expense.amount_foreign} "
            f"{draft.expense.currency} paid by {draft.expense.payer_id}"
        )
        return draft.expense

    def delete_expense(self, project_id: str, expense_id: str):
        """Delete one expense of a project."""
        project = self.get_project(project_id)
        require_mutate(self.actor, project)

        if not self.db.delete_expense(project_id, expense_id):
            raise ExpenseNotFoundError(project_id, expense_id)

        self.db.put_project(project.model_copy(update=self._stamp()))
        logger.info(f"Deleted expense {expense_id} from project {project_id}")

    # ========================================================================
    # Exchange rates
    # ========================================================================

    def lookup_rate(self, on_date: date, currency: str) -> Decimal | None:
        """
        Look up the official rate from ``currency`` to the settlement currency.

        Returns:
            The rate, 1 for the settlement currency itself, or None when the
            lookup failed and the rate has to be entered manually
        """
        settlement = self.settings.settlement_currency
        if currency.strip().upper() == settlement:
            return Decimal("1")

        try:
            with RateClient(
                base_url=self.settings.rate_api_url,
                timeout=self.settings.rate_timeout,
            ) as client:
                return client.get_rate(on_date, currency, settlement)
        except RateUnavailableError as e:
            logger.warning(f"{e}; the rate must be entered manually")
            return None

    # ========================================================================
    # Helpers
    # ========================================================================

    def _stamp(self) -> dict:
        return {
            "last_updated_at": datetime.now(),
            "last_updated_by_name": self.actor.name,
            "last_updated_by_email": self.actor.email,
        }


def clean_member_names(names: Iterable[str]) -> list[str]:
    """Trim member names and drop blanks."""
    return [n.strip() for n in names if n and n.strip()]


def parse_member_names(text: str) -> list[str]:
    """Split a comma separated member list."""
    return clean_member_names(text.split(","))


def merge_members(existing: Sequence[Member], names: Sequence[str]) -> list[Member]:
    """
    Build a new member list, reusing ids of members with a matching name.

    Each existing member is reused at most once so duplicate names still get
    distinct ids.
    """
    available: dict[str, list[Member]] = {}
    for member in existing:
        available.setdefault(member.name.strip().casefold(), []).append(member)

    members = []
    for name in names:
        matches = available.get(name.strip().casefold())
        if matches:
            members.append(matches.pop(0).model_copy(update={"name": name.strip()}))
        else:
            members.append(Member(name=name))
    return members
