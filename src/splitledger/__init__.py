"""SplitLedger - Split shared group expenses across currencies."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .ledger import compute_balances, summarize_balances
from .models import (
    Actor,
    EqualSplit,
    Expense,
    FixedSplit,
    Member,
    PercentageSplit,
    Project,
    ProjectSnapshot,
)
from .money import convert, effective_rate
from .service import LedgerService
from .splitter import compute_shares, split_expense

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "compute_balances",
    "summarize_balances",
    "Actor",
    "EqualSplit",
    "Expense",
    "FixedSplit",
    "Member",
    "PercentageSplit",
    "Project",
    "ProjectSnapshot",
    "convert",
    "effective_rate",
    "LedgerService",
    "compute_shares",
    "split_expense",
]
