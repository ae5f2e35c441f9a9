"""Custom exceptions for SplitLedger."""


class SplitLedgerError(Exception):
    """Base exception for all SplitLedger errors."""

    pass


class ConfigurationError(SplitLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidSplitError(SplitLedgerError):
    """Raised when split inputs cannot produce a valid share mapping."""

    pass


class PermissionDeniedError(SplitLedgerError):
    """Raised when an actor may not mutate a project."""

    def __init__(self, actor_id: str, project_id: str, message: str | None = None):
        self.actor_id = actor_id
        self.project_id = project_id
        super().__init__(
            message or f"User {actor_id} is not allowed to modify project {project_id}"
        )


class StaleReferenceError(SplitLedgerError):
    """Raised when a member id no longer exists in its project."""

    def __init__(self, member_id: str, project_id: str):
        self.member_id = member_id
        self.project_id = project_id
        super().__init__(f"Member {member_id} is not in project {project_id}")


class RateUnavailableError(SplitLedgerError):
    """Raised when no usable exchange rate could be obtained."""

    pass


class NotFoundError(SplitLedgerError):
    """Base class for missing records."""

    pass


class ProjectNotFoundError(NotFoundError):
    """Raised when a project id is unknown."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class ExpenseNotFoundError(NotFoundError):
    """Raised when an expense id is unknown within a project."""

    def __init__(self, project_id: str, expense_id: str):
        self.project_id = project_id
        self.expense_id = expense_id
        super().__init__(f"Expense {expense_id} not found in project {project_id}")


class InvalidExpenseError(SplitLedgerError):
    """Raised when expense fields fail validation (amount, rate, currency, payer)."""

    pass


class InvalidProjectError(SplitLedgerError):
    """Raised when a project has no name or no members."""

    pass
