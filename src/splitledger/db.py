"""SQLite database operations for SplitLedger."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from .models import Expense, Project


class Database:
    """SQLite database manager.

    Projects and expenses are stored as JSON documents in their camelCase
    interchange shape, next to the few columns needed for lookups.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Projects table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL,
                document TEXT NOT NULL
            )
        """
        )

        # Expenses table, removed together with their project
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                project_id TEXT NOT NULL
                    REFERENCES projects(id) ON DELETE CASCADE,
                created_at TIMESTAMP NOT NULL,
                document TEXT NOT NULL
            )
        """
        )

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_expenses_project ON expenses(project_id)"
        )

        # Config table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS config (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Config operations
    # ========================================================================

    def get_config(self, key: str) -> str | None:
        """Get a config value by key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM config WHERE key = ?", (key,))
        row = cursor.fetchone()
        return str(row["value"]) if row else None

    def set_config(self, key: str, value: str):
        """Set a config value."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO config (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        self.conn.commit()

    # ========================================================================
    # Project operations
    # ========================================================================

    def put_project(self, project: Project):
        """Insert or overwrite a project (last write wins)."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO projects (id, owner_id, created_at, document)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                owner_id = excluded.owner_id,
                document = excluded.document
            """,
            (
                project.id,
                project.owner_id,
                project.created_at.isoformat(),
                json.dumps(project.to_document()),
            ),
        )
        self.conn.commit()

    def get_project(self, project_id: str) -> Project | None:
        """Get a project by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT document FROM projects WHERE id = ?", (project_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return Project.model_validate(json.loads(row["document"]))

    def list_projects_for_owner(self, owner_id: str) -> list[Project]:
        """Get all projects owned by a user, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT document FROM projects
            WHERE owner_id = ?
            ORDER BY created_at DESC
            """,
            (owner_id,),
        )
        return [
            Project.model_validate(json.loads(row["document"]))
            for row in cursor.fetchall()
        ]

    def delete_project(self, project_id: str) -> bool:
        """Delete a project and all of its expenses."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Expense operations
    # ========================================================================

    def put_expense(self, expense: Expense):
        """Insert or overwrite an expense (last write wins)."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO expenses (id, project_id, created_at, document)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                project_id = excluded.project_id,
                document = excluded.document
            """,
            (
                expense.id,
                expense.project_id,
                expense.created_at.isoformat(),
                json.dumps(expense.to_document()),
            ),
        )
        self.conn.commit()

    def get_expense(self, project_id: str, expense_id: str) -> Expense | None:
        """Get one expense of a project."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT document FROM expenses WHERE id = ? AND project_id = ?",
            (expense_id, project_id),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return Expense.model_validate(json.loads(row["document"]))

    def list_expenses(self, project_id: str) -> list[Expense]:
        """Get all expenses of a project, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT document FROM expenses
            WHERE project_id = ?
            ORDER BY created_at DESC
            """,
            (project_id,),
        )
        return [
            Expense.model_validate(json.loads(row["document"]))
            for row in cursor.fetchall()
        ]

    def delete_expense(self, project_id: str, expense_id: str) -> bool:
        """Delete one expense; returns False when it did not exist."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM expenses WHERE id = ? AND project_id = ?",
            (expense_id, project_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0
