"""
sqlkv.errors

Error taxonomy for the key-value engines.

Responsibilities:
- Separate infrastructure failures (raised) from optimistic conflicts (returned as data).
- Carry enough context (operation, SQL text, limit) for callers to log and decide.
"""

from __future__ import annotations


class SqlkvError(Exception):
    """Base error for all sqlkv errors."""


class SqlExecutionError(SqlkvError):
    """Raised when the database or its transport fails a statement."""

    def __init__(self, operation: str, detail: str, *, sql: str | None = None) -> None:
        self.operation = operation
        self.detail = detail
        self.sql = sql
        message = f"SQL {operation} failed: {detail}"
        if sql is not None:
            message = f"{message} [{sql}]"
        super().__init__(message)


class ConstraintViolationError(SqlExecutionError):
    """Raised when a statement violates a table constraint, e.g. inserting an existing key."""


class RowLimitExceededError(SqlkvError):
    """Raised when a bounded read finds more rows than allowed and the caller asked to fail."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Expected at most {limit} row(s) but found more")


class TemplateError(SqlkvError, ValueError):
    """Raised when a SQL template cannot be rendered."""


# --- Module Notes -----------------------------------------------------------
# Optimistic conflicts are never exceptions: swap returns the current version,
# touch returns None and remove returns False. Callers build retry loops on values.
