"""
Migration data models returned by the migration engine.

This module defines the structures handed back to callers:
- MigrationSpec: A migration request (key and ordered SQL statements)
- StatementOutcome: Result of executing one SQL statement
- MigrationResult: Result of one run_once call
- BootstrapResult: Result of preparing the bookkeeping schema

Failures are reported through these objects rather than raised, so a
migration problem never blocks application startup.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Sequence, Union


SqlStatements = Union[str, Sequence[str]]


class RunStatus(Enum):
    """Overall outcome of a run_once call."""

    APPLIED = 'applied'                 # every statement succeeded
    SKIPPED = 'skipped'                 # key already present, nothing done
    ALREADY_EXISTS = 'already_exists'   # lost the insert race to another caller
    FAILED = 'failed'


class ErrorKind(Enum):
    """Step of a run that failed."""

    BOOTSTRAP = 'bootstrap'
    LOOKUP = 'lookup'
    MIGRATION_CREATE = 'migration_create'
    ALREADY_EXISTS = 'already_exists'
    STATEMENT_CREATE = 'statement_create'
    STATEMENT_EXECUTION = 'statement_execution'


class MigrationSpec(NamedTuple):
    """
    A migration request: a key and its SQL statements in order.

    Unpacks like the (key, statements) pairs accepted by run_all_once.
    """

    key: Optional[str]
    statements: SqlStatements


def as_statement_list(sql_statements: SqlStatements) -> list[str]:
    """Copy statements into a new list, wrapping a single string."""
    if isinstance(sql_statements, str):
        return [sql_statements]
    return list(sql_statements)


def normalize(value: Optional[str]) -> Optional[str]:
    """Map empty and blank strings to None."""
    if value is None or not value.strip():
        return None
    return value


@dataclass
class StatementOutcome:
    """
    Result of executing one SQL statement.

    Attributes:
        sql: SQL text that was sent
        success: Whether the database accepted it
        error_code: Driver error code (failure only)
        error_info: Driver error description (failure only)
        statement_id: Bookkeeping row id, when the statement has one
    """

    sql: str
    success: bool
    error_code: Optional[int] = None
    error_info: Optional[str] = None
    statement_id: Optional[int] = None

    def __repr__(self) -> str:
        state = 'success' if self.success else f'failure({self.error_code})'
        return f"<StatementOutcome({self.statement_id}, {state})>"


@dataclass
class MigrationResult:
    """
    Result of one run_once call.

    Attributes:
        key: Normalized migration key
        status: Overall outcome
        statements: Outcomes of the statements that were executed, in order
        error_kind: Failed step (None on APPLIED/SKIPPED)
        error_message: Error description (None on APPLIED/SKIPPED)
        execution_time_ms: Wall time of the call in milliseconds

    Example:
        >>> result = await engine.run_once('add_col', 'ALTER TABLE t ADD c INT')
        >>> result.status
        <RunStatus.APPLIED: 'applied'>
    """

    key: Optional[str]
    status: RunStatus
    statements: list[StatementOutcome] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    execution_time_ms: int = 0

    @property
    def success(self) -> bool:
        """True unless the run failed; skips and lost races count as success."""
        return self.status is not RunStatus.FAILED

    def __repr__(self) -> str:
        return f"<MigrationResult({self.key}, {self.status.value})>"


@dataclass
class BootstrapResult:
    """
    Result of preparing the bookkeeping schema.

    Attributes:
        success: Both bookkeeping tables exist
        constraint_ensured: Statement foreign key is known to be present
        constraint_added: Foreign key was added by this call
        error_kind: BOOTSTRAP on failure
        error_message: Error description on failure
    """

    success: bool
    constraint_ensured: bool = False
    constraint_added: bool = False
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
