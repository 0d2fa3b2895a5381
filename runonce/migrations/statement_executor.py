"""
Statement executor for raw migration SQL.

Sends migration SQL to the database exactly as written and reports the
driver's error code and description on failure. There is no parameter
binding and no escaping: migration SQL is trusted application code.
"""

import logging
import time
from typing import Any, Optional

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from runonce.migrations.migration import StatementOutcome


logger = logging.getLogger(__name__)

# Skip driver paramstyle interpolation (format/pyformat drivers run sql % params)
NO_PARAMETERS = {'no_parameters': True}


class StatementExecutor:
    """
    Execute one raw SQL statement in its own transaction.

    Uses exec_driver_sql with the no_parameters option, so the driver gets
    cursor.execute(sql) and colons or percent signs are never interpreted
    as placeholders. Every failure is final for the statement; there
    is no retry.

    Example:
        >>> executor = StatementExecutor(database)
        >>> outcome = await executor.execute('ALTER TABLE t ADD COLUMN c INT')
        >>> outcome.success
        True
    """

    SLOW_STATEMENT_THRESHOLD_MS: int = 5000

    def __init__(self, database, slow_statement_threshold_ms: int = SLOW_STATEMENT_THRESHOLD_MS):
        """
        Initialize executor.

        Args:
            database: MigrationDatabase instance
            slow_statement_threshold_ms: Statements taking longer than this
                are logged as warnings
        """
        self.database = database
        self.slow_statement_threshold_ms = slow_statement_threshold_ms
        self.logger = logger

    async def execute(self, sql: str) -> StatementOutcome:
        """
        Run SQL text against the database.

        Args:
            sql: Complete SQL statement

        Returns:
            StatementOutcome; on failure error_code and error_info are
            taken from the driver exception
        """
        start_time = time.perf_counter()

        try:
            async with self.database.engine.begin() as conn:
                await conn.exec_driver_sql(sql, execution_options=NO_PARAMETERS)
        except SQLAlchemyError as e:
            self.logger.debug('Statement failed: %s', e)
            return StatementOutcome(
                sql=sql,
                success=False,
                error_code=extract_error_code(e),
                error_info=describe_error(e),
            )

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        if execution_time_ms > self.slow_statement_threshold_ms:
            self.logger.warning(
                'Slow migration statement: %.2fms (threshold: %dms)',
                execution_time_ms,
                self.slow_statement_threshold_ms
            )

        return StatementOutcome(sql=sql, success=True)


def extract_error_code(error: Exception) -> Optional[int]:
    """
    Find the driver's numeric error code behind a SQLAlchemy error.

    Checks, on the wrapped DBAPI exception:
    - sqlite_errorcode (sqlite3 / aiosqlite)
    - args[0] when it is an int (MySQL drivers: 1060 duplicate column, ...)
    - errno
    - sqlstate / pgcode when numeric (PostgreSQL)

    Args:
        error: Exception raised by SQLAlchemy or the driver

    Returns:
        Integer code, or None if the driver did not provide one
    """
    orig: Any = error.orig if isinstance(error, DBAPIError) else error
    if orig is None:
        return None

    code = getattr(orig, 'sqlite_errorcode', None)
    if isinstance(code, int):
        return code

    args = getattr(orig, 'args', ())
    if args and isinstance(args[0], int) and not isinstance(args[0], bool):
        return args[0]

    code = getattr(orig, 'errno', None)
    if isinstance(code, int):
        return code

    for attr in ('sqlstate', 'pgcode'):
        code = getattr(orig, attr, None)
        if isinstance(code, str) and code.isdigit():
            return int(code)

    return None


def describe_error(error: Exception) -> str:
    """Full error description, preferring the driver's own message."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        return f'{type(error.orig).__name__}: {error.orig}'
    return f'{type(error).__name__}: {error}'
