#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration runner: applies each keyed migration exactly once.

A run is: existence check -> insert migration row -> insert one pending
row per statement -> execute the statements in order, persisting each
outcome and stopping at the first failure. Every transition is committed
separately, so an interrupted run leaves a readable trail in the
migration_statements table.

There is no locking between runs. If two callers race on the same unseen
key, the unique constraint on migration_key rejects the second insert and
that caller gets RunStatus.ALREADY_EXISTS.
"""
import asyncio
import logging
import time
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from runonce.errors import (
    LookupFailedError,
    MigrationCreateError,
    MigrationExistsError,
    StatementCreateError,
    StatementExecutionError,
    log_migration_error,
)
from runonce.migrations.migration import (
    ErrorKind,
    MigrationResult,
    RunStatus,
    SqlStatements,
    StatementOutcome,
    as_statement_list,
    normalize,
)
from runonce.migrations.statement_executor import StatementExecutor
from runonce.models import (
    STATUS_FAILURE,
    STATUS_SUCCESS,
    Migration,
    MigrationStatement,
)


class MigrationRunner:
    """
    Runs keyed migrations once and records every statement's outcome.

    Attributes:
        database: MigrationDatabase instance shared by all steps
        executor: StatementExecutor used for migration SQL
        logger: Logger for run tracking

    Example:
        runner = MigrationRunner(database)

        result = await runner.run_once(
            'Articles_author_id_not_null',
            'ALTER TABLE Articles MODIFY author_id INT(11) NOT NULL'
        )

        results = await runner.run_all_once([
            ('Articles_author_id_add', 'ALTER TABLE Articles ADD COLUMN author_id INT'),
            ('Articles_handled_by_add', 'ALTER TABLE Articles ADD COLUMN handled_by INT'),
        ])
    """

    def __init__(self, database, executor: Optional[StatementExecutor] = None):
        self.database = database
        self.executor = executor or StatementExecutor(database)
        self.logger = logging.getLogger(__name__)

    async def exists(self, key: Optional[str]) -> bool:
        """
        Check whether a migration with this key has been recorded.

        Args:
            key: Migration key (normalized before lookup)

        Returns:
            True if a migration row with the key exists

        Raises:
            LookupFailedError: If the query fails
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(Migration.id)
                    .where(Migration.migration_key == normalize(key))
                    .limit(1)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise LookupFailedError(f'Failed to look up migration {key!r}: {e}') from e

    async def run_once(self, key: Optional[str], sql_statements: SqlStatements) -> MigrationResult:
        """
        Apply a migration unless its key has been seen before.

        The key must be a globally unique name for the migration. A name
        scoped by table and column, e.g. 'Articles_author_id_fk', works
        well. Empty keys are accepted here but rejected by the database.

        Args:
            key: Migration key
            sql_statements: One SQL statement or an ordered sequence of them

        Returns:
            MigrationResult. Database failures are logged and reported in
            the result, never raised.
        """
        start_time = time.time()
        key = normalize(key)
        statements = as_statement_list(sql_statements)

        def finish(status, outcomes=None, error_kind=None, error_message=None):
            return MigrationResult(
                key=key,
                status=status,
                statements=outcomes or [],
                error_kind=error_kind,
                error_message=error_message,
                execution_time_ms=int((time.time() - start_time) * 1000)
            )

        try:
            if await self.exists(key):
                self.logger.debug('Migration %s already run, skipping', key)
                return finish(RunStatus.SKIPPED)
        except LookupFailedError as e:
            log_migration_error(self.logger, '%s', e)
            return finish(RunStatus.FAILED, error_kind=ErrorKind.LOOKUP, error_message=str(e))

        try:
            migration = await self._create_migration(key)
        except MigrationExistsError as e:
            self.logger.warning('%s', e)
            return finish(
                RunStatus.ALREADY_EXISTS,
                error_kind=ErrorKind.ALREADY_EXISTS,
                error_message=str(e)
            )
        except MigrationCreateError as e:
            log_migration_error(
                self.logger,
                'Failed to create migration %s %r: %s',
                key,
                statements,
                e
            )
            return finish(RunStatus.FAILED, error_kind=ErrorKind.MIGRATION_CREATE, error_message=str(e))

        self.logger.info('Running migration %s (%d statements)', key, len(statements))

        try:
            pending = await self._create_pending_statements(migration, statements)
        except StatementCreateError as e:
            log_migration_error(self.logger, 'Failed to create statements for migration %s: %s', key, e)
            return finish(RunStatus.FAILED, error_kind=ErrorKind.STATEMENT_CREATE, error_message=str(e))

        outcomes = []
        try:
            await self._run_pending_statements(pending, outcomes)
        except StatementExecutionError as e:
            log_migration_error(self.logger, 'Migration %s: %s', key, e)
            return finish(
                RunStatus.FAILED,
                outcomes,
                error_kind=ErrorKind.STATEMENT_EXECUTION,
                error_message=str(e)
            )

        result = finish(RunStatus.APPLIED, outcomes)
        self.logger.info('Applied migration %s (%dms)', key, result.execution_time_ms)
        return result

    async def run_all_once(self, migrations: Iterable, sequential: bool = False) -> list[MigrationResult]:
        """
        Run several migrations, starting them in list order.

        By default each migration is started without waiting for the
        previous one, so different keys may interleave. Statements of one
        migration are still strictly ordered. Pass sequential=True when
        later migrations depend on earlier ones.

        Args:
            migrations: (key, sql_statements) pairs or MigrationSpec tuples
            sequential: Finish each migration before starting the next

        Returns:
            One MigrationResult per migration, in input order
        """
        if sequential:
            return [
                await self.run_once(key, sql_statements)
                for key, sql_statements in migrations
            ]

        tasks = [self.schedule_once(key, sql_statements) for key, sql_statements in migrations]
        return list(await asyncio.gather(*tasks))

    def schedule_once(self, key: Optional[str], sql_statements: SqlStatements) -> asyncio.Task:
        """Start run_once in the background and return its task."""
        return asyncio.create_task(
            self.run_once(key, as_statement_list(sql_statements)),
            name=f'runonce:{key}'
        )

    async def get_statements(self, key: Optional[str]) -> list[MigrationStatement]:
        """
        Statement rows recorded for a migration, in execution order.

        Args:
            key: Migration key

        Returns:
            List of MigrationStatement rows (empty if the key is unknown)
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(MigrationStatement)
                .join(Migration)
                .where(Migration.migration_key == normalize(key))
                .order_by(MigrationStatement.id)
            )
            return list(result.scalars().all())

    async def _create_migration(self, key: Optional[str]) -> Migration:
        """
        Insert the migration row.

        Raises:
            MigrationExistsError: Another caller inserted the key first
            MigrationCreateError: Any other insert failure
        """
        migration = Migration(migration_key=key)
        try:
            async with self.database.session() as session:
                session.add(migration)
        except IntegrityError as e:
            if key is not None and await self._exists_after_conflict(key):
                raise MigrationExistsError(
                    f'Migration {key} was created concurrently, skipping'
                ) from e
            raise MigrationCreateError(str(e.orig or e)) from e
        except SQLAlchemyError as e:
            raise MigrationCreateError(str(e)) from e

        return migration

    async def _exists_after_conflict(self, key: str) -> bool:
        try:
            return await self.exists(key)
        except LookupFailedError as e:
            self.logger.warning('%s', e)
            return False

    async def _create_pending_statements(
        self,
        migration: Migration,
        sql_statements: list[str]
    ) -> list[MigrationStatement]:
        """
        Insert one pending row per statement, in order.

        Rows are inserted one by one to preserve statement order. The first
        failed insert stops the batch.

        Raises:
            StatementCreateError: On the first failed insert
        """
        created = []
        for position, sql in enumerate(sql_statements, start=1):
            progress = f'statement {position} of {len(sql_statements)} ({len(created)} created)'
            if sql is not None and not isinstance(sql, str):
                raise StatementCreateError(f'{progress}: SQL must be a string, got {type(sql).__name__}')

            statement = MigrationStatement(
                migration_id=migration.id,
                sql_statement=normalize(sql)
            )
            try:
                async with self.database.session() as session:
                    session.add(statement)
            except SQLAlchemyError as e:
                raise StatementCreateError(f'{progress}: {e}') from e
            created.append(statement)

        return created

    async def _run_pending_statements(
        self,
        statements: list[MigrationStatement],
        outcomes: list[StatementOutcome]
    ) -> None:
        """
        Execute pending statements one at a time and persist each outcome.

        Outcomes are appended to the outcomes list as they happen. Rows
        after a failed statement are left pending.

        Raises:
            StatementExecutionError: When a statement fails (after its
                failure has been recorded)
        """
        for statement in statements:
            outcome = await self.executor.execute(statement.sql_statement)
            outcome.statement_id = statement.id
            outcomes.append(outcome)

            if outcome.success:
                await self._record_outcome(statement, STATUS_SUCCESS)
                continue

            await self._record_outcome(
                statement,
                STATUS_FAILURE,
                error_code=outcome.error_code,
                error_info=outcome.error_info
            )
            raise StatementExecutionError(outcome.error_info, outcome.error_code)

    async def _record_outcome(
        self,
        statement: MigrationStatement,
        status: str,
        error_code: Optional[int] = None,
        error_info: Optional[str] = None
    ) -> None:
        try:
            async with self.database.session() as session:
                await session.execute(
                    update(MigrationStatement)
                    .where(MigrationStatement.id == statement.id)
                    .values(status=status, error_code=error_code, error_info=error_info)
                )
        except SQLAlchemyError as e:
            message = f'Failed to record status {status} for statement {statement.id}: {e}'
            if error_info is not None:
                message += f' (statement error: {error_info})'
            raise StatementExecutionError(message, error_code) from e

        statement.status = status
        statement.error_code = error_code
        statement.error_info = error_info
