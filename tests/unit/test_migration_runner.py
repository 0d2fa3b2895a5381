"""
Unit tests for MigrationRunner failure paths.

Uses mocked collaborators to reach failures that are hard to produce
against a real database:
- Lookup failures
- Statement insert failures (logged like every other failure)
- Outcome recording failures
- Executor call order and early stop
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from runonce.errors import LookupFailedError, StatementCreateError
from runonce.migrations.migration import ErrorKind, RunStatus, StatementOutcome
from runonce.migrations.migration_runner import MigrationRunner
from runonce.models import Migration, MigrationStatement


pytestmark = pytest.mark.unit


def _statement(statement_id, sql):
    statement = MigrationStatement(migration_id=1, sql_statement=sql, status='pending')
    statement.id = statement_id
    return statement


@pytest.fixture
def executor():
    executor = MagicMock()
    executor.execute = AsyncMock()
    return executor


@pytest.fixture
def runner(executor):
    runner = MigrationRunner(MagicMock(), executor)
    runner.exists = AsyncMock(return_value=False)
    migration = Migration(migration_key='m1')
    migration.id = 1
    runner._create_migration = AsyncMock(return_value=migration)
    runner._record_outcome = AsyncMock()
    return runner


class TestRunOnce:

    @pytest.mark.asyncio
    async def test_existing_key_does_nothing(self, runner, executor):
        runner.exists.return_value = True

        result = await runner.run_once('m1', 'SELECT 1')

        assert result.status is RunStatus.SKIPPED
        runner._create_migration.assert_not_called()
        executor.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_failure_reported(self, runner, executor, caplog):
        runner.exists.side_effect = LookupFailedError('Failed to look up migration m1')

        result = await runner.run_once('m1', 'SELECT 1')

        assert result.status is RunStatus.FAILED
        assert result.error_kind is ErrorKind.LOOKUP
        runner._create_migration.assert_not_called()
        assert '!!!Migration ERROR!!!' in caplog.text

    @pytest.mark.asyncio
    async def test_statement_create_failure_is_logged(self, runner, executor, caplog):
        runner._create_pending_statements = AsyncMock(
            side_effect=StatementCreateError('statement 2 of 3 (1 created): NOT NULL')
        )

        result = await runner.run_once('m1', ['SELECT 1', '', 'SELECT 3'])

        assert result.status is RunStatus.FAILED
        assert result.error_kind is ErrorKind.STATEMENT_CREATE
        executor.execute.assert_not_called()
        assert '!!!Migration ERROR!!!' in caplog.text
        assert 'Failed to create statements for migration m1' in caplog.text

    @pytest.mark.asyncio
    async def test_executes_in_order_and_stops(self, runner, executor, caplog):
        statements = [_statement(1, 'S1'), _statement(2, 'S2'), _statement(3, 'S3')]
        runner._create_pending_statements = AsyncMock(return_value=statements)
        executor.execute.side_effect = [
            StatementOutcome(sql='S1', success=True),
            StatementOutcome(sql='S2', success=False, error_code=1060, error_info='Duplicate column'),
        ]

        result = await runner.run_once('m1', ['S1', 'S2', 'S3'])

        assert [call.args[0] for call in executor.execute.call_args_list] == ['S1', 'S2']
        assert result.status is RunStatus.FAILED
        assert result.error_kind is ErrorKind.STATEMENT_EXECUTION
        assert [o.statement_id for o in result.statements] == [1, 2]
        runner._record_outcome.assert_any_await(statements[0], 'success')
        runner._record_outcome.assert_any_await(
            statements[1], 'failure', error_code=1060, error_info='Duplicate column'
        )
        assert runner._record_outcome.await_count == 2
        assert 'error code 1060' in caplog.text

    @pytest.mark.asyncio
    async def test_single_string_wrapped(self, runner):
        runner._create_pending_statements = AsyncMock(return_value=[])

        await runner.run_once('m1', 'ALTER TABLE T ADD COLUMN c INT')

        args = runner._create_pending_statements.await_args.args
        assert args[1] == ['ALTER TABLE T ADD COLUMN c INT']

    @pytest.mark.asyncio
    async def test_key_normalized_before_lookup(self, runner):
        runner._create_pending_statements = AsyncMock(return_value=[])

        result = await runner.run_once('  ', 'SELECT 1')

        runner.exists.assert_awaited_once_with(None)
        runner._create_migration.assert_awaited_once_with(None)
        assert result.key is None


class TestRecordOutcome:

    @pytest.mark.asyncio
    async def test_record_failure_stops_run(self, executor):
        database = MagicMock()
        database.session.side_effect = OperationalError('UPDATE', None, Exception('database is locked'))
        runner = MigrationRunner(database, executor)
        runner.exists = AsyncMock(return_value=False)
        runner._create_migration = AsyncMock(return_value=Migration(migration_key='m1'))
        runner._create_pending_statements = AsyncMock(
            return_value=[_statement(1, 'S1'), _statement(2, 'S2')]
        )
        executor.execute.return_value = StatementOutcome(sql='S1', success=True)

        result = await runner.run_once('m1', ['S1', 'S2'])

        assert result.status is RunStatus.FAILED
        assert result.error_kind is ErrorKind.STATEMENT_EXECUTION
        assert executor.execute.await_count == 1
        assert 'Failed to record status success' in result.error_message

    @pytest.mark.asyncio
    async def test_record_failure_keeps_driver_error(self, executor):
        database = MagicMock()
        database.session.side_effect = OperationalError('UPDATE', None, Exception('database is locked'))
        runner = MigrationRunner(database, executor)
        runner.exists = AsyncMock(return_value=False)
        runner._create_migration = AsyncMock(return_value=Migration(migration_key='m1'))
        runner._create_pending_statements = AsyncMock(return_value=[_statement(1, 'S1')])
        executor.execute.return_value = StatementOutcome(
            sql='S1', success=False, error_code=1060, error_info="Duplicate column name 'a'"
        )

        result = await runner.run_once('m1', 'S1')

        assert result.error_kind is ErrorKind.STATEMENT_EXECUTION
        assert 'Failed to record status failure' in result.error_message
        assert "Duplicate column name 'a'" in result.error_message
        assert 'error code 1060' in result.error_message
        assert result.statements[0].error_code == 1060
