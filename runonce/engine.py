"""
Migration engine: the object an application holds at startup.

Bundles schema bootstrap, the migration runner and the statement executor
around one explicit database handle.

Example:
    database = MigrationDatabase('sqlite+aiosqlite:///app.db')
    engine = MigrationEngine(database)

    await engine.bootstrap()
    await engine.run_once(
        'Articles_author_id_fk',
        'ALTER TABLE Articles ADD CONSTRAINT Articles_author_id_fk '
        'FOREIGN KEY (author_id) REFERENCES Accounts(id)'
    )
"""

from typing import Any, Callable, Iterable, Optional

from runonce.migrations.migration import BootstrapResult, MigrationResult, SqlStatements
from runonce.migrations.migration_runner import MigrationRunner
from runonce.migrations.schema_bootstrap import SchemaBootstrap
from runonce.migrations.statement_executor import StatementExecutor


class MigrationEngine:
    """Public entry point for running migrations once."""

    def __init__(self, database):
        self.database = database
        self.executor = StatementExecutor(database)
        self.schema = SchemaBootstrap(database)
        self.runner = MigrationRunner(database, self.executor)

    async def bootstrap(self, on_ready: Optional[Callable[[], Any]] = None) -> BootstrapResult:
        """Create the bookkeeping schema. Call once before running migrations."""
        return await self.schema.bootstrap(on_ready)

    async def exists(self, key: Optional[str]) -> bool:
        return await self.runner.exists(key)

    async def run_once(self, key: Optional[str], sql_statements: SqlStatements) -> MigrationResult:
        return await self.runner.run_once(key, sql_statements)

    async def run_all_once(self, migrations: Iterable, sequential: bool = False) -> list[MigrationResult]:
        return await self.runner.run_all_once(migrations, sequential=sequential)

    def schedule_once(self, key: Optional[str], sql_statements: SqlStatements):
        return self.runner.schedule_once(key, sql_statements)

    async def get_statements(self, key: Optional[str]):
        return await self.runner.get_statements(key)
