"""
Bookkeeping schema bootstrap.

Creates the migrations and migration_statements tables when they are
missing and makes sure the statement foreign key (with cascade delete) is
in place before any migration runs.
"""

import inspect
import logging
from typing import Any, Callable, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import AddConstraint

from runonce.errors import BootstrapError, log_migration_error
from runonce.migrations.migration import BootstrapResult, ErrorKind
from runonce.models import MIGRATIONS_TABLE, STATEMENTS_TABLE, Migration, MigrationStatement


class SchemaBootstrap:
    """
    Ensures the bookkeeping schema exists. Safe to call any number of times.

    The foreign key step completes before on_ready is invoked, so callers
    never observe the tables without their constraint.

    Example:
        bootstrap = SchemaBootstrap(database)
        result = await bootstrap.bootstrap()
        if not result.success:
            ...
    """

    def __init__(self, database):
        self.database = database
        self.logger = logging.getLogger(__name__)

    async def bootstrap(self, on_ready: Optional[Callable[[], Any]] = None) -> BootstrapResult:
        """
        Create bookkeeping tables and their foreign key if absent.

        Args:
            on_ready: Callable (or coroutine function) invoked once the
                schema is ready. Not invoked when table creation fails.

        Returns:
            BootstrapResult describing what happened
        """
        try:
            await self.ensure_tables()
        except BootstrapError as e:
            log_migration_error(self.logger, '%s', e)
            return BootstrapResult(
                success=False,
                error_kind=ErrorKind.BOOTSTRAP,
                error_message=str(e)
            )

        result = BootstrapResult(success=True)
        try:
            result.constraint_ensured, result.constraint_added = await self.ensure_foreign_key()
        except SQLAlchemyError as e:
            log_migration_error(
                self.logger,
                'Failed to add foreign key to %s: %s',
                STATEMENTS_TABLE,
                e
            )
            result.error_message = str(e)

        if on_ready is not None:
            ready = on_ready()
            if inspect.isawaitable(ready):
                await ready

        return result

    async def ensure_tables(self) -> None:
        """
        Create both bookkeeping tables (CREATE TABLE only if missing).

        Raises:
            BootstrapError: If either table cannot be created
        """
        for model in (Migration, MigrationStatement):
            table = model.__table__
            try:
                async with self.database.engine.begin() as conn:
                    await conn.run_sync(table.create, checkfirst=True)
            except SQLAlchemyError as e:
                raise BootstrapError(f'Failed to create table {table.name}: {e}') from e

        self.logger.debug('Ensured %s and %s tables exist', MIGRATIONS_TABLE, STATEMENTS_TABLE)

    async def ensure_foreign_key(self) -> tuple[bool, bool]:
        """
        Add the statement -> migration foreign key if the table lacks it.

        Returns:
            (constraint_ensured, constraint_added)

        Raises:
            SQLAlchemyError: If the catalog query or ALTER TABLE fails
        """
        async with self.database.engine.begin() as conn:
            foreign_keys = await conn.run_sync(
                lambda sync_conn: sa_inspect(sync_conn).get_foreign_keys(STATEMENTS_TABLE)
            )
            if any(fk.get('referred_table') == MIGRATIONS_TABLE for fk in foreign_keys):
                return True, False

            if self.database.is_sqlite:
                # SQLite cannot add constraints to an existing table
                self.logger.warning(
                    '%s has no foreign key to %s and SQLite cannot add one; '
                    'statements will not cascade on delete',
                    STATEMENTS_TABLE,
                    MIGRATIONS_TABLE
                )
                return False, False

            constraint = next(iter(MigrationStatement.__table__.foreign_key_constraints))
            await conn.execute(AddConstraint(constraint))

        self.logger.info('Added foreign key %s', constraint.name)
        return True, True
