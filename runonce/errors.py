"""
Migration runner exceptions.

This module defines the exception hierarchy for the migration engine,
enabling precise error handling at each step of a run. The engine raises
these internally and converts them into result objects at its public
boundary, so callers of run_once/bootstrap never see them raised.
"""

import logging
from typing import Optional


ERROR_BANNER = '=================== !!!Migration ERROR!!! ==================='


class RunOnceError(Exception):
    """
    Base exception for migration engine errors.

    All engine exceptions inherit from this base class,
    allowing catch-all error handling when needed.
    """
    pass


class ConfigError(RunOnceError):
    """
    Configuration could not be loaded.

    Raised when:
    - Config file is missing or unreadable
    - Config file format is not supported
    - Required sections are missing
    """
    pass


class MigrationDefinitionError(RunOnceError):
    """
    A migration list entry is malformed.

    Raised when:
    - Entry is neither a pair nor a mapping
    - Entry has no SQL statements
    - Key is repeated within one list
    """
    pass


class BootstrapError(RunOnceError):
    """Bookkeeping tables could not be created."""
    pass


class LookupFailedError(RunOnceError):
    """Existence check for a migration key failed."""
    pass


class MigrationCreateError(RunOnceError):
    """
    Migration row could not be inserted.

    Raised when:
    - Key is empty (NOT NULL violation)
    - Database rejects the insert
    """
    pass


class MigrationExistsError(MigrationCreateError):
    """
    Migration row was inserted concurrently by someone else.

    The unique constraint on migration_key rejected the insert and the key
    is now present. Callers should treat this as a no-op.
    """
    pass


class StatementCreateError(RunOnceError):
    """A pending statement row could not be inserted."""
    pass


class StatementExecutionError(RunOnceError):
    """
    Migration SQL failed in the database.

    Attributes:
        error_code: Driver reported numeric code (None if unavailable)
        error_info: Full driver error description
    """

    def __init__(self, error_info: str, error_code: Optional[int] = None) -> None:
        self.error_code = error_code
        self.error_info = error_info
        super().__init__(
            f"Migration SQL statement failed with error code {error_code}: {error_info}"
        )


def log_migration_error(logger: logging.Logger, message: str, *args) -> None:
    """Write a migration failure as a delimited block.

    Makes failures easy to find in a verbose log file.

    Args:
        logger: Logger to write to
        message: %-style message
        *args: Message arguments
    """
    logger.error('\n\n%s\n\n' + message + '\n\n', ERROR_BANNER, *args)
