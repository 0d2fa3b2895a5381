"""
Run-once schema migrations for SQLAlchemy async databases.

This package provides:
- MigrationDatabase: Explicit database handle shared by the engine
- MigrationEngine: bootstrap/run_once/run_all_once entry point
- MigrationResult, BootstrapResult: Outcome of each call
- Migration, MigrationStatement: Bookkeeping ORM models
"""

from .database import MigrationDatabase
from .engine import MigrationEngine
from .migrations import (
    BootstrapResult,
    ErrorKind,
    MigrationResult,
    MigrationSpec,
    RunStatus,
    StatementOutcome,
)
from .models import Migration, MigrationStatement

__version__ = '1.0.0'

__all__ = [
    'MigrationDatabase',
    'MigrationEngine',
    'MigrationResult',
    'BootstrapResult',
    'MigrationSpec',
    'StatementOutcome',
    'RunStatus',
    'ErrorKind',
    'Migration',
    'MigrationStatement',
]
