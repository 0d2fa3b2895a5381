"""
Migration engine internals.

This package provides:
- MigrationSpec, MigrationResult, StatementOutcome, BootstrapResult: Data models
- SchemaBootstrap: Creation of the bookkeeping tables
- StatementExecutor: Raw SQL execution with driver error capture
- MigrationRunner: Run-once orchestration
- load_migrations: Validation of configured migration lists
"""

from .migration import (
    BootstrapResult,
    ErrorKind,
    MigrationResult,
    MigrationSpec,
    RunStatus,
    StatementOutcome,
)
from .migration_loader import load_migrations, load_migrations_file
from .migration_runner import MigrationRunner
from .schema_bootstrap import SchemaBootstrap
from .statement_executor import StatementExecutor

__all__ = [
    'BootstrapResult',
    'ErrorKind',
    'MigrationResult',
    'MigrationSpec',
    'RunStatus',
    'StatementOutcome',
    'MigrationRunner',
    'SchemaBootstrap',
    'StatementExecutor',
    'load_migrations',
    'load_migrations_file',
]
