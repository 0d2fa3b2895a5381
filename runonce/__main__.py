#!/usr/bin/env python3
"""
Apply configured migrations once at application startup.

Usage:
    python -m runonce <config file>

Bootstraps the bookkeeping schema, runs every migration listed in the
config file and prints one line per migration. Exits 0 when every
migration was applied or already recorded, 1 otherwise.
"""
import asyncio
import logging
import sys

from runonce.config import configure_logger, get_config
from runonce.database import MigrationDatabase
from runonce.engine import MigrationEngine
from runonce.errors import RunOnceError
from runonce.migrations.migration_loader import load_migrations


logger = logging.getLogger('runonce')


async def apply_migrations(config_file: str) -> bool:
    """
    Run all migrations from a config file.

    Args:
        config_file: Path to JSON or YAML config

    Returns:
        True if every migration succeeded or was already recorded
    """
    _, settings = get_config(config_file)
    configure_logger(logger, log_file=settings['log_file'], log_level=settings['log_level'])

    migrations = load_migrations(settings['migrations'])

    database = MigrationDatabase(settings['database_url'], echo=settings['echo'])
    try:
        engine = MigrationEngine(database)
        bootstrap = await engine.bootstrap()
        if not bootstrap.success:
            print(f'✗ Bootstrap failed: {bootstrap.error_message}', file=sys.stderr)
            return False

        # Configured migrations may build on each other, so run them in order
        results = await engine.run_all_once(migrations, sequential=True)
    finally:
        await database.close()

    for result in results:
        mark = '✓' if result.success else '✗'
        line = f'{mark} {result.key}: {result.status.value}'
        if not result.success:
            line += f' ({result.error_kind.value}: {result.error_message})'
        print(line, file=sys.stdout if result.success else sys.stderr)

    return all(result.success for result in results)


def main(argv=None):
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print('usage: python -m runonce <config file>', file=sys.stderr)
        return 1

    try:
        success = asyncio.run(apply_migrations(argv[0]))
    except RunOnceError as e:
        print(f'✗ {e}', file=sys.stderr)
        return 1

    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
