"""
Migration list loading and validation.

Migration lists come from the application config or from a standalone
JSON/YAML file. Accepted entry shapes:

    - [key, "SQL"]
    - [key, ["SQL", "SQL", ...]]
    - {key: ..., sql: "SQL"}
    - {key: ..., statements: ["SQL", ...]}
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Union

import yaml

from runonce.errors import ConfigError, MigrationDefinitionError
from runonce.migrations.migration import MigrationSpec, as_statement_list


logger = logging.getLogger(__name__)


def load_migrations(entries: Iterable[Any]) -> list[MigrationSpec]:
    """
    Validate a migration list and return it as MigrationSpec tuples.

    Keys are not normalized here; an empty key still reaches the engine
    and fails there, like any other run.

    Args:
        entries: Sequence of pairs or mappings

    Returns:
        MigrationSpec tuples in input order

    Raises:
        MigrationDefinitionError: On malformed entries or repeated keys
    """
    if entries is None:
        return []
    if isinstance(entries, (str, bytes, dict)):
        raise MigrationDefinitionError('Migrations must be a list of entries')

    migrations = []
    seen = set()

    for index, entry in enumerate(entries):
        key, statements = _parse_entry(index, entry)

        if key in seen:
            raise MigrationDefinitionError(f'Duplicate migration key {key!r} at entry {index}')
        seen.add(key)

        migrations.append(MigrationSpec(key, statements))

    logger.debug('Loaded %d migration definitions', len(migrations))
    return migrations


def _parse_entry(index: int, entry: Any) -> tuple:
    if isinstance(entry, dict):
        if 'key' not in entry:
            raise MigrationDefinitionError(f'Entry {index} has no key')
        key = entry['key']
        raw = entry.get('statements', entry.get('sql'))
    elif isinstance(entry, (list, tuple)) and len(entry) == 2:
        key, raw = entry
    else:
        raise MigrationDefinitionError(
            f'Entry {index} must be a [key, sql] pair or a mapping, got {entry!r}'
        )

    if key is not None and not isinstance(key, str):
        raise MigrationDefinitionError(f'Entry {index} key must be a string, got {key!r}')

    if raw is None:
        raise MigrationDefinitionError(f'Migration {key!r} has no SQL statements')
    if not isinstance(raw, (str, list, tuple)):
        raise MigrationDefinitionError(f'Migration {key!r} statements must be a string or a list')

    statements = as_statement_list(raw)
    if not statements:
        raise MigrationDefinitionError(f'Migration {key!r} has no SQL statements')
    if not all(isinstance(sql, str) for sql in statements):
        raise MigrationDefinitionError(f'Migration {key!r} statements must be strings')

    return key, statements


def load_migrations_file(path: Union[str, Path]) -> list[MigrationSpec]:
    """
    Read a migration list from a JSON or YAML file.

    The file holds either the list itself or a mapping with a
    'migrations' list.

    Raises:
        ConfigError: If the file cannot be read or parsed
        MigrationDefinitionError: On malformed entries
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as fp:
            if path.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(fp)
            else:
                data = json.load(fp)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f'Cannot read migrations file {path}: {e}') from e

    if isinstance(data, dict):
        data = data.get('migrations', [])

    return load_migrations(data)
