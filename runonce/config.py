#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import json
import logging
import os
from pathlib import Path

import yaml

from runonce.errors import ConfigError

DEFAULT_LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'
DATABASE_URL_ENV = 'RUNONCE_DATABASE_URL'


def configure_logger(logger,
                     log_file=None,
                     log_format=None,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    # File handler for a path string, otherwise stream handler
    if isinstance(log_file, str):
        handler = logging.FileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'  # Replace undecodable chars in SQL error text
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    handler.setFormatter(logging.Formatter(log_format or DEFAULT_LOG_FORMAT))

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def parse_log_level(level):
    """Resolve 'info'/'DEBUG'/20 style levels to a logging constant"""
    if isinstance(level, int):
        return level
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        raise ConfigError(f'Unknown log level: {level!r}')
    return resolved


def load_config_file(config_file):
    """Load a JSON or YAML config file into a dictionary

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    path = Path(config_file)
    if not path.is_file():
        raise ConfigError(f'Config file not found: {config_file}')

    try:
        with open(path, 'r', encoding='utf-8') as fp:
            if path.suffix in ('.yaml', '.yml'):
                conf = yaml.safe_load(fp)
            else:
                conf = json.load(fp)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f'Cannot parse config file {config_file}: {e}') from e

    if not isinstance(conf, dict):
        raise ConfigError(f'Config file {config_file} must contain a mapping')

    return conf


def get_config(config_file):
    """Load configuration for a migration run

    Config layout (JSON or YAML):

        database:
          url: sqlite+aiosqlite:///app.db   # or path: app.db
          echo: false
        logging:
          level: info
          file: migrations.log
        migrations:
          - [Articles_author_id_add, "ALTER TABLE Articles ADD COLUMN author_id INT"]

    The RUNONCE_DATABASE_URL environment variable overrides the database url.

    Returns:
        Tuple of (conf, kwargs) where:
            conf: Full configuration dictionary from config file
            kwargs: Values extracted for the run (database_url, echo,
                log_level, log_file, migrations)

    Raises:
        ConfigError: If the file cannot be loaded or has no database section
    """
    conf = load_config_file(config_file)

    database = conf.get('database')
    if isinstance(database, str):
        database = {'url': database}
    if not isinstance(database, dict):
        database = {}

    database_url = os.environ.get(DATABASE_URL_ENV) or database.get('url') or database.get('path')
    if not database_url:
        raise ConfigError(f'No database url configured in {config_file}')

    logging_config = conf.get('logging', {}) or {}

    return conf, {
        'database_url': database_url,
        'echo': bool(database.get('echo', False)),
        'log_level': parse_log_level(logging_config.get('level', 'info')),
        'log_file': logging_config.get('file'),
        'migrations': conf.get('migrations', []),
    }
