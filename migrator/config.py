#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Configuration loading and logger setup for the migrator CLI"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

import yaml

from migrator.errors import ConfigError

DEFAULT_LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'

# Overrides database.url from the config file
DATABASE_URL_ENV = 'MIGRATOR_DATABASE_URL'


@dataclass
class MigratorConfig:
    """Settings needed to run migrations.

    Attributes:
        database_url: SQLAlchemy URL or SQLite file path
        migrations_dir: Directory holding migration artifacts
        username: Database user (merged into database_url)
        password: Database password (merged into database_url)
        history_table: Ledger table name
        log_level: Logging level name ('info', 'debug', ...)
        log_file: Optional log file path
    """
    database_url: str
    migrations_dir: str
    username: Optional[str] = None
    password: Optional[str] = None
    history_table: str = 'history'
    log_level: str = 'info'
    log_file: Optional[str] = None


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
    if isinstance(log_file, str):
        handler = logging.FileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def parse_log_level(level_name):
    """Map a level name like 'info' to its logging constant.

    Raises:
        ConfigError: If the name is not a logging level
    """
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {level_name}")
    return level


def _read_file(config_file):
    """Load a JSON or YAML file into a dict, chosen by extension."""
    try:
        with open(config_file, 'r', encoding='utf-8') as fp:
            if config_file.endswith(('.yaml', '.yml')):
                conf = yaml.safe_load(fp)
            else:
                conf = json.load(fp)
    except OSError as e:
        raise ConfigError(f"Unable to read config file {config_file}: {e}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Malformed config file {config_file}: {e}") from e

    if conf is None:
        conf = {}
    if not isinstance(conf, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")
    return conf


def load_config(config_file=None, **overrides):
    """Load configuration from a JSON or YAML file

    File layout:
        database:
          url: postgresql+asyncpg://localhost/app
          username: app
          password: secret
          history_table: history
        migrations:
          directory: migrations
        logging:
          level: info
          file: migrator.log

    Args:
        config_file: Path to .json/.yaml/.yml file (None for overrides only)
        **overrides: Non-None values replace file settings
            (database_url, migrations_dir, log_level, ...)

    Returns:
        MigratorConfig

    Raises:
        ConfigError: If the file cannot be loaded or a required key is missing
    """
    conf = _read_file(config_file) if config_file else {}

    database = conf.get('database') or {}
    migrations = conf.get('migrations') or {}
    logging_config = conf.get('logging') or {}

    settings = {
        'database_url': os.environ.get(DATABASE_URL_ENV) or database.get('url'),
        'migrations_dir': migrations.get('directory'),
        'username': database.get('username'),
        'password': database.get('password'),
        'history_table': database.get('history_table', 'history'),
        'log_level': logging_config.get('level', 'info'),
        'log_file': logging_config.get('file'),
    }
    settings.update({k: v for k, v in overrides.items() if v is not None})

    if not settings['database_url']:
        raise ConfigError(
            f"No database url configured (set database.url or {DATABASE_URL_ENV})"
        )
    if not settings['migrations_dir']:
        raise ConfigError("No migrations directory configured (set migrations.directory)")

    return MigratorConfig(**settings)
