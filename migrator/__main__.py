#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Command-line entry point.

    python -m migrator --config migrator.yaml migrate
    python -m migrator --config migrator.yaml rollback --version 2
    python -m migrator --database-url app.db --migrations-dir db/migrations info
    python -m migrator --config migrator.yaml shell
"""
import argparse
import asyncio
import json
import logging
import sys

from migrator.config import (
    DEFAULT_LOG_FORMAT,
    configure_logger,
    load_config,
    parse_log_level,
)
from migrator.database import MigrationDatabase
from migrator.errors import MigratorError
from migrator.migrations import DirectoryArtifactLister, HistoryLedger, MigrationManager
from migrator.shell import Shell, format_history, format_result

logger = logging.getLogger('migrator')


def build_parser():
    """Build the argparse parser for all commands."""
    parser = argparse.ArgumentParser(
        prog='sql-migrator',
        description='Apply and roll back versioned SQL migrations'
    )
    parser.add_argument(
        '--config',
        help='Path to JSON or YAML config file'
    )
    parser.add_argument(
        '--database-url',
        help='SQLAlchemy database URL or SQLite file path (overrides config)'
    )
    parser.add_argument(
        '--migrations-dir',
        help='Directory containing .sql migration files (overrides config)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config, else INFO)'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    commands.add_parser('info', help='Print the current database version')

    migrate = commands.add_parser('migrate', help='Apply pending migrations')
    migrate.add_argument(
        '--dry-run',
        action='store_true',
        help='Execute migrations, then roll back instead of committing'
    )
    migrate.add_argument(
        '--json',
        action='store_true',
        help='Print the run result as JSON'
    )

    rollback = commands.add_parser('rollback', help='Roll back to a version')
    rollback.add_argument(
        '-version', '--version',
        dest='target_version',
        type=int,
        required=True,
        help='Target database version to roll back to'
    )
    rollback.add_argument(
        '--dry-run',
        action='store_true',
        help='Execute rollbacks, then roll back instead of committing'
    )
    rollback.add_argument(
        '--json',
        action='store_true',
        help='Print the run result as JSON'
    )

    commands.add_parser('history', help='List applied migrations')
    commands.add_parser('shell', help='Interactive command console')

    return parser


async def run_command(args, config):
    """Execute the selected command against the configured database.

    Returns:
        Process exit status
    """
    database = MigrationDatabase(
        config.database_url,
        username=config.username,
        password=config.password
    )
    manager = MigrationManager(
        database,
        DirectoryArtifactLister(config.migrations_dir),
        ledger=HistoryLedger(config.history_table)
    )

    try:
        if args.command == 'info':
            version = await manager.get_current_db_version()
            print(f"Current DB version: {version}")

        elif args.command == 'migrate':
            result = await manager.execute_migrations(dry_run=args.dry_run)
            print(json.dumps(result.to_dict()) if args.json else format_result(result))

        elif args.command == 'rollback':
            result = await manager.execute_rollbacks(
                args.target_version, dry_run=args.dry_run
            )
            print(json.dumps(result.to_dict()) if args.json else format_result(result))

        elif args.command == 'history':
            print(format_history(await manager.get_history()))

        elif args.command == 'shell':
            await Shell(manager).run()

    finally:
        await database.close()

    return 0


def main(argv=None):
    """Console script entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            args.config,
            database_url=args.database_url,
            migrations_dir=args.migrations_dir,
            log_level=args.log_level
        )
        log_level = parse_log_level(config.log_level)
        logging.basicConfig(level=log_level, format=DEFAULT_LOG_FORMAT)
        logging.getLogger().setLevel(log_level)
        if config.log_file:
            configure_logger(logging.getLogger(), log_file=config.log_file,
                             log_level=log_level)

        return asyncio.run(run_command(args, config))

    except MigratorError as e:
        logger.debug('Command failed', exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print('Interrupted', file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
