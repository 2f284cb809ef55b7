#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Interactive console for running migration commands"""
import asyncio
import logging
import sys

from sqlalchemy import exc

from migrator.errors import MigratorError


class WrongCommandParam(ValueError):
    """Malformed parameters on a shell command line."""
    pass


def parse_params(args):
    """Parse '-name value' pairs following a command word.

    Args:
        args: Tokens of the command line, command word first

    Returns:
        Dict mapping parameter name (with dash) to value

    Raises:
        WrongCommandParam: If a parameter has no value or a token is not a
            parameter

    Example:
        >>> parse_params(['rollback', '-version', '2'])
        {'-version': '2'}
    """
    params = {}
    i = 1
    while i < len(args):
        arg = args[i]
        if not arg.startswith('-'):
            raise WrongCommandParam(f"Invalid argument format: {arg}")
        if i + 1 >= len(args) or args[i + 1].startswith('-'):
            raise WrongCommandParam(f"Missing value for parameter: {arg}")
        params[arg] = args[i + 1]
        i += 2
    return params


def format_history(records):
    """Render history records as aligned text lines."""
    if not records:
        return 'No migrations applied'
    lines = []
    for record in records:
        applied_at = record.timestamp.isoformat(sep=' ', timespec='seconds') \
            if record.timestamp else '-'
        lines.append(f"v{record.version:<6} {applied_at:<19}  {record.file}")
    return '\n'.join(lines)


def format_result(result):
    """One-line summary of a RunResult."""
    verb = 'Applied' if result.operation == 'migrate' else 'Rolled back'
    if result.no_op:
        summary = f"{verb} nothing"
    else:
        versions = ', '.join(str(v) for v in result.executed)
        summary = f"{verb} {len(result.executed)} migration(s): {versions}"
    if result.skipped:
        summary += f" (skipped: {', '.join(str(v) for v in result.skipped)})"
    if result.dry_run:
        summary += ' [dry run, not committed]'
    return f"{summary}\nCurrent DB version: {result.current_version}"


class Shell:
    '''Interactive command loop around a MigrationManager.

    Reads one command per line until 'exit' or end of input.
    '''
    logger = logging.getLogger(__name__)

    VERSION_PARAM = '-version'

    HELP = {
        'info': """Command: info
Description: Displays the current database version.
Usage:
  info              - Prints the database version.
  info -h           - Displays this help message.""",
        'migrate': """Command: migrate
Description: Executes all pending database migrations in one transaction.
Usage:
  migrate                          - Applies pending migrations.
  migrate -dry-run true            - Applies, then rolls back.
  migrate -h                       - Displays this help message.""",
        'rollback': """Command: rollback
Description: Rolls back database migrations to a specified version.
Usage:
  rollback -version <target_version> - Reverts every migration above the target.
  rollback -h                        - Displays this help message.""",
        'history': """Command: history
Description: Lists applied migrations.
Usage:
  history           - Prints version, time applied and file of each migration.
  history -h        - Displays this help message.""",
    }

    HELP_TEXT = """
Commands:
───────────────────────────────
 info                 - Current DB version
 migrate              - Apply pending migrations
 rollback -version N  - Roll back to version N
 history              - Applied migrations
 help                 - Show commands
 exit                 - Quit
 <command> -h         - Help for a command
───────────────────────────────
"""

    def __init__(self, manager, input_fn=input, output=None):
        '''Initialize the shell

        Args:
            manager: MigrationManager to drive
            input_fn: Prompt-reading callable (default: builtin input)
            output: Text stream for command output (default: stdout)
        '''
        self.manager = manager
        self.input_fn = input_fn
        self.output = output if output is not None else sys.stdout

    def write(self, text):
        print(text, file=self.output)

    async def handle_command(self, line):
        """Run one command line and return its output text.

        Returns:
            Text to show the user (never raises for user errors)
        """
        args = line.split()
        if not args:
            return ''

        command = args[0].lower()

        if command == 'help':
            return self.HELP_TEXT

        if command not in self.HELP:
            return f"Unknown command: {line.strip()}"

        if '-h' in args[1:]:
            return self.HELP[command]

        try:
            params = parse_params(args)

            if command == 'info':
                version = await self.manager.get_current_db_version()
                return f"Current DB version: {version}"

            if command == 'migrate':
                dry_run = params.get('-dry-run', 'false').lower() in ('true', 'yes', '1')
                result = await self.manager.execute_migrations(dry_run=dry_run)
                return format_result(result)

            if command == 'rollback':
                raw_version = params.get(self.VERSION_PARAM)
                if raw_version is None:
                    raise WrongCommandParam(
                        f"Parameter {self.VERSION_PARAM} is required"
                    )
                try:
                    target_version = int(raw_version)
                except ValueError:
                    raise WrongCommandParam(
                        f"Parameter {self.VERSION_PARAM} must be an integer, "
                        f"got {raw_version!r}"
                    ) from None
                result = await self.manager.execute_rollbacks(target_version)
                return format_result(result)

            # history
            return format_history(await self.manager.get_history())

        except ValueError as e:
            return str(e)
        except (MigratorError, exc.SQLAlchemyError) as e:
            self.logger.error('Command %r failed: %s', line.strip(), e)
            return f"Error: {e}"

    async def run(self):
        """Read and execute commands until 'exit' or end of input."""
        self.write('==MIGRATION APP==\nStarted and waiting for commands '
                   '(info, migrate, rollback, history, exit):')

        while True:
            try:
                line = await asyncio.to_thread(self.input_fn, '> ')
            except EOFError:
                break

            if line.strip().startswith('exit'):
                break

            response = await self.handle_command(line)
            if response:
                self.write(response)

        self.write('==MIGRATION APP==\nShut down successfully')
