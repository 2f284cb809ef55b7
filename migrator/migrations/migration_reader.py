"""
Migration artifact parsing.

Turns the raw text of a migration artifact into a Migration: a version
number plus ordered forward and reverse statement sequences. Parsing is
a pure function of (name, content); nothing here touches the database
or the filesystem.

Artifact format:
    -- migration 3
    --migration--
    CREATE TABLE users (id INTEGER PRIMARY KEY);
    CREATE INDEX idx_users_id ON users(id);
    --rollback--
    DROP INDEX idx_users_id;
    DROP TABLE users;

The first line must contain the version number. Forward SQL may also be
written between the first line and the --migration-- marker.
"""

import logging
import re
from typing import List, Tuple

from migrator.errors import InvalidArtifact
from migrator.migrations.migration import Migration

logger = logging.getLogger(__name__)

# Section markers, matched against whole stripped lines
MIGRATION_MARKER = '--migration--'
ROLLBACK_MARKER = '--rollback--'

STATEMENT_SEPARATOR = ';'
SQL_SUFFIX = '.sql'

_VERSION_PATTERN = re.compile(r'\d+')


def check_artifact_name(name: str) -> None:
    """Reject artifact names without the .sql suffix.

    Raises:
        InvalidArtifact: If name does not end with .sql
    """
    if not name.lower().endswith(SQL_SUFFIX):
        raise InvalidArtifact(
            f"File with wrong extension provided: {name}; "
            f"only {SQL_SUFFIX} files are supported"
        )


def read_migration_version(name: str, content: str) -> int:
    """
    Extract the version number from an artifact's first line.

    The version is the first run of digits on that line, so
    "-- migration 42" and "V42 create users" both give 42.

    Args:
        name: Artifact name, for error messages
        content: Full artifact content

    Returns:
        Version number

    Raises:
        InvalidArtifact: If the first line contains no digits

    Example:
        >>> read_migration_version('V042.sql', '-- migration 42\\n...')
        42
    """
    first_line = content.split('\n', 1)[0]
    match = _VERSION_PATTERN.search(first_line)
    if match is None:
        raise InvalidArtifact(
            f"Migration {name} has no version number on its first line: "
            f"{first_line.strip()!r}"
        )
    return int(match.group())


def split_statements(sql: str) -> List[str]:
    """
    Split a section of SQL into individual statements.

    The section is split on ';' and each fragment is trimmed. Comment lines
    ahead of a statement are dropped, so a fragment holding only comments
    is discarded along with blank ones. Text after the first statement line
    is kept verbatim.

    Args:
        sql: SQL text with zero or more ';'-terminated statements

    Returns:
        Statements in file order (without trailing ';')

    Example:
        >>> split_statements("CREATE TABLE t(x int);  \\n ALTER TABLE t ADD y int;")
        ['CREATE TABLE t(x int)', 'ALTER TABLE t ADD y int']
    """
    statements = []
    for fragment in sql.split(STATEMENT_SEPARATOR):
        lines = fragment.split('\n')
        while lines and (not lines[0].strip() or lines[0].strip().startswith('--')):
            lines.pop(0)
        statement = '\n'.join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


def _find_sections(name: str, lines: List[str]) -> Tuple[List[str], List[str]]:
    """
    Locate the forward and reverse sections of an artifact.

    Args:
        name: Artifact name, for error messages
        lines: Artifact content split into lines

    Returns:
        Tuple of (forward_lines, reverse_lines)

    Raises:
        InvalidArtifact: If --rollback-- comes before --migration--
    """
    migration_at = None
    rollback_at = None

    # Line 0 carries the version and is never part of a section
    for i, line in enumerate(lines[1:], start=1):
        stripped = line.strip()
        if stripped == MIGRATION_MARKER and migration_at is None:
            migration_at = i
        elif stripped == ROLLBACK_MARKER and rollback_at is None:
            rollback_at = i

    if migration_at is not None and rollback_at is not None:
        if rollback_at < migration_at:
            raise InvalidArtifact(
                f"Migration {name} has '{ROLLBACK_MARKER}' before "
                f"'{MIGRATION_MARKER}' (line {rollback_at + 1} < "
                f"line {migration_at + 1})"
            )

    forward_end = rollback_at if rollback_at is not None else len(lines)
    forward_lines = [
        line for i, line in enumerate(lines[1:forward_end], start=1)
        if i != migration_at
    ]
    reverse_lines = lines[rollback_at + 1:] if rollback_at is not None else []

    return forward_lines, reverse_lines


def parse_migration(name: str, content: str) -> Migration:
    """
    Parse an artifact into a Migration.

    Args:
        name: Artifact name (must end with .sql)
        content: Full artifact text

    Returns:
        Migration with version, forward and reverse statements

    Raises:
        InvalidArtifact: Wrong suffix, missing version, misordered markers

    Example:
        >>> m = parse_migration(
        ...     'V001__users.sql',
        ...     '-- migration 1\\n--migration--\\nCREATE TABLE u(id int);\\n'
        ...     '--rollback--\\nDROP TABLE u;\\n'
        ... )
        >>> m.version, m.forward, m.reverse
        (1, ('CREATE TABLE u(id int)',), ('DROP TABLE u',))
    """
    check_artifact_name(name)

    # Normalize Windows line endings so markers match
    content = content.replace('\r\n', '\n')

    version = read_migration_version(name, content)
    forward_lines, reverse_lines = _find_sections(name, content.split('\n'))

    forward = tuple(split_statements('\n'.join(forward_lines)))
    reverse = tuple(split_statements('\n'.join(reverse_lines)))

    logger.debug(
        'Parsed %s: v%d, %d forward / %d reverse statements',
        name, version, len(forward), len(reverse)
    )

    return Migration(
        version=version,
        name=name,
        forward=forward,
        reverse=reverse,
    )
