"""
Migration data models.

This module defines the core data structures used by the migration engine:
- Migration: A parsed migration artifact (version + forward/reverse SQL)
- HistoryRecord: A row of the history ledger
- RunResult: Summary of one migrate or rollback run

Statements are opaque SQL text; nothing here inspects them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

# Current version reported when no migration has been applied
NO_VERSION = 0


@dataclass(frozen=True)
class Migration:
    """
    Represents a single parsed migration artifact.

    An artifact holds two ordered statement sequences:
    - forward: statements executed by migrate
    - reverse: statements executed by rollback

    Attributes:
        version: Version number taken from the artifact's first line
        name: Artifact name (storage key, e.g. 'V001__create_users.sql')
        forward: Forward statements in file order
        reverse: Reverse statements in file order

    Example:
        >>> migration = Migration(
        ...     version=1,
        ...     name='V001__create_users.sql',
        ...     forward=('CREATE TABLE users (id INTEGER PRIMARY KEY)',),
        ...     reverse=('DROP TABLE users',)
        ... )
        >>> print(migration)
        <Migration(v1, V001__create_users.sql)>
    """

    version: int
    name: str
    forward: Tuple[str, ...] = ()
    reverse: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate migration after initialization."""
        if self.version < 0:
            raise ValueError(
                f"Migration version must be >= 0, got {self.version}"
            )

    def __repr__(self) -> str:
        return f"<Migration(v{self.version}, {self.name})>"


@dataclass(frozen=True)
class HistoryRecord:
    """
    A migration that has been applied to the database.

    Corresponds to one row of the history table. The presence of a record
    for a version is the only evidence that the version is applied.

    Attributes:
        version: Applied migration version (primary key)
        file: Artifact name the version was applied from
        timestamp: When the forward statements were committed
    """

    version: int
    file: str
    timestamp: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"<HistoryRecord(v{self.version}, {self.file})>"


@dataclass
class RunResult:
    """
    Outcome of a successful migrate or rollback run.

    Failed runs raise instead of returning a result.

    Attributes:
        operation: 'migrate' or 'rollback'
        executed: Versions executed, in execution order
        skipped: Versions skipped (already applied / never applied)
        current_version: Database version after the run
        dry_run: True if the run was rolled back on purpose
    """

    operation: str
    executed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    current_version: int = NO_VERSION
    dry_run: bool = False

    @property
    def no_op(self) -> bool:
        """True if the run executed nothing."""
        return not self.executed

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            'operation': self.operation,
            'executed': list(self.executed),
            'skipped': list(self.skipped),
            'current_version': self.current_version,
            'dry_run': self.dry_run,
        }
