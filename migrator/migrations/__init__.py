"""
Migration engine.

This package provides:
- Migration, HistoryRecord, RunResult: Data models
- parse_migration: Artifact parsing (version + forward/reverse statements)
- ArtifactLister, DirectoryArtifactLister: Artifact discovery
- HistoryLedger: Applied-version bookkeeping
- MigrationExecutor: Execution of one artifact inside a caller's transaction
- MigrationManager: Run orchestration (one transaction per run)
"""

from .migration import NO_VERSION, HistoryRecord, Migration, RunResult
from .migration_reader import (
    MIGRATION_MARKER,
    ROLLBACK_MARKER,
    parse_migration,
    read_migration_version,
    split_statements,
)
from .artifact_lister import ArtifactLister, DirectoryArtifactLister
from .history_ledger import HistoryLedger
from .migration_executor import MigrationExecutor
from .migration_manager import MigrationManager

__all__ = [
    'NO_VERSION',
    'Migration',
    'HistoryRecord',
    'RunResult',
    'MIGRATION_MARKER',
    'ROLLBACK_MARKER',
    'parse_migration',
    'read_migration_version',
    'split_statements',
    'ArtifactLister',
    'DirectoryArtifactLister',
    'HistoryLedger',
    'MigrationExecutor',
    'MigrationManager',
]
