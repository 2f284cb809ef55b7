"""
Migration manager: discovery, ordering and run-level transactions.

The manager is the only component that opens, commits or rolls back a
transaction. One migrate call is one transaction, one rollback call is
one transaction: if anything fails, every artifact applied or reverted
earlier in the same run is undone as well.

Run states:
    migrate:  Idle -> Scanning -> Applying(i) -> Committed | Aborted
    rollback: Idle -> ComputingTarget -> Reverting(i)
                   -> Committed | Aborted | NoOp
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from migrator.errors import InvalidArtifact, RunLockTimeout
from migrator.migrations.artifact_lister import ArtifactLister
from migrator.migrations.history_ledger import HistoryLedger
from migrator.migrations.migration import HistoryRecord, Migration, RunResult
from migrator.migrations.migration_executor import MigrationExecutor
from migrator.migrations.migration_reader import parse_migration

logger = logging.getLogger(__name__)

# Key for pg_advisory_xact_lock, shared by every migrator process
ADVISORY_LOCK_KEY = 7_240_113_591


class MigrationManager:
    """
    Drives migrate and rollback runs.

    Responsibilities:
    - List artifacts and order them (ascending for migrate,
      descending for rollback)
    - Skip versions the ledger already has (migrate) or lacks (rollback)
    - Hand each remaining artifact to the MigrationExecutor
    - Commit or roll back the run as a whole

    Example:
        >>> database = MigrationDatabase('sqlite+aiosqlite:///app.db')
        >>> manager = MigrationManager(
        ...     database, DirectoryArtifactLister('migrations')
        ... )
        >>> result = await manager.execute_migrations()
        >>> result.executed
        [1, 2, 3]
        >>> await manager.execute_rollbacks(1)
        >>> await manager.get_current_db_version()
        1
    """

    def __init__(
        self,
        database,
        lister: ArtifactLister,
        executor: Optional[MigrationExecutor] = None,
        ledger: Optional[HistoryLedger] = None,
        lock_timeout: float = 30.0
    ):
        """
        Initialize migration manager.

        Args:
            database: MigrationDatabase (anything with session() and
                dialect_name)
            lister: Source of artifact names and content
            executor: MigrationExecutor (default: one sharing ledger)
            ledger: HistoryLedger (default: executor's ledger, or 'history')
            lock_timeout: Seconds to wait for a run already in progress
        """
        self.database = database
        self.lister = lister
        if ledger is None:
            ledger = executor.ledger if executor is not None else HistoryLedger()
        self.ledger = ledger
        self.executor = executor if executor is not None else MigrationExecutor(ledger)
        self.lock_timeout = lock_timeout

        self._run_lock = asyncio.Lock()
        self._schema_ready = False

    async def initialize(self) -> None:
        """Create the history table if absent (idempotent)."""
        async with self.database.session() as session:
            try:
                await self.ledger.ensure_schema(session)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        self._schema_ready = True

    async def _ensure_initialized(self) -> None:
        if not self._schema_ready:
            await self.initialize()

    @asynccontextmanager
    async def _exclusive_run(self):
        """Hold the run lock for the duration of one run."""
        try:
            async with asyncio.timeout(self.lock_timeout):
                await self._run_lock.acquire()
        except TimeoutError as e:
            raise RunLockTimeout(
                f"Another migration run is still in progress after "
                f"{self.lock_timeout}s"
            ) from e

        try:
            yield
        finally:
            self._run_lock.release()

    async def _lock_database(self, session: AsyncSession) -> None:
        """Take the cross-process advisory lock where the database has one."""
        if self.database.dialect_name == 'postgresql':
            await session.execute(
                text('SELECT pg_advisory_xact_lock(:key)'),
                {'key': ADVISORY_LOCK_KEY}
            )

    def _scan(self, descending: bool = False) -> List[Tuple[str, str, Migration]]:
        """
        List and parse every artifact.

        All artifacts are read and validated before the first statement
        executes, so a bad artifact aborts the run with nothing applied.

        Returns:
            List of (name, content, migration), sorted by name

        Raises:
            DiscoveryFailure: If artifacts cannot be listed or read
            InvalidArtifact: If an artifact is malformed or two artifacts
                share a version
        """
        names = sorted(self.lister.list_artifacts(), reverse=descending)
        logger.info('Scanning migration files: %s', ', '.join(names))

        scanned = []
        seen: Dict[int, str] = {}
        for name in names:
            content = self.lister.read_artifact(name)
            migration = parse_migration(name, content)

            if migration.version in seen:
                raise InvalidArtifact(
                    f"Duplicate migration version {migration.version}: "
                    f"{seen[migration.version]} and {name}"
                )
            seen[migration.version] = name
            scanned.append((name, content, migration))

        return scanned

    async def execute_migrations(self, dry_run: bool = False) -> RunResult:
        """
        Apply every pending migration in one transaction.

        Artifacts are processed in ascending name order. Versions already
        in the ledger are skipped. Any failure rolls back everything
        applied in this run and re-raises.

        Args:
            dry_run: Execute, then roll back instead of committing

        Returns:
            RunResult listing executed and skipped versions

        Raises:
            DiscoveryFailure: Artifacts could not be listed/read
            InvalidArtifact: An artifact is malformed
            StatementExecutionFailure: A statement failed (run rolled back)
            LedgerWriteFailure: Ledger invariant violated (run rolled back)
            RunLockTimeout: Another run did not finish in time
        """
        async with self._exclusive_run():
            await self._ensure_initialized()
            scanned = self._scan()
            result = RunResult(operation='migrate', dry_run=dry_run)

            async with self.database.session() as session:
                try:
                    await self._lock_database(session)

                    for name, content, migration in scanned:
                        if await self.ledger.is_applied(session, migration.version):
                            logger.info('Migration file already executed: %s', name)
                            result.skipped.append(migration.version)
                            continue

                        logger.info('Executing migration file: %s', name)
                        await self.executor.apply_forward(session, name, content)
                        result.executed.append(migration.version)

                    result.current_version = await self.ledger.current_version(session)

                    if dry_run:
                        await session.rollback()
                        logger.info(
                            'Dry run: %d migrations executed and rolled back',
                            len(result.executed)
                        )
                    else:
                        await session.commit()
                        logger.info(
                            'Migration committed successfully: %d applied, '
                            '%d already applied',
                            len(result.executed),
                            len(result.skipped)
                        )

                except Exception:
                    logger.error(
                        'Error while processing migration files. Rollback changes'
                    )
                    await session.rollback()
                    raise

            return result

    async def execute_rollbacks(
        self,
        target_version: int,
        dry_run: bool = False
    ) -> RunResult:
        """
        Revert every applied migration above target_version.

        Artifacts with target_version < version <= current version are
        reverted newest first, in one transaction. Versions without a
        ledger record are skipped. If the database is already at or below
        target_version nothing is executed.

        Args:
            target_version: Version to roll back to (0 reverts everything)
            dry_run: Execute, then roll back instead of committing

        Returns:
            RunResult listing executed (reverted) and skipped versions

        Raises:
            ValueError: If target_version is negative
            DiscoveryFailure: Artifacts could not be listed/read
            InvalidArtifact: An artifact is malformed
            StatementExecutionFailure: A statement failed (run rolled back)
            LedgerWriteFailure: Ledger invariant violated (run rolled back)
            RunLockTimeout: Another run did not finish in time
        """
        if target_version < 0:
            raise ValueError(
                f"Target version cannot be negative: {target_version}"
            )

        async with self._exclusive_run():
            await self._ensure_initialized()
            result = RunResult(operation='rollback', dry_run=dry_run)

            async with self.database.session() as session:
                try:
                    await self._lock_database(session)

                    current_version = await self.ledger.current_version(session)
                    logger.info(
                        'Current database version: %d. Target version: %d',
                        current_version,
                        target_version
                    )

                    if current_version <= target_version:
                        logger.info(
                            'No rollbacks required. Database is already at or '
                            'below the target version.'
                        )
                        await session.rollback()
                        result.current_version = current_version
                        return result

                    # Artifacts are only read once there is something to revert
                    scanned = self._scan(descending=True)
                    to_revert = [
                        (name, content, migration)
                        for name, content, migration in scanned
                        if target_version < migration.version <= current_version
                    ]
                    logger.info(
                        'Rollback files to execute: %s',
                        ', '.join(name for name, _, _ in to_revert)
                    )

                    for name, content, migration in to_revert:
                        if not await self.ledger.is_applied(session, migration.version):
                            logger.info('Migration file was never applied: %s', name)
                            result.skipped.append(migration.version)
                            continue

                        logger.info('Executing rollback for file: %s', name)
                        await self.executor.apply_reverse(session, name, content)
                        result.executed.append(migration.version)

                    result.current_version = await self.ledger.current_version(session)

                    if dry_run:
                        await session.rollback()
                        logger.info(
                            'Dry run: %d rollbacks executed and rolled back',
                            len(result.executed)
                        )
                    else:
                        await session.commit()
                        logger.info(
                            'Rollback process completed successfully. Database '
                            'rolled back to version: %d',
                            result.current_version
                        )

                except Exception:
                    logger.error('Error while processing rollbacks. Rolling back changes.')
                    await session.rollback()
                    raise

            return result

    async def get_current_db_version(self) -> int:
        """Highest applied version (0 if none)."""
        await self._ensure_initialized()
        async with self.database.session() as session:
            return await self.ledger.current_version(session)

    async def get_history(self) -> List[HistoryRecord]:
        """All history records, oldest version first."""
        await self._ensure_initialized()
        async with self.database.session() as session:
            return await self.ledger.records(session)
