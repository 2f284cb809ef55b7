#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration executor: runs one artifact's statements and updates the ledger.

The executor participates in a transaction owned by its caller
(MigrationManager). It never commits or rolls back; on failure it raises
and leaves the caller to abort the whole run.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import exc
from sqlalchemy.ext.asyncio import AsyncSession

from migrator.errors import StatementExecutionFailure
from migrator.migrations.history_ledger import HistoryLedger
from migrator.migrations.migration import Migration
from migrator.migrations.migration_reader import check_artifact_name, parse_migration


def _utcnow() -> datetime:
    """Current UTC time as a naive datetime (TIMESTAMP column)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MigrationExecutor:
    """
    Applies or reverts a single migration artifact.

    Each successful call changes exactly one history record: forward
    application inserts it, reverse application deletes it.

    Attributes:
        ledger: HistoryLedger used to record and erase versions
        logger: Logger for execution tracking

    Example:
        executor = MigrationExecutor(HistoryLedger())

        async with database.session() as session:
            migration = await executor.apply_forward(
                session, 'V001__create_users.sql', content
            )
            await session.commit()
    """

    def __init__(self, ledger: Optional[HistoryLedger] = None):
        """
        Initialize migration executor.

        Args:
            ledger: History ledger (default: HistoryLedger on 'history')
        """
        self.ledger = ledger if ledger is not None else HistoryLedger()
        self.logger = logging.getLogger(__name__)

    async def apply_forward(
        self,
        session: AsyncSession,
        name: str,
        content: str
    ) -> Migration:
        """
        Execute an artifact's forward statements and record its version.

        Args:
            session: Active session (transaction managed by caller)
            name: Artifact name
            content: Artifact text

        Returns:
            The parsed Migration

        Raises:
            InvalidArtifact: Bad suffix or version (nothing executed)
            StatementExecutionFailure: A forward statement failed
            LedgerWriteFailure: Version already recorded
        """
        self.logger.info('Starting migration for file: %s', name)
        check_artifact_name(name)
        migration = parse_migration(name, content)

        start_time = time.time()
        await self._execute_batch(session, migration, migration.forward)
        await self.ledger.record(session, migration.version, name, _utcnow())

        self.logger.info(
            'Applied migration %s v%03d: %d statements (%dms)',
            name,
            migration.version,
            len(migration.forward),
            int((time.time() - start_time) * 1000)
        )
        return migration

    async def apply_reverse(
        self,
        session: AsyncSession,
        name: str,
        content: str
    ) -> Migration:
        """
        Execute an artifact's reverse statements and erase its record.

        Args:
            session: Active session (transaction managed by caller)
            name: Artifact name
            content: Artifact text

        Returns:
            The parsed Migration

        Raises:
            InvalidArtifact: Bad suffix or version (nothing executed)
            StatementExecutionFailure: A reverse statement failed
            LedgerWriteFailure: No record existed for the artifact
        """
        self.logger.info('Starting rollback for file: %s', name)
        check_artifact_name(name)
        migration = parse_migration(name, content)

        start_time = time.time()
        await self._execute_batch(session, migration, migration.reverse)
        await self.ledger.erase(session, name)

        self.logger.info(
            'Rolled back migration %s v%03d: %d statements (%dms)',
            name,
            migration.version,
            len(migration.reverse),
            int((time.time() - start_time) * 1000)
        )
        return migration

    async def _execute_batch(
        self,
        session: AsyncSession,
        migration: Migration,
        statements: Sequence[str]
    ) -> None:
        """
        Execute statements one by one, in order.

        Raises:
            StatementExecutionFailure: On the first statement that fails
        """
        self.logger.info(
            'Read %d SQL commands from file: %s',
            len(statements),
            migration.name
        )

        # Statements go to the driver verbatim (no bind-parameter parsing)
        connection = await session.connection()
        for index, statement in enumerate(statements):
            self.logger.debug('Executing SQL command: %s', statement)
            try:
                await connection.exec_driver_sql(statement)
            except exc.SQLAlchemyError as e:
                self.logger.error(
                    'Statement %d of %s failed: %s',
                    index + 1,
                    migration.name,
                    e
                )
                raise StatementExecutionFailure(
                    migration.name, migration.version, index, statement, e
                ) from e
