"""
History ledger: the table recording which migration versions are applied.

Every method runs on a session supplied by the caller and never commits,
so ledger reads and writes share the caller's transaction.
"""

import logging
import re
from datetime import datetime
from typing import List

from sqlalchemy import DateTime, Integer, String, bindparam, exc, text
from sqlalchemy.ext.asyncio import AsyncSession

from migrator.errors import LedgerWriteFailure
from migrator.migrations.migration import NO_VERSION, HistoryRecord

_TABLE_NAME_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class HistoryLedger:
    """
    Queries and mutations on the history table.

    Table layout:
        version   INTEGER PRIMARY KEY
        file      TEXT
        timestamp TIMESTAMP

    Attributes:
        table_name: Name of the ledger table (default 'history')

    Example:
        ledger = HistoryLedger()
        async with database.session() as session:
            await ledger.ensure_schema(session)
            if not await ledger.is_applied(session, 3):
                ...
    """

    def __init__(self, table_name: str = 'history'):
        if not _TABLE_NAME_PATTERN.match(table_name):
            raise ValueError(f"Invalid ledger table name: {table_name!r}")
        self.table_name = table_name
        self.logger = logging.getLogger(__name__)

    async def ensure_schema(self, session: AsyncSession) -> None:
        """Create the ledger table if it does not exist.

        Safe to call on every startup (CREATE TABLE IF NOT EXISTS).
        """
        await session.execute(text(f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                version INTEGER PRIMARY KEY,
                file TEXT,
                timestamp TIMESTAMP
            )
        """))
        self.logger.debug('Ensured %s table exists', self.table_name)

    async def is_applied(self, session: AsyncSession, version: int) -> bool:
        """True iff a history record exists for version."""
        result = await session.execute(
            text(f"SELECT COUNT(*) FROM {self.table_name} WHERE version = :version"),
            {'version': version}
        )
        return result.scalar() > 0

    async def current_version(self, session: AsyncSession) -> int:
        """
        Highest applied version.

        Returns:
            max(version), or NO_VERSION if the table is empty
        """
        result = await session.execute(
            text(f"SELECT MAX(version) FROM {self.table_name}")
        )
        max_version = result.scalar()
        return max_version if max_version is not None else NO_VERSION

    async def record(
        self,
        session: AsyncSession,
        version: int,
        name: str,
        timestamp: datetime
    ) -> None:
        """
        Insert a history record.

        Raises:
            LedgerWriteFailure: If version is already recorded
        """
        query = text(f"""
            INSERT INTO {self.table_name} (version, file, timestamp)
            VALUES (:version, :file, :timestamp)
        """).bindparams(bindparam('timestamp', type_=DateTime()))

        try:
            await session.execute(
                query,
                {'version': version, 'file': name, 'timestamp': timestamp}
            )
        except exc.IntegrityError as e:
            raise LedgerWriteFailure(
                f"Version {version} ({name}) is already recorded in "
                f"{self.table_name}"
            ) from e

    async def erase(self, session: AsyncSession, name: str) -> int:
        """
        Delete the history record of an artifact, by artifact name.

        Returns:
            Number of rows deleted (always 1 on success)

        Raises:
            LedgerWriteFailure: If no record exists for name
        """
        result = await session.execute(
            text(f"DELETE FROM {self.table_name} WHERE file = :file"),
            {'file': name}
        )
        if result.rowcount == 0:
            raise LedgerWriteFailure(
                f"No history record for {name}; it was never applied"
            )
        return result.rowcount

    async def records(self, session: AsyncSession) -> List[HistoryRecord]:
        """All history records, ordered by version ascending."""
        query = text(f"""
            SELECT version, file, timestamp
            FROM {self.table_name}
            ORDER BY version
        """).columns(version=Integer(), file=String(), timestamp=DateTime())

        result = await session.execute(query)
        return [
            HistoryRecord(version=row.version, file=row.file, timestamp=row.timestamp)
            for row in result
        ]
