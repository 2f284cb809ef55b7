"""
Artifact listing for the migration manager.

The manager never walks the filesystem itself: it asks an ArtifactLister
for artifact names and content. DirectoryArtifactLister is the stock
implementation backed by a plain directory.
"""

import logging
from pathlib import Path
from typing import List, Protocol

from migrator.errors import DiscoveryFailure

logger = logging.getLogger(__name__)


class ArtifactLister(Protocol):
    """Source of migration artifacts."""

    def list_artifacts(self) -> List[str]:
        """Return artifact names in ascending lexical order."""
        ...

    def read_artifact(self, name: str) -> str:
        """Return the full text of the named artifact."""
        ...


class DirectoryArtifactLister:
    """
    Lists migration artifacts stored as files in one directory.

    Every regular file in the directory is an artifact; suffix checks
    happen when the artifact is parsed, so stray files fail loudly
    instead of being skipped.

    Example:
        >>> lister = DirectoryArtifactLister('db/migrations')
        >>> lister.list_artifacts()
        ['V001__create_users.sql', 'V002__add_email.sql']
    """

    def __init__(self, root):
        """
        Args:
            root: Directory holding migration files
        """
        self.root = Path(root)

    def list_artifacts(self) -> List[str]:
        """
        List artifact names in ascending lexical order.

        Raises:
            DiscoveryFailure: If root is missing, not a directory or unreadable
        """
        logger.info('Reading files from directory: %s', self.root)

        if not self.root.is_dir():
            raise DiscoveryFailure(
                f"Migration directory {self.root} not found"
            )

        try:
            names = sorted(
                path.name for path in self.root.iterdir() if path.is_file()
            )
        except OSError as e:
            raise DiscoveryFailure(
                f"Error while reading files from directory {self.root}: {e}"
            ) from e

        logger.debug('Found %d artifacts in %s', len(names), self.root)
        return names

    def read_artifact(self, name: str) -> str:
        """
        Read an artifact as UTF-8 text.

        Raises:
            DiscoveryFailure: If the file cannot be read or decoded
        """
        path = self.root / name
        try:
            return path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise DiscoveryFailure(
                f"Error reading migration file {path}: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"<DirectoryArtifactLister({self.root})>"
