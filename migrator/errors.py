"""
Migration-specific exceptions.

This module defines the exception hierarchy for migration runs,
so callers can tell validation problems (bad artifact, bad config)
apart from failures that aborted a run's transaction.
"""


class MigratorError(Exception):
    """
    Base exception for migrator errors.

    All migrator exceptions inherit from this base class,
    allowing catch-all error handling in the CLI layer.
    """
    pass


class InvalidArtifact(MigratorError):
    """
    Migration artifact rejected before execution.

    Raised when:
    - Artifact name lacks the .sql suffix
    - No version number on the artifact's first line
    - Section markers are out of order
    """
    pass


class StatementExecutionFailure(MigratorError):
    """
    A forward or reverse statement failed.

    Carries enough context to locate the statement in its artifact.
    The run that executed it has been (or is about to be) rolled back.
    """

    def __init__(self, artifact_name, version, index, statement, cause):
        self.artifact_name = artifact_name
        self.version = version
        self.index = index
        self.statement = statement
        self.cause = cause
        super().__init__(
            f"Statement {index + 1} of {artifact_name} (v{version}) failed: "
            f"{cause}"
        )


class LedgerWriteFailure(MigratorError):
    """
    History ledger mutation violated its invariants.

    Raised when:
    - A version is recorded twice (primary key violation)
    - Erasing an artifact's record deletes no rows
    """
    pass


class DiscoveryFailure(MigratorError):
    """
    Artifacts could not be listed or read.

    Raised when:
    - Migration root does not exist or is not a directory
    - Migration root or an artifact cannot be read
    """
    pass


class RunLockTimeout(MigratorError):
    """Another run held the migration lock for too long."""
    pass


class ConfigError(MigratorError):
    """
    Configuration could not be loaded.

    Raised when:
    - Config file missing or malformed
    - Required keys (database url, migrations directory) absent
    """
    pass
