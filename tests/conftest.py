"""
Global pytest configuration and fixtures for migrator tests

Provides:
- Migration directory builders
- Temp-file SQLite database
- MigrationManager wired to both
- Helpers to inspect schema and ledger state
"""

import pytest
from sqlalchemy import text

from migrator.database import MigrationDatabase
from migrator.migrations import DirectoryArtifactLister, MigrationManager


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Migration Files
# ============================================================================

def make_artifact(version, forward, reverse):
    """Build artifact text in the standard layout."""
    return (
        f"-- migration {version}\n"
        "--migration--\n"
        f"{forward}\n"
        "--rollback--\n"
        f"{reverse}\n"
    )


def write_migration(directory, name, version, forward, reverse):
    """Write one artifact file and return its path."""
    path = directory / name
    path.write_text(make_artifact(version, forward, reverse), encoding='utf-8')
    return path


STANDARD_MIGRATIONS = [
    (
        'V001__create_users.sql', 1,
        "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);\n"
        "INSERT INTO users (name) VALUES ('admin');",
        "DROP TABLE users;",
    ),
    (
        'V002__create_posts.sql', 2,
        "CREATE TABLE posts (\n"
        "    id INTEGER PRIMARY KEY,\n"
        "    user_id INTEGER REFERENCES users(id),\n"
        "    body TEXT\n"
        ");",
        "DROP TABLE posts;",
    ),
    (
        'V003__index_posts.sql', 3,
        "CREATE INDEX idx_posts_user ON posts(user_id);",
        "DROP INDEX idx_posts_user;",
    ),
]


@pytest.fixture
def migrations_dir(tmp_path):
    """Directory with three dependent migrations (users, posts, index)."""
    directory = tmp_path / "migrations"
    directory.mkdir()
    for name, version, forward, reverse in STANDARD_MIGRATIONS:
        write_migration(directory, name, version, forward, reverse)
    return directory


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
async def database(tmp_path):
    """Temp-file SQLite database (aiosqlite)."""
    db = MigrationDatabase(str(tmp_path / "test.db"))
    yield db
    await db.close()


@pytest.fixture
def manager(database, migrations_dir):
    """MigrationManager over the temp database and standard migrations."""
    return MigrationManager(database, DirectoryArtifactLister(migrations_dir))


async def table_names(database):
    """Names of all user tables and indexes in a SQLite database."""
    async with database.session() as session:
        result = await session.execute(text(
            "SELECT name FROM sqlite_master "
            "WHERE type IN ('table', 'index') AND name NOT LIKE 'sqlite_%'"
        ))
        return {row[0] for row in result}


async def ledger_versions(database, table='history'):
    """Versions recorded in the history table, ascending."""
    async with database.session() as session:
        result = await session.execute(text(f"SELECT version FROM {table} ORDER BY version"))
        return [row[0] for row in result]
