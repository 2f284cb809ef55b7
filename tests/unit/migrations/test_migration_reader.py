"""
Unit tests for migration artifact parsing.

Tests cover:
- Version extraction from the first line
- Statement splitting and trimming
- Section markers (both accepted layouts)
- Artifact name validation
"""

import pytest

from migrator.errors import InvalidArtifact
from migrator.migrations.migration_reader import (
    MIGRATION_MARKER,
    ROLLBACK_MARKER,
    check_artifact_name,
    parse_migration,
    read_migration_version,
    split_statements,
)


class TestVersionExtraction:
    """Test version parsing from the first line."""

    def test_version_from_comment(self):
        assert read_migration_version('a.sql', "-- migration 42\nSELECT 1;") == 42

    def test_first_digit_run_wins(self):
        assert read_migration_version('a.sql', "-- v7 replaces 3\n") == 7

    def test_leading_zeros(self):
        assert read_migration_version('a.sql', "-- 003 add index") == 3

    def test_only_first_line_is_scanned(self):
        """Digits on later lines do not count."""
        with pytest.raises(InvalidArtifact, match="no version number"):
            read_migration_version('a.sql', "-- migration\nCREATE TABLE t1(x int);")

    def test_no_digit_raises(self):
        with pytest.raises(InvalidArtifact):
            parse_migration('x.sql', "-- create users\n--migration--\nSELECT 1;")

    def test_empty_content_raises(self):
        with pytest.raises(InvalidArtifact):
            parse_migration('x.sql', "")


class TestStatementSplitting:
    """Test splitting SQL sections into statements."""

    def test_two_statements_trimmed(self):
        statements = split_statements(
            "CREATE TABLE t(x int);  \n ALTER TABLE t ADD y int;"
        )
        assert statements == ['CREATE TABLE t(x int)', 'ALTER TABLE t ADD y int']

    def test_trailing_fragment_dropped(self):
        assert split_statements("SELECT 1;\n\n   ") == ['SELECT 1']

    def test_missing_final_separator_kept(self):
        assert split_statements("SELECT 1; SELECT 2") == ['SELECT 1', 'SELECT 2']

    def test_empty_fragments_dropped(self):
        assert split_statements(";;  ; SELECT 1;;") == ['SELECT 1']

    def test_whole_line_comments_dropped(self):
        sql = "-- users table\nCREATE TABLE users (id int);\n  -- done\n"
        assert split_statements(sql) == ['CREATE TABLE users (id int)']

    def test_comment_only_fragment_dropped(self):
        sql = "SELECT 1;\n-- trailing note\n  -- and another\n"
        assert split_statements(sql) == ['SELECT 1']

    def test_dash_lines_inside_statement_kept(self):
        sql = "INSERT INTO notes VALUES ('line1\n-- not a comment\nline3');"
        assert split_statements(sql) == [
            "INSERT INTO notes VALUES ('line1\n-- not a comment\nline3')"
        ]

    def test_multiline_statement_preserved(self):
        sql = "CREATE TABLE posts (\n    id int,\n    body text\n);"
        assert split_statements(sql) == ["CREATE TABLE posts (\n    id int,\n    body text\n)"]

    def test_empty_section(self):
        assert split_statements("") == []


class TestParseMigration:
    """Test full artifact parsing."""

    def test_standard_layout(self):
        content = (
            "-- migration 1\n"
            "--migration--\n"
            "CREATE TABLE users (id int);\n"
            "CREATE INDEX idx_users ON users(id);\n"
            "--rollback--\n"
            "DROP INDEX idx_users;\n"
            "DROP TABLE users;\n"
        )
        migration = parse_migration('V001__users.sql', content)

        assert migration.version == 1
        assert migration.name == 'V001__users.sql'
        assert migration.forward == (
            'CREATE TABLE users (id int)',
            'CREATE INDEX idx_users ON users(id)',
        )
        assert migration.reverse == ('DROP INDEX idx_users', 'DROP TABLE users')

    def test_forward_before_migration_marker(self):
        """Forward SQL between the version line and --migration-- is accepted."""
        content = (
            "-- migration 3\n"
            "CREATE TABLE t(x int);\n"
            "--migration--\n"
            "--rollback--\n"
            "DROP TABLE t;\n"
        )
        migration = parse_migration('V003.sql', content)

        assert migration.forward == ('CREATE TABLE t(x int)',)
        assert migration.reverse == ('DROP TABLE t',)

    def test_marker_with_surrounding_whitespace(self):
        content = "-- 5\n   --migration--  \nSELECT 1;\n\t--rollback--\nSELECT 2;"
        migration = parse_migration('V005.sql', content)

        assert migration.forward == ('SELECT 1',)
        assert migration.reverse == ('SELECT 2',)

    def test_markers_are_case_sensitive(self):
        """'--ROLLBACK--' is not a marker; it's a comment line in the forward section."""
        content = "-- 1\n--migration--\nSELECT 1;\n--ROLLBACK--\nSELECT 2;"
        migration = parse_migration('V001.sql', content)

        assert migration.forward == ('SELECT 1', 'SELECT 2')
        assert migration.reverse == ()

    def test_no_rollback_section(self):
        migration = parse_migration('V001.sql', "-- 1\n--migration--\nSELECT 1;")
        assert migration.forward == ('SELECT 1',)
        assert migration.reverse == ()

    def test_empty_forward_section_is_legal(self):
        migration = parse_migration('V001.sql', "-- 1\n--migration--\n--rollback--\n")
        assert migration.forward == ()
        assert migration.reverse == ()

    def test_rollback_before_migration_raises(self):
        content = "-- 1\n--rollback--\nDROP TABLE t;\n--migration--\nCREATE TABLE t(x int);"
        with pytest.raises(InvalidArtifact, match="before"):
            parse_migration('V001.sql', content)

    def test_windows_line_endings(self):
        content = "-- 2\r\n--migration--\r\nSELECT 1;\r\n--rollback--\r\nSELECT 2;\r\n"
        migration = parse_migration('V002.sql', content)

        assert migration.version == 2
        assert migration.forward == ('SELECT 1',)
        assert migration.reverse == ('SELECT 2',)

    def test_version_line_marker_text_not_a_section(self):
        """The first line never opens a section, even if it looks like a marker."""
        content = f"{MIGRATION_MARKER} 9\nSELECT 1;\n{ROLLBACK_MARKER}\nSELECT 2;"
        migration = parse_migration('V009.sql', content)

        assert migration.version == 9
        assert migration.forward == ('SELECT 1',)

    def test_multiline_literal_survives_parsing(self):
        content = (
            "-- migration 1\n"
            "--migration--\n"
            "INSERT INTO notes VALUES ('line1\n-- not a comment\nline3');\n"
            "--rollback--\n"
            "DELETE FROM notes;\n"
        )
        migration = parse_migration('V001.sql', content)

        assert migration.forward == (
            "INSERT INTO notes VALUES ('line1\n-- not a comment\nline3')",
        )

    def test_parsing_is_deterministic(self):
        content = "-- 4\n--migration--\nSELECT 1;\n--rollback--\nSELECT 2;"
        assert parse_migration('V004.sql', content) == parse_migration('V004.sql', content)


class TestArtifactName:
    """Test .sql suffix validation."""

    @pytest.mark.parametrize('name', ['V001.sql', 'dir/V001__x.sql', 'V001.SQL'])
    def test_sql_suffix_accepted(self, name):
        check_artifact_name(name)

    @pytest.mark.parametrize('name', ['V001.txt', 'V001.sql.bak', 'README', 'V001sql'])
    def test_wrong_suffix_rejected(self, name):
        with pytest.raises(InvalidArtifact, match="wrong extension"):
            check_artifact_name(name)

    def test_parse_rejects_wrong_suffix_before_parsing(self):
        """Suffix is checked first, even when content has no version."""
        with pytest.raises(InvalidArtifact, match="wrong extension"):
            parse_migration('notes.txt', "no version here")
