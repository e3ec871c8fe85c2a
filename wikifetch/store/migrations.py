"""SQLite schema migrations for the article store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from wikifetch.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
        down_sql: SQL to rollback the migration.
    """

    version: int
    description: str
    up_sql: str
    down_sql: str


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Articles and sections tables",
        up_sql="""
CREATE TABLE IF NOT EXISTS articles (
    title_key TEXT PRIMARY KEY,
    site TEXT NOT NULL,
    text TEXT NOT NULL,
    article_id INTEGER,
    display_title TEXT,
    last_modified TEXT,
    last_modified_by TEXT,
    language_count INTEGER NOT NULL DEFAULT 0,
    editable INTEGER NOT NULL DEFAULT 0,
    protection_json TEXT NOT NULL DEFAULT '{}',
    description TEXT,
    redirected_from TEXT,
    saved_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_articles_site ON articles(site);

CREATE TABLE IF NOT EXISTS sections (
    title_key TEXT NOT NULL REFERENCES articles(title_key) ON DELETE CASCADE,
    section_index INTEGER NOT NULL,
    level INTEGER,
    toc_level INTEGER,
    line TEXT,
    anchor TEXT,
    number TEXT,
    from_title TEXT,
    text TEXT NOT NULL,
    PRIMARY KEY (title_key, section_index)
);
""",
        down_sql="""
DROP TABLE IF EXISTS sections;
DROP INDEX IF EXISTS idx_articles_site;
DROP TABLE IF EXISTS articles;
""",
    ),
    Migration(
        version=2,
        description="HTTP revalidation headers per article",
        up_sql="""
CREATE TABLE IF NOT EXISTS http_cache (
    title_key TEXT PRIMARY KEY,
    etag TEXT,
    last_modified TEXT,
    last_status INTEGER,
    last_fetch_at TEXT NOT NULL
);
""",
        down_sql="""
DROP TABLE IF EXISTS http_cache;
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations newer than ``current_version``, in order."""
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        cursor = self._conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration script fails.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.debug("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []

        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )

            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._log.error(
                    "migration_failed",
                    version=migration.version,
                    error=str(e),
                )
                self._conn.rollback()
                raise MigrationError(migration.version, str(e)) from e

            applied.append(migration.version)
            self._log.info("migration_applied", version=migration.version)

        return applied

    def rollback_to(self, target_version: int) -> list[int]:
        """Roll back applied migrations down to ``target_version``.

        Returns:
            List of version numbers that were rolled back, newest first.

        Raises:
            ValueError: If target version is negative.
        """
        if target_version < 0:
            msg = f"Invalid target version: {target_version}"
            raise ValueError(msg)

        rolled_back: list[int] = []
        for migration in reversed(MIGRATIONS):
            if migration.version <= target_version:
                break
            if migration.version > self.get_current_version():
                continue
            self._conn.executescript(migration.down_sql)
            self._conn.execute(
                "DELETE FROM schema_version WHERE version = ?", (migration.version,)
            )
            self._conn.commit()
            rolled_back.append(migration.version)
            self._log.info("migration_rolled_back", version=migration.version)

        return rolled_back
