"""SQLite data store for fetched articles."""

import json
import sqlite3
import threading
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import structlog

from wikifetch.article.models import Article, ArticleTitle, Section
from wikifetch.store.errors import (
    ArticleNotFoundError,
    ConnectionError as StoreConnectionError,
)
from wikifetch.store.migrations import CURRENT_VERSION, MigrationManager
from wikifetch.store.models import HttpCacheEntry, StoredTitle


logger = structlog.get_logger()


class ArticleStore:
    """SQLite store for articles, their sections and revalidation headers.

    One connection is shared by every thread that uses the store; all
    access goes through a re-entrant lock. Uses WAL mode and applies schema
    migrations on connect.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file, or ``:memory:``.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        """Open the database and apply migrations.

        Creates the database file and parent directories if needed.
        """
        with self._lock:
            if self._conn is not None:
                return

            in_memory = str(self._db_path) == ":memory:"
            if not in_memory:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)

            self._log.info("connecting_to_database")

            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row

            if not in_memory:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA foreign_keys=ON")

            migration_mgr = MigrationManager(self._conn)
            old_version = migration_mgr.get_current_version()
            applied = migration_mgr.apply_migrations()

            self._log.info(
                "database_connected",
                old_version=old_version,
                new_version=CURRENT_VERSION,
                migrations_applied=applied,
            )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self._log.info("database_closed")

    def __enter__(self) -> "ArticleStore":
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Return the open connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[sqlite3.Connection]:
        """Run a block in a transaction, holding the store lock.

        Args:
            operation: Name of the operation for logging.

        Yields:
            The connection to execute statements on.
        """
        with self._lock:
            conn = self._ensure_connected()
            tx_id = str(uuid.uuid4())[:8]
            start_ns = time.perf_counter_ns()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                self._log.error("transaction_failed", tx_id=tx_id, op=operation)
                raise
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.debug(
                "transaction_complete",
                tx_id=tx_id,
                op=operation,
                duration_ms=round(duration_ms, 2),
            )

    # ===== Articles =====

    def save_article(
        self,
        article: Article,
        *,
        etag: str | None = None,
        last_modified: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Insert or replace an article together with all of its sections.

        When ``status_code`` is given, the response validators are written in
        the same transaction as the article.
        """
        key = article.title.key
        with self._transaction("save_article") as conn:
            conn.execute(
                """
                INSERT INTO articles (
                    title_key, site, text, article_id, display_title,
                    last_modified, last_modified_by, language_count, editable,
                    protection_json, description, redirected_from, saved_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(title_key) DO UPDATE SET
                    article_id = excluded.article_id,
                    display_title = excluded.display_title,
                    last_modified = excluded.last_modified,
                    last_modified_by = excluded.last_modified_by,
                    language_count = excluded.language_count,
                    editable = excluded.editable,
                    protection_json = excluded.protection_json,
                    description = excluded.description,
                    redirected_from = excluded.redirected_from,
                    saved_at = excluded.saved_at
                """,
                (
                    key,
                    article.title.site,
                    article.title.text,
                    article.article_id,
                    article.display_title,
                    article.last_modified.isoformat() if article.last_modified else None,
                    article.last_modified_by,
                    article.language_count,
                    1 if article.editable else 0,
                    json.dumps(article.protection, sort_keys=True),
                    article.description,
                    article.redirected_from,
                    datetime.now(UTC).isoformat(),
                ),
            )
            conn.execute("DELETE FROM sections WHERE title_key = ?", (key,))
            conn.executemany(
                """
                INSERT INTO sections (
                    title_key, section_index, level, toc_level, line,
                    anchor, number, from_title, text
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        key,
                        s.index,
                        s.level,
                        s.toc_level,
                        s.line,
                        s.anchor,
                        s.number,
                        s.from_title,
                        s.text,
                    )
                    for s in article.sections
                ],
            )
            if status_code is not None:
                _write_http_cache(
                    conn,
                    HttpCacheEntry(
                        title_key=key,
                        etag=etag,
                        last_modified=last_modified,
                        last_status=status_code,
                        last_fetch_at=datetime.now(UTC),
                    ),
                )

        self._log.info("article_saved", title=key, sections=len(article.sections))

    def article_for_title(self, title: ArticleTitle) -> Article | None:
        """Load a stored article, or None if it is not stored."""
        key = title.key
        with self._lock:
            conn = self._ensure_connected()
            row = conn.execute(
                "SELECT * FROM articles WHERE title_key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            section_rows = conn.execute(
                "SELECT * FROM sections WHERE title_key = ? ORDER BY section_index",
                (key,),
            ).fetchall()

        return Article(
            title=ArticleTitle(site=row["site"], text=row["text"]),
            article_id=row["article_id"],
            display_title=row["display_title"],
            last_modified=(
                datetime.fromisoformat(row["last_modified"])
                if row["last_modified"]
                else None
            ),
            last_modified_by=row["last_modified_by"],
            language_count=row["language_count"],
            editable=bool(row["editable"]),
            protection=json.loads(row["protection_json"]),
            description=row["description"],
            redirected_from=row["redirected_from"],
            sections=[_row_to_section(r) for r in section_rows],
        )

    def get_article(self, title: ArticleTitle) -> Article:
        """Load a stored article.

        Raises:
            ArticleNotFoundError: If the article is not stored.
        """
        article = self.article_for_title(title)
        if article is None:
            raise ArticleNotFoundError(title.key)
        return article

    def has_article(self, title: ArticleTitle) -> bool:
        with self._lock:
            conn = self._ensure_connected()
            row = conn.execute(
                "SELECT 1 FROM articles WHERE title_key = ?", (title.key,)
            ).fetchone()
        return row is not None

    def delete_article(self, title: ArticleTitle) -> bool:
        """Delete an article, its sections and its revalidation headers.

        Returns:
            True if an article was deleted.
        """
        with self._transaction("delete_article") as conn:
            conn.execute("DELETE FROM http_cache WHERE title_key = ?", (title.key,))
            cursor = conn.execute(
                "DELETE FROM articles WHERE title_key = ?", (title.key,)
            )
            deleted = cursor.rowcount > 0
        if deleted:
            self._log.info("article_deleted", title=title.key)
        return deleted

    def list_titles(self, site: str | None = None) -> list[StoredTitle]:
        """List stored articles, optionally limited to one site."""
        query = """
            SELECT a.site, a.text, a.saved_at, COUNT(s.section_index) AS section_count
            FROM articles a
            LEFT JOIN sections s ON s.title_key = a.title_key
            {where}
            GROUP BY a.title_key
            ORDER BY a.site, a.text
        """
        params: tuple[str, ...] = ()
        where = ""
        if site is not None:
            where = "WHERE a.site = ?"
            params = (site.lower(),)

        with self._lock:
            conn = self._ensure_connected()
            rows = conn.execute(query.format(where=where), params).fetchall()

        return [
            StoredTitle(
                site=row["site"],
                text=row["text"],
                section_count=row["section_count"],
                saved_at=datetime.fromisoformat(row["saved_at"]),
            )
            for row in rows
        ]

    # ===== Revalidation headers =====

    def upsert_http_cache(self, entry: HttpCacheEntry) -> None:
        """Store or replace revalidation headers for an article."""
        with self._transaction("upsert_http_cache") as conn:
            _write_http_cache(conn, entry)

    def get_http_cache(self, title: ArticleTitle) -> HttpCacheEntry | None:
        with self._lock:
            conn = self._ensure_connected()
            row = conn.execute(
                "SELECT * FROM http_cache WHERE title_key = ?", (title.key,)
            ).fetchone()
        if row is None:
            return None
        return HttpCacheEntry(
            title_key=row["title_key"],
            etag=row["etag"],
            last_modified=row["last_modified"],
            last_status=row["last_status"],
            last_fetch_at=datetime.fromisoformat(row["last_fetch_at"]),
        )

    def remember_response(
        self,
        title: ArticleTitle,
        etag: str | None,
        last_modified: str | None,
        status_code: int,
    ) -> None:
        """Record the validators of a successful response for ``title``."""
        self.upsert_http_cache(
            HttpCacheEntry(
                title_key=title.key,
                etag=etag,
                last_modified=last_modified,
                last_status=status_code,
                last_fetch_at=datetime.now(UTC),
            )
        )

    def revalidation_headers(self, title: ArticleTitle) -> dict[str, str]:
        """Conditional request headers for ``title``.

        Empty unless the article itself is stored, so that a 304 can always
        be answered from the store.
        """
        if not self.has_article(title):
            return {}
        entry = self.get_http_cache(title)
        return entry.conditional_headers() if entry else {}

    def get_schema_version(self) -> int:
        with self._lock:
            return MigrationManager(self._ensure_connected()).get_current_version()


def _row_to_section(row: sqlite3.Row) -> Section:
    return Section(
        index=row["section_index"],
        level=row["level"],
        toc_level=row["toc_level"],
        line=row["line"],
        anchor=row["anchor"],
        number=row["number"],
        from_title=row["from_title"],
        text=row["text"],
    )


def _write_http_cache(conn: sqlite3.Connection, entry: HttpCacheEntry) -> None:
    conn.execute(
        """
        INSERT INTO http_cache (title_key, etag, last_modified, last_status, last_fetch_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(title_key) DO UPDATE SET
            etag = excluded.etag,
            last_modified = excluded.last_modified,
            last_status = excluded.last_status,
            last_fetch_at = excluded.last_fetch_at
        """,
        (
            entry.title_key,
            entry.etag,
            entry.last_modified,
            entry.last_status,
            entry.last_fetch_at.isoformat(),
        ),
    )
