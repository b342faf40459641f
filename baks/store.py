"""SQLite persistence for page records with a synchronized FTS5 index.

The ``pages`` table holds one row per URL. ``pages_fts`` is an external
content FTS5 table over title and description; triggers on ``pages`` keep it
in step, so an index entry is written and removed in the same transaction as
its base row. ``pages_tags`` holds the host suffix rules used to tag pages.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

from .errors import DuplicateURLError, StorageError
from .models import Page, TagCount, TagRule, utc_now

logger = logging.getLogger(__name__)

UNTAGGED = "untagged"

SCHEMA = """
CREATE TABLE IF NOT EXISTS pages(
    id INTEGER PRIMARY KEY,
    url TEXT NOT NULL,
    url_original TEXT,
    title TEXT,
    description TEXT,
    mime_type TEXT,
    tag TEXT,
    referrer TEXT,
    host TEXT,
    is_root_page INTEGER NOT NULL DEFAULT 0,
    added_at TEXT NOT NULL,

    UNIQUE(url)
);

CREATE INDEX IF NOT EXISTS pages_added_at ON pages(added_at);
CREATE INDEX IF NOT EXISTS pages_tag ON pages(tag);
CREATE INDEX IF NOT EXISTS pages_referrer ON pages(referrer);

CREATE VIRTUAL TABLE IF NOT EXISTS pages_fts USING fts5(
    url UNINDEXED, title, description, content=pages, content_rowid=id
);

CREATE TRIGGER IF NOT EXISTS pages_ai AFTER INSERT ON pages BEGIN
    INSERT INTO pages_fts(rowid, url, title, description)
    VALUES (new.id, new.url, new.title, new.description);
END;

CREATE TRIGGER IF NOT EXISTS pages_ad AFTER DELETE ON pages BEGIN
    INSERT INTO pages_fts(pages_fts, rowid, url, title, description)
    VALUES ('delete', old.id, old.url, old.title, old.description);
END;

CREATE TABLE IF NOT EXISTS pages_tags(
    id INTEGER PRIMARY KEY,
    host TEXT NOT NULL,
    tag TEXT NOT NULL
);
"""

COLUMNS = (
    "id", "url", "url_original", "title", "description", "mime_type",
    "tag", "referrer", "host", "is_root_page", "added_at",
)
_COLS = ", ".join(COLUMNS)
_PAGE_COLS = ", ".join(f"pages.{c}" for c in COLUMNS)

INSERT_SQL = (
    f"INSERT INTO pages({_COLS}) VALUES({', '.join('?' * len(COLUMNS))})"
)

SEARCH_SQL = f"""
WITH results AS (
    SELECT rowid AS rid FROM pages_fts WHERE pages_fts MATCH ?
)
SELECT {_PAGE_COLS} FROM pages JOIN results ON pages.id = results.rid
ORDER BY pages.added_at DESC
"""
SEARCH_COUNT_SQL = "SELECT count(*) FROM pages_fts WHERE pages_fts MATCH ?"

LIKE_SQL = f"SELECT {_COLS} FROM pages WHERE title LIKE ? ORDER BY added_at DESC"
LIKE_COUNT_SQL = "SELECT count(*) FROM pages WHERE title LIKE ?"

BY_TAG_SQL = f"SELECT {_COLS} FROM pages WHERE tag = ? ORDER BY added_at DESC"
BY_REFERRER_SQL = f"SELECT {_COLS} FROM pages WHERE referrer = ? ORDER BY added_at DESC"
BY_URL_SQL = f"SELECT {_COLS} FROM pages WHERE url = ?"
RECENT_SQL = f"SELECT {_COLS} FROM pages ORDER BY added_at DESC LIMIT ?"
RANDOM_SQL = f"SELECT {_COLS} FROM pages ORDER BY random() LIMIT ?"

TAG_COUNTS_SQL = """
SELECT tag, count(*) AS n FROM pages
WHERE tag IS NOT NULL AND tag != ''
GROUP BY tag ORDER BY n DESC, tag
"""
UNTAGGED_COUNT_SQL = "SELECT count(*) FROM pages WHERE tag IS NULL OR tag = ''"


def format_timestamp(dt: datetime) -> str:
    """Fixed-width UTC ISO-8601, so text order is time order."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f+00:00")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _none_if_empty(value: str) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def _row_to_page(row: sqlite3.Row) -> Page:
    return Page(
        url=row["url"],
        url_original=row["url_original"] or "",
        title=row["title"] or "",
        description=row["description"] or "",
        mime_type=row["mime_type"] or "",
        tag=row["tag"] or "",
        referrer=row["referrer"] or "",
        host=row["host"] or "",
        is_root_page=bool(row["is_root_page"]),
        added_at=parse_timestamp(row["added_at"]),
    )


class PageStore:
    """Page records on a single SQLite file.

    Usable as a context manager; the schema is created on open.
    """

    def __init__(self, path: Union[str, Path], *, check_same_thread: bool = True) -> None:
        self.path = path
        try:
            # Autocommit; writes open their own transactions.
            self._conn = sqlite3.connect(
                str(path), isolation_level=None, check_same_thread=check_same_thread
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise StorageError(f"can't open database {path}: {exc}") from exc
        logger.debug("Opened database: %s", path)

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error as exc:
            logger.error("can't close database %s: %s", self.path, exc)

    def __enter__(self) -> "PageStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -------------------- Plumbing -------------------- #

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        else:
            self._conn.execute("COMMIT")

    def _pages(self, sql: str, params: Sequence[Any] = ()) -> List[Page]:
        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(exc) from exc
        return [_row_to_page(r) for r in rows]

    def _scalar(self, sql: str, params: Sequence[Any] = ()) -> int:
        try:
            return self._conn.execute(sql, params).fetchone()[0]
        except sqlite3.Error as exc:
            raise StorageError(exc) from exc

    # -------------------- Writes -------------------- #

    def insert(self, page: Page) -> Page:
        """Insert ``page`` and index it in the same transaction.

        ``added_at`` is assigned here, strictly after every stored timestamp.
        Returns the page as stored.

        Raises:
            DuplicateURLError: A page with the same url already exists.
            StorageError: Any other database failure.
        """
        try:
            with self._transaction() as conn:
                added_at = utc_now()
                last = conn.execute("SELECT max(added_at) FROM pages").fetchone()[0]
                if last is not None:
                    floor = parse_timestamp(last) + timedelta(microseconds=1)
                    if added_at < floor:
                        added_at = floor

                stored = page.model_copy(update={"added_at": added_at})
                conn.execute(
                    INSERT_SQL,
                    (
                        None,
                        stored.url,
                        _none_if_empty(stored.url_original),
                        _none_if_empty(stored.title),
                        _none_if_empty(stored.description),
                        _none_if_empty(stored.mime_type),
                        _none_if_empty(stored.tag),
                        _none_if_empty(stored.referrer),
                        _none_if_empty(stored.host),
                        int(stored.is_root_page),
                        format_timestamp(added_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateURLError(exc, url=page.url) from exc
            raise StorageError(exc, url=page.url) from exc
        except sqlite3.Error as exc:
            raise StorageError(exc, url=page.url) from exc

        logger.debug("Inserted %s", stored.url)
        return stored

    def add_tag_rule(self, host_suffix: str, tag: str) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO pages_tags(host, tag) VALUES (?, ?)", (host_suffix, tag)
                )
        except sqlite3.Error as exc:
            raise StorageError(exc) from exc

    # -------------------- Reads -------------------- #

    def search(self, query: str) -> List[Page]:
        """Full-text search on title and description, newest first.

        ``query`` is passed verbatim to FTS5 MATCH, so phrase, NEAR and prefix
        queries work as documented by SQLite.
        """
        return self._pages(SEARCH_SQL, (query,))

    def search_count(self, query: str) -> int:
        return self._scalar(SEARCH_COUNT_SQL, (query,))

    def like(self, pattern: str) -> List[Page]:
        """SQL LIKE on titles, newest first."""
        return self._pages(LIKE_SQL, (pattern,))

    def like_count(self, pattern: str) -> int:
        return self._scalar(LIKE_COUNT_SQL, (pattern,))

    def list_by_tag(self, tag: str) -> List[Page]:
        return self._pages(BY_TAG_SQL, (tag,))

    def list_by_referrer(self, referrer: str) -> List[Page]:
        return self._pages(BY_REFERRER_SQL, (referrer,))

    def recent(self, n: int) -> List[Page]:
        return self._pages(RECENT_SQL, (n,))

    def random(self, n: int) -> List[Page]:
        return self._pages(RANDOM_SQL, (n,))

    def get(self, url: str) -> Optional[Page]:
        pages = self._pages(BY_URL_SQL, (url,))
        return pages[0] if pages else None

    def count(self) -> int:
        return self._scalar("SELECT count(*) FROM pages")

    def tag_counts(self) -> List[TagCount]:
        """Pages per tag, largest first.

        Pages without a tag, and pages explicitly tagged ``untagged``, share one
        ``untagged`` bucket that comes last.
        """
        try:
            rows = self._conn.execute(TAG_COUNTS_SQL).fetchall()
            untagged = self._conn.execute(UNTAGGED_COUNT_SQL).fetchone()[0]
        except sqlite3.Error as exc:
            raise StorageError(exc) from exc

        counts = []
        for r in rows:
            if r["tag"] == UNTAGGED:
                untagged += r["n"]
            else:
                counts.append(TagCount(tag=r["tag"], count=r["n"]))
        if untagged:
            counts.append(TagCount(tag=UNTAGGED, count=untagged))
        return counts

    def tag_rules(self) -> List[TagRule]:
        """Host suffix rules in load order."""
        try:
            rows = self._conn.execute(
                "SELECT host, tag FROM pages_tags ORDER BY id"
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(exc) from exc
        return [TagRule(host_suffix=r["host"], tag=r["tag"]) for r in rows]
