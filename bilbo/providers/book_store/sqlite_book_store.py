"""SQLite-backed book metadata store.

Persists books and their child collections to a local SQLite database at
``data/bilbo.db`` using ``aiosqlite`` for async I/O, and serves the
structured half of hybrid search from an FTS5 index.

Schema (normalised, many-to-many for authors and tags)::

    books              one row per reference, plus body and fingerprint
    authors            distinct names
    book_authors       (book, author, position) keeps credit order
    tags / book_tags   distinct names / membership
    reseller_urls      (book, url, kind paper|digital)
    chapter_summaries  (book, chapter_ordinal, title, summary)
    books_fts          FTS5 over title, editor, authors, body (rowid = books.id)

Every write to one book runs in a single transaction: a failure leaves the
previous version of the record intact.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from bilbo.interfaces.book_store_provider import IBookStoreProvider
from bilbo.models.book import (
    BookDetail,
    BookMetadata,
    BookSearchResult,
    ChapterSummary,
    ResellerUrl,
    StoredBook,
)
from bilbo.models.search import BookPage
from bilbo.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/bilbo.db")

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_CREATE_TABLES_SQL = [
    f"""\
CREATE TABLE IF NOT EXISTS books (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    reference     TEXT    NOT NULL UNIQUE,
    title         TEXT    NOT NULL,
    editor        TEXT,
    edition_date  TEXT,
    summary       TEXT,
    introduction  TEXT,
    cover_text    TEXT,
    ean           TEXT,
    isbn          TEXT,
    body          TEXT    NOT NULL DEFAULT '',
    fingerprint   TEXT,
    created_at    TEXT    NOT NULL DEFAULT ({_NOW}),
    updated_at    TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    """\
CREATE TABLE IF NOT EXISTS authors (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT    NOT NULL UNIQUE
);
""",
    """\
CREATE TABLE IF NOT EXISTS book_authors (
    book_id    INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    author_id  INTEGER NOT NULL REFERENCES authors(id),
    position   INTEGER NOT NULL,
    PRIMARY KEY (book_id, author_id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS tags (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT    NOT NULL UNIQUE
);
""",
    """\
CREATE TABLE IF NOT EXISTS book_tags (
    book_id  INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    tag_id   INTEGER NOT NULL REFERENCES tags(id),
    PRIMARY KEY (book_id, tag_id)
);
""",
    """\
CREATE TABLE IF NOT EXISTS reseller_urls (
    id       INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id  INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    url      TEXT    NOT NULL,
    kind     TEXT    NOT NULL CHECK (kind IN ('paper', 'digital'))
);
""",
    """\
CREATE TABLE IF NOT EXISTS chapter_summaries (
    book_id          INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    chapter_ordinal  INTEGER NOT NULL,
    title            TEXT,
    summary          TEXT    NOT NULL,
    PRIMARY KEY (book_id, chapter_ordinal)
);
""",
    """\
CREATE VIRTUAL TABLE IF NOT EXISTS books_fts USING fts5(
    title, editor, authors, body,
    tokenize = 'unicode61 remove_diacritics 2'
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_books_updated ON books(updated_at);",
    "CREATE INDEX IF NOT EXISTS idx_book_authors_author ON book_authors(author_id);",
    "CREATE INDEX IF NOT EXISTS idx_book_tags_tag ON book_tags(tag_id);",
    "CREATE INDEX IF NOT EXISTS idx_reseller_urls_book ON reseller_urls(book_id);",
]

_UPSERT_BOOK_SQL = f"""\
INSERT INTO books (reference, title, editor, edition_date, summary, introduction,
                   cover_text, ean, isbn, body, fingerprint)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
ON CONFLICT(reference)
DO UPDATE SET title        = excluded.title,
              editor       = excluded.editor,
              edition_date = excluded.edition_date,
              summary      = excluded.summary,
              introduction = excluded.introduction,
              cover_text   = excluded.cover_text,
              ean          = excluded.ean,
              isbn         = excluded.isbn,
              body         = excluded.body,
              fingerprint  = NULL,
              updated_at   = {_NOW};
"""

_BOOK_COLUMNS = "b.id, b.reference, b.title, b.editor, b.edition_date, b.summary"

_DETAIL_COLUMNS = f"{_BOOK_COLUMNS}, b.introduction, b.cover_text, b.ean, b.isbn"

# Word tokens of a free-text query; each is quoted so FTS5 syntax
# characters in user input are never interpreted.
_FTS_TOKEN = re.compile(r"\w+", re.UNICODE)


def _fts_query(text: str) -> str | None:
    tokens = _FTS_TOKEN.findall(text)
    if not tokens:
        return None
    return " ".join(f'"{token}"' for token in tokens)


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SQLiteBookStore(IBookStoreProvider):
    """SQLite-backed book metadata persistence and structured search."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables, the FTS index and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL")
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("book_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Ingestion side
    # ------------------------------------------------------------------

    async def find_book(self, reference: str) -> StoredBook | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, reference, fingerprint FROM books WHERE reference = ?",
                (reference,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return StoredBook(id=row["id"], reference=row["reference"], fingerprint=row["fingerprint"])

    async def upsert_book(self, metadata: BookMetadata, body: str) -> int:
        """Replace the book record and all child collections in one transaction."""
        async with self._connect() as db:
            await db.execute(
                _UPSERT_BOOK_SQL,
                (
                    metadata.reference,
                    metadata.title,
                    metadata.editor,
                    metadata.edition_date,
                    metadata.summary,
                    metadata.introduction,
                    metadata.cover_text,
                    metadata.ean,
                    metadata.isbn,
                    body,
                ),
            )
            cursor = await db.execute(
                "SELECT id FROM books WHERE reference = ?", (metadata.reference,)
            )
            book_id = (await cursor.fetchone())["id"]

            await self._replace_authors(db, book_id, metadata.authors)
            await self._replace_tags(db, book_id, metadata.tags)
            await self._replace_reseller_urls(db, book_id, metadata.reseller_urls())

            await db.execute("DELETE FROM books_fts WHERE rowid = ?", (book_id,))
            await db.execute(
                "INSERT INTO books_fts (rowid, title, editor, authors, body) VALUES (?, ?, ?, ?, ?)",
                (book_id, metadata.title, metadata.editor or "", " ".join(metadata.authors), body),
            )
            await db.commit()

        logger.info(
            "book_upserted",
            reference=metadata.reference,
            book_id=book_id,
            authors=len(metadata.authors),
            tags=len(metadata.tags),
        )
        return book_id

    async def replace_chapter_summaries(
        self, document_id: int, summaries: Sequence[ChapterSummary]
    ) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM chapter_summaries WHERE book_id = ?", (document_id,))
            await db.executemany(
                "INSERT INTO chapter_summaries (book_id, chapter_ordinal, title, summary) "
                "VALUES (?, ?, ?, ?)",
                [(document_id, s.chapter_ordinal, s.title, s.summary) for s in summaries],
            )
            await db.commit()
        logger.info("chapter_summaries_replaced", book_id=document_id, count=len(summaries))

    async def commit_fingerprint(self, document_id: int, fingerprint: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE books SET fingerprint = ? WHERE id = ?", (fingerprint, document_id)
            )
            await db.commit()

    # ------------------------------------------------------------------
    # Query side
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        tags: Sequence[str] = (),
        author: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> BookPage:
        """Filtered structured search, newest update first.

        The free-text condition is ``FTS match OR title LIKE OR editor LIKE``;
        tag and author conditions are ANDed onto it.
        """
        where, params = self._search_conditions(query, tags, author)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""

        async with self._connect() as db:
            cursor = await db.execute(f"SELECT COUNT(*) AS n FROM books b {where_sql}", params)
            total = (await cursor.fetchone())["n"]

            cursor = await db.execute(
                f"SELECT {_BOOK_COLUMNS} FROM books b {where_sql} "
                "ORDER BY b.updated_at DESC, b.id DESC LIMIT ? OFFSET ?",
                [*params, page_size, page * page_size],
            )
            rows = await cursor.fetchall()

            ids = [row["id"] for row in rows]
            authors = await self._authors_by_book(db, ids)
            tag_names = await self._tags_by_book(db, ids)

        results = [
            BookSearchResult(
                **dict(row),
                authors=authors.get(row["id"], []),
                tags=tag_names.get(row["id"], []),
            )
            for row in rows
        ]
        logger.debug(
            "book_store_search", query_length=len(query), total=total, returned=len(results)
        )
        return BookPage(results=results, total=total)

    async def get_by_reference(self, reference: str) -> BookDetail | None:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_DETAIL_COLUMNS} FROM books b WHERE b.reference = ?", (reference,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            book_id = row["id"]

            authors = await self._authors_by_book(db, [book_id])
            tag_names = await self._tags_by_book(db, [book_id])

            cursor = await db.execute(
                "SELECT url, kind FROM reseller_urls WHERE book_id = ? ORDER BY id", (book_id,)
            )
            reseller_urls = [ResellerUrl(url=r["url"], kind=r["kind"]) for r in await cursor.fetchall()]

            cursor = await db.execute(
                "SELECT chapter_ordinal, title, summary FROM chapter_summaries "
                "WHERE book_id = ? ORDER BY chapter_ordinal",
                (book_id,),
            )
            summaries = [ChapterSummary(**dict(r)) for r in await cursor.fetchall()]

        return BookDetail(
            **dict(row),
            authors=authors.get(book_id, []),
            tags=tag_names.get(book_id, []),
            reseller_urls=reseller_urls,
            chapter_summaries=summaries,
        )

    async def list_tags(self) -> list[str]:
        return await self._names(
            "SELECT DISTINCT t.name FROM tags t JOIN book_tags bt ON bt.tag_id = t.id "
            "ORDER BY t.name"
        )

    async def list_authors(self) -> list[str]:
        return await self._names(
            "SELECT DISTINCT a.name FROM authors a JOIN book_authors ba ON ba.author_id = a.id "
            "ORDER BY a.name"
        )

    async def list_all_references(self) -> list[tuple[str, str]]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT reference, title FROM books ORDER BY title, reference")
            rows = await cursor.fetchall()
        return [(r["reference"], r["title"]) for r in rows]

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_book_store"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection with row access by name and foreign keys on.

        Any SQLite error inside the block surfaces as :class:`StorageError`;
        an uncommitted transaction is rolled back when the connection closes.
        """
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                await db.execute("PRAGMA foreign_keys = ON")
                yield db
        except aiosqlite.Error as exc:
            logger.error("book_store_error", path=str(self._db_path), error=str(exc))
            raise StorageError(
                message=f"SQLite operation failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def _names(self, sql: str) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute(sql)
            rows = await cursor.fetchall()
        return [r["name"] for r in rows]

    @staticmethod
    def _search_conditions(
        query: str, tags: Sequence[str], author: str | None
    ) -> tuple[list[str], list[Any]]:
        where: list[str] = []
        params: list[Any] = []

        text = query.strip()
        if text:
            like = _like_pattern(text)
            text_clauses = [
                "b.title LIKE ? ESCAPE '\\'",
                "COALESCE(b.editor, '') LIKE ? ESCAPE '\\'",
            ]
            text_params: list[Any] = [like, like]
            match = _fts_query(text)
            if match is not None:
                text_clauses.insert(0, "b.id IN (SELECT rowid FROM books_fts WHERE books_fts MATCH ?)")
                text_params.insert(0, match)
            where.append(f"({' OR '.join(text_clauses)})")
            params.extend(text_params)

        for tag in dict.fromkeys(tags):
            where.append(
                "EXISTS (SELECT 1 FROM book_tags bt JOIN tags t ON t.id = bt.tag_id "
                "WHERE bt.book_id = b.id AND t.name = ?)"
            )
            params.append(tag)

        if author:
            where.append(
                "EXISTS (SELECT 1 FROM book_authors ba JOIN authors a ON a.id = ba.author_id "
                "WHERE ba.book_id = b.id AND a.name = ?)"
            )
            params.append(author)

        return where, params

    @staticmethod
    async def _replace_authors(db: aiosqlite.Connection, book_id: int, names: list[str]) -> None:
        await db.execute("DELETE FROM book_authors WHERE book_id = ?", (book_id,))
        for position, name in enumerate(names):
            await db.execute("INSERT INTO authors (name) VALUES (?) ON CONFLICT(name) DO NOTHING", (name,))
            await db.execute(
                "INSERT INTO book_authors (book_id, author_id, position) "
                "SELECT ?, id, ? FROM authors WHERE name = ?",
                (book_id, position, name),
            )

    @staticmethod
    async def _replace_tags(db: aiosqlite.Connection, book_id: int, names: list[str]) -> None:
        await db.execute("DELETE FROM book_tags WHERE book_id = ?", (book_id,))
        for name in names:
            await db.execute("INSERT INTO tags (name) VALUES (?) ON CONFLICT(name) DO NOTHING", (name,))
            await db.execute(
                "INSERT INTO book_tags (book_id, tag_id) SELECT ?, id FROM tags WHERE name = ?",
                (book_id, name),
            )

    @staticmethod
    async def _replace_reseller_urls(
        db: aiosqlite.Connection, book_id: int, urls: list[ResellerUrl]
    ) -> None:
        await db.execute("DELETE FROM reseller_urls WHERE book_id = ?", (book_id,))
        await db.executemany(
            "INSERT INTO reseller_urls (book_id, url, kind) VALUES (?, ?, ?)",
            [(book_id, u.url, u.kind.value) for u in urls],
        )

    @staticmethod
    async def _authors_by_book(db: aiosqlite.Connection, ids: list[int]) -> dict[int, list[str]]:
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        cursor = await db.execute(
            "SELECT ba.book_id, a.name FROM book_authors ba JOIN authors a ON a.id = ba.author_id "
            f"WHERE ba.book_id IN ({placeholders}) ORDER BY ba.book_id, ba.position",
            ids,
        )
        grouped: dict[int, list[str]] = {}
        for row in await cursor.fetchall():
            grouped.setdefault(row["book_id"], []).append(row["name"])
        return grouped

    @staticmethod
    async def _tags_by_book(db: aiosqlite.Connection, ids: list[int]) -> dict[int, list[str]]:
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        cursor = await db.execute(
            "SELECT bt.book_id, t.name FROM book_tags bt JOIN tags t ON t.id = bt.tag_id "
            f"WHERE bt.book_id IN ({placeholders}) ORDER BY bt.book_id, t.name",
            ids,
        )
        grouped: dict[int, list[str]] = {}
        for row in await cursor.fetchall():
            grouped.setdefault(row["book_id"], []).append(row["name"])
        return grouped
