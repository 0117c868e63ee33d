"""Document storage backing the index builder.

``SqliteDocumentStore`` persists ``(title, body)`` documents with ids assigned
once at insert time and never reused, and exposes the keyset page projection
``(id, content)`` the builder consumes. ``InMemoryDocumentSource`` serves the
same projection from a list, which is how the demo corpus and most tests feed
the builder.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
import hashlib
import logging
from pathlib import Path
import sqlite3
import threading
from typing import Any

from pydantic import BaseModel, ConfigDict

from tinysearch.documents.sqlite_pragmas import apply_store_pragmas
from tinysearch.errors import DocumentValidationError
from tinysearch.search.builder import SourceDocument, coerce_document_id


logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT UNIQUE,
    title TEXT NOT NULL,
    body TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""

_DOCUMENT_COLUMNS = "id, title, body, created_at, external_id"

TOPICS = ("alpha", "beta", "gamma", "delta", "epsilon")
VOCABULARY_SIZE = 2000


class Document(BaseModel):
    """A stored document as returned to API callers."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    body: str
    created_at: datetime
    external_id: str | None = None

    @property
    def content(self) -> str:
        """Indexed text: title and body joined by a single space."""
        return f"{self.title} {self.body}"


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise DocumentValidationError(f"{name} is required")
    return value


def _coerce_created_at(value: Any, name: str = "created_at") -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise DocumentValidationError(f"{name} must be an ISO-8601 timestamp, got {value!r}") from exc
    else:
        raise DocumentValidationError(f"{name} must be an ISO-8601 timestamp, got {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        title=row["title"],
        body=row["body"],
        created_at=row["created_at"],
        external_id=row["external_id"],
    )


class SqliteDocumentStore:
    """SQLite-backed document store with keyset pagination by id.

    One connection is shared behind a lock so the store can be used from the
    request loop and from a rebuild worker thread alike; ``":memory:"`` works
    for tests.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        apply_store_pragmas(self._conn)
        with self._transaction() as conn:
            conn.execute(_SCHEMA)

    @contextmanager
    def _transaction(self):
        with self._lock:
            try:
                yield self._conn
            except BaseException:
                self._conn.rollback()
                raise
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def insert_document(self, title: Any, body: Any, created_at: Any = None) -> Document:
        """Insert one document and return it with its generated id."""
        title = _require_text(title, "title")
        body = _require_text(body, "body")
        timestamp = _coerce_created_at(created_at)
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO documents (title, body, created_at) VALUES (?, ?, ?)",
                (title, body, timestamp.isoformat()),
            )
            doc_id = cursor.lastrowid
        logger.debug("Inserted document %d", doc_id)
        return Document(id=doc_id, title=title, body=body, created_at=timestamp)

    def insert_documents(self, documents: Sequence[Mapping[str, Any]]) -> list[Document]:
        """Insert a batch in one transaction; every entry is validated first.

        Returns the stored documents in ascending id order.
        """
        if isinstance(documents, (str, bytes)) or not isinstance(documents, Sequence):
            raise DocumentValidationError("documents must be an array")
        rows: list[tuple[str, str, datetime]] = []
        for position, entry in enumerate(documents):
            if not isinstance(entry, Mapping):
                raise DocumentValidationError(f"documents[{position}] must be an object")
            rows.append(
                (
                    _require_text(entry.get("title"), f"documents[{position}].title"),
                    _require_text(entry.get("body"), f"documents[{position}].body"),
                    _coerce_created_at(entry.get("created_at"), f"documents[{position}].created_at"),
                )
            )
        if not rows:
            return []

        inserted: list[Document] = []
        with self._transaction() as conn:
            for title, body, timestamp in rows:
                cursor = conn.execute(
                    "INSERT INTO documents (title, body, created_at) VALUES (?, ?, ?)",
                    (title, body, timestamp.isoformat()),
                )
                inserted.append(Document(id=cursor.lastrowid, title=title, body=body, created_at=timestamp))
        logger.info("Inserted %d documents", len(inserted))
        return sorted(inserted, key=lambda document: document.id)

    def upsert_generated(self, documents: Iterable[Mapping[str, str]]) -> int:
        """Insert or refresh synthetic documents keyed by ``external_id``."""
        now = datetime.now(timezone.utc).isoformat()
        payload = [(doc["external_id"], doc["title"], doc["body"], now) for doc in documents]
        with self._transaction() as conn:
            conn.executemany(
                "INSERT INTO documents (external_id, title, body, created_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(external_id) DO UPDATE SET title = excluded.title, body = excluded.body",
                payload,
            )
        return len(payload)

    def get_document(self, doc_id: Any) -> Document | None:
        """Return the document with ``doc_id``, or ``None`` for unknown or malformed ids."""
        try:
            resolved = int(doc_id)
        except (TypeError, ValueError):
            return None
        if isinstance(doc_id, bool) or resolved < 1:
            return None
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
                (resolved,),
            ).fetchone()
        return _row_to_document(row) if row else None

    def fetch_page(self, after_id: int, limit: int) -> list[SourceDocument]:
        """Keyset page of ``(id, content)`` rows with ``id > after_id``."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, title || ' ' || body AS content FROM documents WHERE id > ? ORDER BY id ASC LIMIT ?",
                (after_id, limit),
            ).fetchall()
        return [SourceDocument(id=row["id"], content=row["content"]) for row in rows]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]

    def reset(self) -> None:
        """Delete every document and restart id assignment at 1."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM documents")
            conn.execute("DELETE FROM sqlite_sequence WHERE name = 'documents'")
        logger.info("Document store reset")


def resolve_content(document: Mapping[str, Any]) -> str:
    """Pick the indexable text of a loosely shaped document.

    ``content`` wins, then ``text``; otherwise ``title`` and ``body`` are joined.
    """
    for key in ("content", "text"):
        value = document.get(key)
        if isinstance(value, str):
            return value
    parts = [document.get(key) for key in ("title", "body")]
    return " ".join(part for part in parts if isinstance(part, str) and part)


class InMemoryDocumentSource:
    """List-backed document source sorted by id."""

    def __init__(self, documents: Iterable[Mapping[str, Any] | Document | SourceDocument] = ()) -> None:
        by_id: dict[int, str] = {}
        for document in documents:
            if isinstance(document, (Document, SourceDocument)):
                doc_id, content = document.id, document.content or ""
            else:
                doc_id, content = document.get("id"), resolve_content(document)
            by_id[coerce_document_id(doc_id)] = content
        self._ids = sorted(by_id)
        self._texts = by_id

    def fetch_page(self, after_id: int, limit: int) -> list[SourceDocument]:
        start = bisect.bisect_right(self._ids, after_id)
        return [SourceDocument(id=doc_id, content=self._texts[doc_id]) for doc_id in self._ids[start : start + limit]]

    def texts(self) -> dict[int, str]:
        return dict(self._texts)


class _Sha256Random:
    """Portable deterministic RNG: uint32 draws from chained sha256 digests."""

    def __init__(self, seed: str) -> None:
        self._state = seed.encode("utf-8")
        self._pool = b""

    def random(self) -> float:
        if len(self._pool) < 4:
            self._state = hashlib.sha256(self._state).digest()
            self._pool += self._state
        value = int.from_bytes(self._pool[:4], "little")
        self._pool = self._pool[4:]
        return value / 0x100000000

    def pick(self, items: Sequence[str]) -> str:
        return items[int(self.random() * len(items))]

    def randint(self, low: int, high: int) -> int:
        return low + int(self.random() * (high - low + 1))


def generate_documents(n: int, seed: str = "seed") -> list[dict[str, str]]:
    """Generate ``n`` deterministic synthetic documents.

    Every document mentions one topic term from ``TOPICS`` once in its title
    and up to three times in its body, so topic queries always have hits.
    """
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise ValueError(f"n must be a non-negative integer, got {n!r}")
    rng = _Sha256Random(seed)
    vocab = [f"w{i}" for i in range(VOCABULARY_SIZE)]
    documents: list[dict[str, str]] = []
    for position in range(n):
        topic = rng.pick(TOPICS)
        title_len = rng.randint(4, 10)
        body_len = rng.randint(60, 180)

        title_words = [rng.pick(vocab) for _ in range(title_len)]
        title_words[int(rng.random() * len(title_words))] = topic

        body_words = [rng.pick(vocab) for _ in range(body_len)]
        for _ in range(3):
            body_words[rng.randint(0, len(body_words) - 1)] = topic

        documents.append(
            {
                "external_id": f"doc_{position:08d}",
                "title": " ".join(title_words),
                "body": " ".join(body_words),
            }
        )
    return documents
