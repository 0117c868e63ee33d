"""Batched index builder over a keyset-paginated document source.

The builder walks the source in ascending id order, asking each time for the
next ``batch_size`` documents whose id is strictly greater than the last one
applied. A page with no documents ends the scan. Keyset pagination needs no
offset bookkeeping and cannot skip or double-count a document as long as ids
are assigned once and never change, which holds for the document stores used
here.

Pages are consumed strictly in the order they are returned; the builder never
fetches pages in parallel. Any failure leaves the partial index unfinalized
and unpersisted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import logging
from pathlib import Path
import threading
import time
from typing import Any, Protocol

from tinysearch.errors import IndexBuildCancelled, IndexBuildError, InputValidationError, SourceDataError
from tinysearch.observability.metrics import INDEX_BUILD_DOCUMENTS, INDEX_BUILD_LATENCY, track_latency
from tinysearch.observability.tracing import create_span
from tinysearch.search.inverted_index import InvertedIndex
from tinysearch.search.storage import save_index
from tinysearch.search.tokenizer import DEFAULT_OPTIONS, TokenizeOptions, term_frequencies, tokenize


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


@dataclass(frozen=True)
class SourceDocument:
    """Canonical ``(id, content)`` projection handed to the builder."""

    id: int
    content: str | None


class DocumentSource(Protocol):
    """Capability consumed by the builder."""

    def fetch_page(self, after_id: int, limit: int) -> Sequence[Any]:  # pragma: no cover - interface definition
        """Return up to ``limit`` documents with ``id > after_id`` ascending by id."""
        ...


@dataclass(frozen=True)
class IndexBuildOptions:
    """Immutable options describing one index build."""

    batch_size: int = DEFAULT_BATCH_SIZE
    artifact_path: Path | None = None
    start_after_id: int = 0
    tokenize_options: TokenizeOptions = field(default=DEFAULT_OPTIONS)

    def __post_init__(self) -> None:
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise InputValidationError(f"batch_size must be a positive integer, got {self.batch_size!r}")
        if isinstance(self.start_after_id, bool) or not isinstance(self.start_after_id, int) or self.start_after_id < 0:
            raise InputValidationError(f"start_after_id must be a non-negative integer, got {self.start_after_id!r}")
        if self.artifact_path is not None and not isinstance(self.artifact_path, Path):
            object.__setattr__(self, "artifact_path", Path(self.artifact_path))


def coerce_document_id(value: Any) -> int:
    """Return ``value`` as a non-negative int or raise ``SourceDataError``.

    Integers and base-10 digit strings are accepted (database drivers hand
    back BIGINT keys either way); anything else is malformed.
    """

    if isinstance(value, bool):
        raise SourceDataError(f"Document id must be numeric, got {value!r}")
    if isinstance(value, int):
        doc_id = value
    elif isinstance(value, str) and value.strip().isdecimal():
        doc_id = int(value.strip())
    else:
        raise SourceDataError(f"Document id must be a non-negative integer, got {value!r}")
    if doc_id < 0:
        raise SourceDataError(f"Document id must be a non-negative integer, got {doc_id}")
    return doc_id


def _document_fields(document: Any) -> tuple[Any, Any]:
    if isinstance(document, SourceDocument):
        return document.id, document.content
    if isinstance(document, dict):
        if "id" not in document:
            raise SourceDataError(f"Source row is missing an id: {document!r}")
        return document["id"], document.get("content")
    if isinstance(document, (tuple, list)) and len(document) == 2:
        return document[0], document[1]
    raise SourceDataError(f"Unsupported source row type: {type(document).__name__}")


class IndexBuilder:
    """Drive one keyset-paginated build over a document source."""

    def __init__(self, source: DocumentSource, options: IndexBuildOptions | None = None) -> None:
        self.source = source
        self.options = options or IndexBuildOptions()
        self._last_seen_id = self.options.start_after_id
        self._batches = 0

    @property
    def last_seen_id(self) -> int:
        """Id of the last document applied to the index (the scan cursor)."""
        return self._last_seen_id

    @property
    def batches_read(self) -> int:
        return self._batches

    def build(self, cancel_event: threading.Event | None = None) -> InvertedIndex:
        """Run the build to completion and return a finalized index.

        Every call starts a fresh scan from ``options.start_after_id``.
        """

        options = self.options
        self._last_seen_id = options.start_after_id
        self._batches = 0
        index = InvertedIndex()
        started = time.perf_counter()

        with (
            create_span("index.build", attributes={"index.batch_size": options.batch_size}),
            track_latency(INDEX_BUILD_LATENCY),
        ):
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    raise IndexBuildCancelled(
                        f"Index build cancelled after {self._batches} batches",
                        last_seen_id=self._last_seen_id,
                    )

                page = self._fetch_next_page()
                if not page:
                    break

                self._batches += 1
                for document in page:
                    self._apply(index, document)
                INDEX_BUILD_DOCUMENTS.labels().inc(len(page))
                logger.debug(
                    "Indexed batch %d (%d docs, cursor=%d)",
                    self._batches,
                    len(page),
                    self._last_seen_id,
                )

            index.finalize()

            if options.artifact_path is not None:
                save_index(index, options.artifact_path)

        logger.info(
            "Index build complete: docs=%d terms=%d batches=%d duration=%.3fs",
            index.doc_count,
            index.term_count,
            self._batches,
            time.perf_counter() - started,
        )
        return index

    def _fetch_next_page(self) -> Sequence[Any]:
        try:
            page = self.source.fetch_page(self._last_seen_id, self.options.batch_size)
        except Exception as exc:
            logger.error("Failed to read batch after id %d: %s", self._last_seen_id, exc)
            raise IndexBuildError(
                f"Failed to read batch after id {self._last_seen_id}: {exc}",
                last_seen_id=self._last_seen_id,
            ) from exc
        if page is None:
            raise SourceDataError("Document source returned None instead of a page")
        return page

    def _apply(self, index: InvertedIndex, document: Any) -> None:
        raw_id, content = _document_fields(document)
        doc_id = coerce_document_id(raw_id)
        if doc_id <= self._last_seen_id:
            raise SourceDataError(
                f"Document source returned id {doc_id} after {self._last_seen_id}; ids must be strictly ascending"
            )
        tokens = tokenize(content or "", self.options.tokenize_options)
        index.add_document(doc_id, term_frequencies(tokens))
        self._last_seen_id = doc_id


def build_index(source: DocumentSource, options: IndexBuildOptions | None = None) -> InvertedIndex:
    """Build a finalized inverted index from ``source``."""

    return IndexBuilder(source, options).build()
