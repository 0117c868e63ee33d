"""Search service orchestration layer.

Owns the single live index a serving process answers queries from. The index
is passed in explicitly (built, loaded, or seeded) and replaced by swapping a
reference once a replacement is fully built, so in-flight queries keep reading
the index they started with.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import logging
from pathlib import Path
import threading
from typing import Any

from tinysearch.documents.store import InMemoryDocumentSource
from tinysearch.domain.search import IndexStatus, SearchHit, SearchResponse
from tinysearch.errors import IndexNotReadyError, IndexStateError, QueryValidationError
from tinysearch.observability.metrics import INDEX_DOC_COUNT, SEARCH_LATENCY, SEARCH_REQUESTS, track_latency
from tinysearch.observability.tracing import create_span
from tinysearch.search.builder import DocumentSource, IndexBuilder, IndexBuildOptions
from tinysearch.search.inverted_index import InvertedIndex
from tinysearch.search.query import (
    NormalizingPostingsLookup,
    Query,
    evaluate,
    parse_mode,
    parse_query_terms,
    validate_limit,
)
from tinysearch.search.snippet import highlight_terms, snippet_for
from tinysearch.search.storage import load_index
from tinysearch.search.tokenizer import DEFAULT_OPTIONS, TokenizeOptions


logger = logging.getLogger(__name__)

DocumentLookup = Callable[[int], str | None]

HIGHLIGHT_STYLES = ("plain", "html")


class SearchService:
    """High-level search API over one owned inverted index."""

    def __init__(
        self,
        *,
        tokenize_options: TokenizeOptions | None = None,
        document_lookup: DocumentLookup | None = None,
    ) -> None:
        """Initialize an empty service.

        Args:
            tokenize_options: Options shared by index builds and query terms
            document_lookup: Resolves a doc id to its text for snippets when the
                index was not seeded in memory
        """
        self.tokenize_options = tokenize_options or DEFAULT_OPTIONS
        self.document_lookup = document_lookup
        self._swap_lock = threading.Lock()
        self._index: InvertedIndex | None = None
        self._texts: Mapping[int, str] = {}
        self._source: str | None = None

    @property
    def index(self) -> InvertedIndex | None:
        return self._index

    @property
    def is_ready(self) -> bool:
        return self._index is not None

    def install(self, index: InvertedIndex, *, texts: Mapping[int, str] | None = None, source: str = "memory") -> None:
        """Make ``index`` the live index."""
        if not index.is_finalized:
            raise IndexStateError("Only finalized indexes can be installed")
        with self._swap_lock:
            self._index = index
            self._texts = dict(texts or {})
            self._source = source
        INDEX_DOC_COUNT.labels().set(index.doc_count)
        logger.info("Installed %s index (docs=%d terms=%d)", source, index.doc_count, index.term_count)

    def rebuild(
        self,
        source: DocumentSource,
        options: IndexBuildOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> InvertedIndex:
        """Build a fresh index from ``source`` and swap it in on success.

        A failed or cancelled build raises and leaves the current index live.
        """
        opts = options or IndexBuildOptions(tokenize_options=self.tokenize_options)
        index = IndexBuilder(source, opts).build(cancel_event)
        self.install(index, source="rebuild")
        return index

    def load_artifact(self, path: str | Path) -> InvertedIndex:
        index = load_index(path)
        self.install(index, source="artifact")
        return index

    def index_documents(self, documents: Iterable[Mapping[str, Any]]) -> InvertedIndex:
        """Index a small in-memory corpus and keep its texts for snippets."""
        source = InMemoryDocumentSource(documents)
        index = IndexBuilder(source, IndexBuildOptions(tokenize_options=self.tokenize_options)).build()
        self.install(index, texts=source.texts(), source="memory")
        return index

    def _text_for(self, doc_id: int, texts: Mapping[int, str]) -> str | None:
        if doc_id in texts:
            return texts[doc_id]
        if self.document_lookup is not None:
            return self.document_lookup(doc_id)
        return None

    def search(
        self,
        q: str | None,
        mode: Any = "and",
        limit: Any = None,
        *,
        include_snippets: bool = False,
        highlight: str | None = None,
    ) -> SearchResponse:
        """Validate parameters, evaluate the query, and shape the response.

        Raises:
            QueryValidationError: Unknown mode, malformed limit or unknown highlight style
            IndexNotReadyError: No index has been installed yet
        """
        query = Query(terms=parse_query_terms(q), mode=parse_mode(mode), limit=validate_limit(limit))
        if highlight and highlight not in HIGHLIGHT_STYLES:
            raise QueryValidationError("invalid_highlight", f"highlight must be one of {', '.join(HIGHLIGHT_STYLES)}")

        with self._swap_lock:
            index, texts = self._index, self._texts
        if index is None:
            raise IndexNotReadyError("Search index not initialized; build or load an index first")

        lookup = NormalizingPostingsLookup(index, self.tokenize_options)
        with (
            create_span("search.query", attributes={"search.mode": query.mode.value, "search.terms": len(query.terms)}),
            track_latency(SEARCH_LATENCY, mode=query.mode.value),
        ):
            result = evaluate(query, lookup)
        SEARCH_REQUESTS.labels(mode=query.mode.value).inc()
        logger.debug("Query %r (%s) matched %d documents", q, query.mode.value, result.count)

        hits = None
        if include_snippets:
            terms = list(result.terms)
            hits = []
            for doc_id in result.doc_ids:
                snippet = snippet_for(self._text_for(doc_id, texts) or "", terms)
                if highlight:
                    snippet = highlight_terms(snippet, terms, style=highlight)
                hits.append(SearchHit(doc_id=doc_id, snippet=snippet))

        return SearchResponse(
            q=q or "",
            mode=result.mode.value,
            terms=list(result.terms),
            count=result.count,
            doc_ids=result.doc_ids,
            results=hits,
        )

    def status(self) -> IndexStatus:
        index = self._index
        if index is None:
            return IndexStatus(ready=False)
        return IndexStatus(ready=True, doc_count=index.doc_count, term_count=index.term_count, source=self._source)
