"""In-memory inverted index with deterministic serialization.

The index maps each term to an append-only list of ``Posting`` records.
Lists stay in insertion order while documents are being added and are
sorted by ``doc_id`` exactly once by :meth:`InvertedIndex.finalize`.

The serialized artifact is the wire contract consumed by downstream tooling::

    {"docCount": 3, "postings": {"brown": [{"docId": 1, "tf": 1}], ...}}

Terms are emitted in lexicographic order and each postings list in the
order established by ``finalize()``, so two builds over identical content
produce byte-identical artifacts no matter how the documents were read.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

import orjson

from tinysearch.errors import IndexStateError, IndexValidationError
from tinysearch.search.models import Posting, is_doc_id, is_term_frequency


logger = logging.getLogger(__name__)


class InvertedIndex:
    """Term -> postings list mapping built one document at a time."""

    def __init__(self) -> None:
        self.doc_count = 0
        self.postings: dict[str, list[Posting]] = {}
        self._finalized = False

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def term_count(self) -> int:
        return len(self.postings)

    def add_document(self, doc_id: int, tf_by_term: Mapping[str, int]) -> None:
        """Append one posting per term of a single document.

        Documents may arrive in any order and ids need not be contiguous.
        The whole map is validated before any posting is appended.
        """

        if self._finalized:
            raise IndexStateError("Cannot add documents to a finalized index")
        if not is_doc_id(doc_id):
            raise IndexValidationError(f"doc_id must be a non-negative integer, got {doc_id!r}")
        if not isinstance(tf_by_term, Mapping):
            raise IndexValidationError(f"term frequencies must be a mapping, got {type(tf_by_term).__name__}")

        entries = list(tf_by_term.items())
        for term, tf in entries:
            if not isinstance(term, str) or not term:
                raise IndexValidationError(f"terms must be non-empty strings, got {term!r}")
            if not is_term_frequency(tf):
                raise IndexValidationError(f"tf for term '{term}' must be a positive integer, got {tf!r}")

        for term, tf in entries:
            posting = Posting(doc_id=doc_id, tf=tf)
            postings = self.postings.get(term)
            if postings is None:
                self.postings[term] = [posting]
            else:
                postings.append(posting)
        self.doc_count += 1

    def finalize(self) -> None:
        """Sort every postings list by doc id. Safe to call more than once."""

        for postings in self.postings.values():
            postings.sort(key=lambda posting: posting.doc_id)
        self._finalized = True

    def postings_for(self, term: str) -> list[Posting]:
        return list(self.postings.get(term, ()))

    def get_postings(self, term: str) -> set[int]:
        """Return the set of document ids containing ``term``."""
        return {posting.doc_id for posting in self.postings.get(term, ())}

    def terms(self) -> list[str]:
        return sorted(self.postings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "docCount": self.doc_count,
            "postings": {term: [posting.to_dict() for posting in self.postings[term]] for term in self.terms()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvertedIndex:
        """Rebuild an index from its artifact form without re-sorting."""

        if not isinstance(data, Mapping):
            raise IndexValidationError("Index artifact must be a JSON object")
        doc_count = data.get("docCount", 0)
        if not is_doc_id(doc_count):
            raise IndexValidationError(f"docCount must be a non-negative integer, got {doc_count!r}")
        raw_postings = data.get("postings", {})
        if not isinstance(raw_postings, Mapping):
            raise IndexValidationError("postings must be an object mapping term -> list")

        index = cls()
        index.doc_count = doc_count
        for term, entries in raw_postings.items():
            if not isinstance(entries, list):
                raise IndexValidationError(f"postings for '{term}' must be a list")
            index.postings[term] = [Posting.from_dict(entry) for entry in entries]
        index._finalized = True
        return index

    def serialize(self) -> bytes:
        """Return the deterministic artifact bytes (compact UTF-8 JSON)."""

        if not self._finalized:
            logger.debug("Serializing a non-finalized index; postings keep insertion order")
        return orjson.dumps(self.to_dict())

    @classmethod
    def deserialize(cls, data: bytes | bytearray | memoryview | str) -> InvertedIndex:
        try:
            payload = orjson.loads(data)
        except orjson.JSONDecodeError as exc:
            raise IndexValidationError(f"Index artifact is not valid JSON: {exc}") from exc
        return cls.from_dict(payload)

    @classmethod
    def from_term_frequencies(cls, documents: Iterable[tuple[int, Mapping[str, int]]]) -> InvertedIndex:
        """Build and finalize an index from ``(doc_id, tf_map)`` pairs."""

        index = cls()
        for doc_id, tf_by_term in documents:
            index.add_document(doc_id, tf_by_term)
        index.finalize()
        return index
