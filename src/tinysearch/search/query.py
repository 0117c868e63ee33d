"""Boolean AND/OR query evaluation over postings sets.

Queries are whitespace separated terms combined either by intersection
(``and``, the default) or union (``or``). The evaluator is a pure function of
the query and a postings lookup: it performs no I/O and never mutates the
sets handed to it by the lookup.
"""

from __future__ import annotations

from collections.abc import Set as AbstractSet
from dataclasses import dataclass, field
from enum import Enum
import math
from typing import Any, Protocol

from tinysearch.errors import QueryValidationError
from tinysearch.search.tokenizer import DEFAULT_OPTIONS, TokenizeOptions, tokenize


class QueryMode(str, Enum):
    AND = "and"
    OR = "or"


class PostingsLookup(Protocol):
    """Anything that can project a term onto the ids of documents containing it."""

    def get_postings(self, term: str) -> AbstractSet[int]:  # pragma: no cover - interface definition
        ...


@dataclass(frozen=True)
class Query:
    terms: tuple[str, ...]
    mode: QueryMode = QueryMode.AND
    limit: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.mode, QueryMode):
            try:
                object.__setattr__(self, "mode", QueryMode(self.mode))
            except ValueError as exc:
                raise QueryValidationError("invalid_mode", "mode must be and|or") from exc
        if self.limit is not None and (
            isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 0
        ):
            raise QueryValidationError("invalid_limit", "limit must be a non-negative integer")
        object.__setattr__(self, "terms", tuple(self.terms))


@dataclass(frozen=True)
class QueryResult:
    terms: tuple[str, ...]
    mode: QueryMode
    doc_ids: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.doc_ids)


def parse_mode(raw: Any) -> QueryMode:
    """Resolve a mode selector; empty or missing means ``and``."""

    if isinstance(raw, QueryMode):
        return raw
    if raw is None:
        return QueryMode.AND
    if not isinstance(raw, str):
        raise QueryValidationError("invalid_mode", "mode must be and|or")
    value = raw.strip().lower()
    if value in ("", "and"):
        return QueryMode.AND
    if value == "or":
        return QueryMode.OR
    raise QueryValidationError("invalid_mode", "mode must be and|or")


def validate_limit(raw: Any) -> int | None:
    """Return the result limit, or ``None`` when no limit was supplied.

    Accepts integers, floats and numeric strings. Fractional limits truncate
    toward zero, so ``2.9`` keeps two results.
    """

    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise QueryValidationError("invalid_limit", "limit must be a non-negative number")
    if isinstance(raw, int):
        value: float = raw
    elif isinstance(raw, float):
        value = raw
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError as exc:
            raise QueryValidationError("invalid_limit", "limit must be a non-negative number") from exc
    else:
        raise QueryValidationError("invalid_limit", "limit must be a non-negative number")

    if not math.isfinite(value) or value < 0:
        raise QueryValidationError("invalid_limit", "limit must be a non-negative number")
    return int(value)


def parse_query_terms(q: str | None) -> tuple[str, ...]:
    """Split a raw query string on whitespace; blank input yields no terms."""

    if not q:
        return ()
    return tuple(q.split())


def _intersect(left: AbstractSet[int], right: AbstractSet[int]) -> set[int]:
    # Look up in the larger set while iterating the smaller one.
    if len(left) > len(right):
        left, right = right, left
    return {doc_id for doc_id in left if doc_id in right}


def evaluate(query: Query, lookup: PostingsLookup) -> QueryResult:
    """Combine the postings of every query term according to ``query.mode``."""

    if not query.terms:
        return QueryResult(terms=(), mode=query.mode, doc_ids=[])

    accumulator: set[int] | None = None
    for term in query.terms:
        postings = lookup.get_postings(term)
        if accumulator is None:
            accumulator = set(postings)
            continue
        if query.mode is QueryMode.OR:
            accumulator = accumulator | set(postings)
        else:
            accumulator = _intersect(accumulator, postings)
            if not accumulator:
                break

    doc_ids = sorted(int(doc_id) for doc_id in accumulator or ())
    if query.limit is not None:
        doc_ids = doc_ids[: query.limit]
    return QueryResult(terms=query.terms, mode=query.mode, doc_ids=doc_ids)


def search(q: str | None, lookup: PostingsLookup, mode: Any = "and", limit: Any = None) -> QueryResult:
    """Parse and validate raw query parameters, then evaluate them."""

    query = Query(terms=parse_query_terms(q), mode=parse_mode(mode), limit=validate_limit(limit))
    return evaluate(query, lookup)


class NormalizingPostingsLookup:
    """Adapter that runs query terms through the index tokenizer.

    A raw term such as ``"Fox,"`` resolves to the postings of ``fox``. A term
    that splits into several tokens (``"state-of-the-art"``) resolves to the
    documents containing all of them; a term with no tokens matches nothing.
    """

    def __init__(self, index: PostingsLookup, options: TokenizeOptions | None = None) -> None:
        self.index = index
        self.options = options or DEFAULT_OPTIONS

    def get_postings(self, term: str) -> set[int]:
        tokens = tokenize(term, self.options)
        if not tokens:
            return set()
        result: set[int] | None = None
        for token in tokens:
            postings = self.index.get_postings(token)
            result = set(postings) if result is None else _intersect(result, postings)
            if not result:
                return set()
        return result or set()
