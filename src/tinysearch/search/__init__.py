"""Indexing and query engine: tokenizer, inverted index, builder, evaluator."""

from tinysearch.search.builder import (
    DocumentSource,
    IndexBuilder,
    IndexBuildOptions,
    SourceDocument,
    build_index,
)
from tinysearch.search.inverted_index import InvertedIndex
from tinysearch.search.models import Posting
from tinysearch.search.query import (
    NormalizingPostingsLookup,
    PostingsLookup,
    Query,
    QueryMode,
    QueryResult,
    evaluate,
    parse_mode,
    search,
    validate_limit,
)
from tinysearch.search.storage import load_index, save_index
from tinysearch.search.tokenizer import TokenizeOptions, normalize_text, term_frequencies, tokenize


__all__ = [
    "DocumentSource",
    "IndexBuildOptions",
    "IndexBuilder",
    "InvertedIndex",
    "NormalizingPostingsLookup",
    "Posting",
    "PostingsLookup",
    "Query",
    "QueryMode",
    "QueryResult",
    "SourceDocument",
    "TokenizeOptions",
    "build_index",
    "evaluate",
    "load_index",
    "normalize_text",
    "parse_mode",
    "save_index",
    "search",
    "term_frequencies",
    "tokenize",
    "validate_limit",
]
