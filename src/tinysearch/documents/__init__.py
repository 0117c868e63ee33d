"""Document storage and synthetic corpus generation."""

from tinysearch.documents.store import (
    Document,
    InMemoryDocumentSource,
    SqliteDocumentStore,
    generate_documents,
    resolve_content,
)


__all__ = [
    "Document",
    "InMemoryDocumentSource",
    "SqliteDocumentStore",
    "generate_documents",
    "resolve_content",
]
