"""Domain value objects."""

from tinysearch.domain.search import IndexStatus, SearchHit, SearchResponse


__all__ = ["IndexStatus", "SearchHit", "SearchResponse"]
