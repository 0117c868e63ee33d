"""Service layer wiring the engine to its callers."""

from tinysearch.service_layer.search_service import SearchService


__all__ = ["SearchService"]
