"""Search data models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tinysearch.errors import IndexValidationError


def is_doc_id(value: Any) -> bool:
    """Return True for non-negative integers (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def is_term_frequency(value: Any) -> bool:
    """Return True for positive integers (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True, slots=True)
class Posting:
    """A posting records that a term occurs ``tf`` times in document ``doc_id``."""

    doc_id: int
    tf: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"docId": self.doc_id, "tf": self.tf}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Posting:
        """Create from dictionary, rejecting malformed entries."""
        if not isinstance(data, Mapping):
            raise IndexValidationError(f"Posting must be an object, got {type(data).__name__}")
        doc_id = data.get("docId")
        tf = data.get("tf")
        if not is_doc_id(doc_id):
            raise IndexValidationError(f"Posting docId must be a non-negative integer, got {doc_id!r}")
        if not is_term_frequency(tf):
            raise IndexValidationError(f"Posting tf must be a positive integer, got {tf!r}")
        return cls(doc_id=doc_id, tf=tf)
