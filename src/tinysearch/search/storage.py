"""Persistence helpers for serialized index artifacts.

Artifacts are written to a temporary sibling and moved into place with
``Path.replace`` so readers only ever observe a complete previous artifact or
a complete new one.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from tinysearch.errors import IndexStateError
from tinysearch.search.inverted_index import InvertedIndex


logger = logging.getLogger(__name__)


def artifact_digest(data: bytes) -> str:
    """Return the sha256 hex digest of artifact bytes."""
    return hashlib.sha256(data).hexdigest()


def _atomic_write_bytes(path: Path, payload: bytes) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp") if path.suffix else path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_bytes(payload)
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def save_index(index: InvertedIndex, path: str | Path) -> Path:
    """Serialize a finalized index to ``path`` and return the resolved path."""

    if not index.is_finalized:
        raise IndexStateError("Only finalized indexes can be persisted")
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = index.serialize()
    _atomic_write_bytes(target, payload)
    logger.info(
        "Persisted index artifact %s (docs=%d terms=%d sha256=%s)",
        target,
        index.doc_count,
        index.term_count,
        artifact_digest(payload)[:12],
    )
    return target


def load_index(path: str | Path) -> InvertedIndex:
    """Restore an index from an artifact written by :func:`save_index`."""

    source = Path(path).expanduser()
    index = InvertedIndex.deserialize(source.read_bytes())
    logger.info("Loaded index artifact %s (docs=%d terms=%d)", source, index.doc_count, index.term_count)
    return index
