"""Exception hierarchy shared by the indexing and query engine.

Validation errors are raised before any state is touched, state errors flag
lifecycle misuse (querying without an index, mutating a finalized one), and
build errors wrap failures from the document source.
"""

from __future__ import annotations


class TinySearchError(Exception):
    """Base class for every error raised by tinysearch."""


class InputValidationError(TinySearchError, ValueError):
    """Raised when caller-supplied input is malformed."""


class TokenizerError(InputValidationError):
    """Raised when tokenizer options are invalid."""


class IndexValidationError(InputValidationError):
    """Raised when term-frequency input or a serialized artifact is malformed."""


class QueryValidationError(InputValidationError):
    """Raised when query parameters (mode, limit) are invalid."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class SourceDataError(InputValidationError):
    """Raised when the document source returns malformed or out-of-order rows."""


class DocumentValidationError(InputValidationError):
    """Raised when a document cannot be stored."""


class IndexStateError(TinySearchError, RuntimeError):
    """Raised when an index is used in the wrong lifecycle state."""


class IndexNotReadyError(IndexStateError):
    """Raised when a query arrives before any index was built or loaded."""


class IndexBuildError(TinySearchError, RuntimeError):
    """Raised when reading a batch from the document source fails.

    ``last_seen_id`` is the identifier of the last document applied to the
    discarded partial index so callers can decide where to restart.
    """

    def __init__(self, message: str, *, last_seen_id: int) -> None:
        super().__init__(message)
        self.last_seen_id = last_seen_id


class IndexBuildCancelled(IndexBuildError):
    """Raised when a build is aborted between batches."""
