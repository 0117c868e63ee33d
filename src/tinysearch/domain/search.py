"""Response models for the search surface.

Value objects are immutable (frozen=True) and serialize with the camelCase
field names HTTP clients already rely on (``docIds``, ``docId``).
"""

from pydantic import BaseModel, ConfigDict, Field


class SearchHit(BaseModel):
    """One matched document with an optional preview window."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    doc_id: int = Field(alias="docId")
    snippet: str | None = None


class SearchResponse(BaseModel):
    """Result of evaluating one query against the live index.

    ``results`` is only present when the caller asked for snippets.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    q: str
    mode: str
    terms: list[str] = Field(default_factory=list)
    count: int = 0
    doc_ids: list[int] = Field(default_factory=list, alias="docIds")
    results: list[SearchHit] | None = None

    def to_payload(self) -> dict:
        """JSON-ready dict using wire field names."""
        payload = self.model_dump(by_alias=True)
        if self.results is None:
            payload.pop("results")
        return payload


class IndexStatus(BaseModel):
    """Summary of the live index reported by health checks."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ready: bool
    doc_count: int = Field(default=0, alias="docCount")
    term_count: int = Field(default=0, alias="termCount")
    source: str | None = None
