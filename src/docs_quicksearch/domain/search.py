"""Domain models for search responses.

Value objects are immutable (frozen=True) so hosts can cache and share them.
"""

from pydantic import BaseModel, ConfigDict, Field

from docs_quicksearch.search.models import PageType


class SearchHit(BaseModel):
    """A single ranked documentation page."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    url: str
    browse_url: str
    page_type: PageType
    score: int


class IndexInfo(BaseModel):
    """Identifies the index that answered a query."""

    model_config = ConfigDict(frozen=True)

    unity_version: str
    docs_version: str
    path: str | None = None
    page_count: int = 0
    term_count: int = 0


class SearchResponse(BaseModel):
    """Ranked hits plus the index they came from.

    ``index`` is None when no index could be resolved.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    results: list[SearchHit] = Field(default_factory=list)
    total_matches: int = 0
    index: IndexInfo | None = None
