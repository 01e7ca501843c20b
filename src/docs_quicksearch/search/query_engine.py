"""Scored token search over an immutable ``DocsIndex``.

Scoring, per page that matched enough tokens:

* base score is the number of distinct query tokens that matched the page
* per token, in query order, until a token matches the title:

  - title hit: +50, +500 when it starts the title or follows ``.``,
    +500 when it ends the title or precedes ``.``
  - description hit: ``max(20 - position, 10)``

* whole query: exact title +10000, else title hit after position 0
  ``max(200 - position, 100)``, else description hit ``max(50 - position, 25)``
* obsolete pages: -100000
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
import dataclasses
import logging
import threading

from docs_quicksearch.observability.context import bind_docs_version
from docs_quicksearch.observability.metrics import INDEX_PAGE_COUNT, SEARCH_LATENCY, track_latency
from docs_quicksearch.observability.tracing import create_span
from docs_quicksearch.search.models import DocsIndex, Page, PageType


logger = logging.getLogger(__name__)

PREFIX_MIN_LENGTH = 3

TITLE_MATCH_SCORE = 50
TITLE_BOUNDARY_SCORE = 500
DESCRIPTION_MATCH_BASE = 20
DESCRIPTION_MATCH_MIN = 10
EXACT_TITLE_SCORE = 10000
QUERY_TITLE_BASE = 200
QUERY_TITLE_MIN = 100
QUERY_DESCRIPTION_BASE = 50
QUERY_DESCRIPTION_MIN = 25
OBSOLETE_PENALTY = 100000

_SEPARATOR = "."

IndexResolver = Callable[[], DocsIndex | None]


def tokenize_query(text: str) -> list[str]:
    """Split a raw query into lowercase whitespace-separated tokens."""
    return text.lower().split()


def find_term_entries(index: DocsIndex, token: str) -> list[int]:
    """Return positions in ``index.index_keys`` matching ``token``.

    Keys equal to the token always match. Tokens of at least
    ``PREFIX_MIN_LENGTH`` characters also match every key they prefix.
    """
    keys = index.index_keys
    prefix_search = len(token) >= PREFIX_MIN_LENGTH
    lo, hi = 0, len(keys) - 1
    while lo <= hi:
        mid = (lo + hi) // 2
        key = keys[mid]
        if key == token or (prefix_search and key.startswith(token)):
            if not prefix_search:
                return [mid]
            # Keys sharing the prefix are contiguous around the landing point
            left = mid
            while left > 0 and keys[left - 1].startswith(token):
                left -= 1
            right = mid
            while right + 1 < len(keys) and keys[right + 1].startswith(token):
                right += 1
            return list(range(left, right + 1))
        if key < token:
            lo = mid + 1
        else:
            hi = mid - 1
    return []


def rank_results(pages: Iterable[Page], limit: int | None = None) -> list[Page]:
    """Sort scored pages by descending score, then title."""
    ranked = sorted(pages, key=lambda page: (-page.score, page.title))
    if limit is not None:
        return ranked[:limit]
    return ranked


class QueryEngine:
    """Answer searches against the active index.

    The active index is swapped as a whole; a search reads the reference once
    and works on that snapshot.
    """

    def __init__(self, resolver: IndexResolver | None = None, index: DocsIndex | None = None) -> None:
        self._resolver = resolver
        self._index = index
        self._load_lock = threading.Lock()

    @property
    def index(self) -> DocsIndex | None:
        return self._index

    def load(self, index: DocsIndex | None) -> None:
        """Replace the active index."""
        with self._load_lock:
            self._index = index
        if index is not None:
            INDEX_PAGE_COUNT.labels(docs_version=index.docs_version).set(index.page_count)

    def resolve(self) -> DocsIndex | None:
        """Ask the resolver for an index and make it active; returns the active index."""
        if self._resolver is None:
            return self._index
        with self._load_lock:
            if self._index is not None:
                return self._index
            index = self._resolver()
            self._index = index
        if index is not None:
            INDEX_PAGE_COUNT.labels(docs_version=index.docs_version).set(index.page_count)
        return index

    def search(self, tokens: Sequence[str], raw_query: str) -> list[Page]:
        """Return every page matching ``tokens`` with its score set.

        Results are not sorted. Missing indexes and empty queries yield an
        empty list.
        """
        tokens = [token for token in tokens if token]
        if not tokens:
            return []

        index = self._index
        if index is None:
            index = self.resolve()
            if index is None:
                return []

        bind_docs_version(index.docs_version)
        with (
            create_span("search.query", attributes={"search.token_count": len(tokens)}) as span,
            track_latency(SEARCH_LATENCY, docs_version=index.docs_version),
        ):
            results = self._search(index, tokens, raw_query.strip())
            span.set_attribute("search.result_count", len(results))
        return results

    def _search(self, index: DocsIndex, tokens: list[str], query: str) -> list[Page]:
        hits: dict[int, int] = {}
        min_score = len(tokens)
        for token in tokens:
            if token in index.common:
                min_score -= 1
                continue
            matched_pages: set[int] = set()
            for position in find_term_entries(index, token):
                matched_pages.update(index.index_values[position].pages)
            for page_index in matched_pages:
                hits[page_index] = hits.get(page_index, 0) + 1

        results: list[Page] = []
        for page_index, hit_count in hits.items():
            if hit_count < min_score:
                continue
            page = index.pages[page_index]
            score = hit_count + score_page(page, tokens, query)
            results.append(dataclasses.replace(page, score=score))

        logger.debug("Query %r matched %d pages (min score %d)", query, len(results), min_score)
        return results


def score_page(page: Page, tokens: Sequence[str], query: str) -> int:
    """Relevance bonus of ``page`` for the query, excluding the hit count."""
    title = page.title.lower()
    description = page.description.lower()
    score = 0

    for token in tokens:
        token = token.lower()
        placement = title.find(token)
        if placement >= 0:
            score += TITLE_MATCH_SCORE
            if placement == 0 or title[placement - 1] == _SEPARATOR:
                score += TITLE_BOUNDARY_SCORE
            end = placement + len(token)
            if end == len(title) or title[end] == _SEPARATOR:
                score += TITLE_BOUNDARY_SCORE
            break

        placement = description.find(token)
        if placement >= 0:
            score += max(DESCRIPTION_MATCH_BASE - placement, DESCRIPTION_MATCH_MIN)

    if query:
        query = query.lower()
        placement = title.find(query)
        if placement == 0 and len(query) == len(title):
            score += EXACT_TITLE_SCORE
        elif placement > 0:
            score += max(QUERY_TITLE_BASE - placement, QUERY_TITLE_MIN)
        else:
            placement = description.find(query)
            if placement >= 0:
                score += max(QUERY_DESCRIPTION_BASE - placement, QUERY_DESCRIPTION_MIN)

    if page.type is PageType.OBSOLETE:
        score -= OBSOLETE_PENALTY
    return score
