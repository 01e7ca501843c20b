"""Search service orchestration layer.

Wires configuration, versioned index resolution and the query engine
behind one API for hosts and the CLI.
"""

from __future__ import annotations

import logging

from docs_quicksearch.config import Settings
from docs_quicksearch.domain.search import IndexInfo, SearchHit, SearchResponse
from docs_quicksearch.search.models import DocsIndex
from docs_quicksearch.search.query_engine import QueryEngine, rank_results, tokenize_query
from docs_quicksearch.search.storage import LoadedIndex, VersionedIndexStore
from docs_quicksearch.search.version import MajorMinorVersion


logger = logging.getLogger(__name__)

# Resolving against a version newer than any release selects the newest index
LATEST_VERSION = MajorMinorVersion(9999, 9999)


def browse_url(url: str, base_url: str) -> str:
    """Turn a page url into a browsable online documentation link."""
    return f"{base_url.rstrip('/')}/{url}.html"


class DocsSearchService:
    """High-level docs search for one target documentation version."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: VersionedIndexStore | None = None,
        target_version: MajorMinorVersion | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store or VersionedIndexStore(self.settings.get_search_roots())
        self.target_version = target_version or self.settings.get_target_version()
        self._loaded: LoadedIndex | None = None
        self.engine = QueryEngine(resolver=self._resolve_index)

    @property
    def loaded_path(self) -> str | None:
        return str(self._loaded.path) if self._loaded else None

    def reload(self, target_version: MajorMinorVersion | None = None) -> IndexInfo | None:
        """Resolve the index again, e.g. after the environment changed.

        The active index is replaced by the new result, including by "none".
        """
        if target_version is not None:
            self.target_version = target_version
        self.engine.load(self._resolve_index())
        return self.index_info()

    def index_info(self) -> IndexInfo | None:
        index = self.engine.index
        if index is None:
            return None
        return _index_info(index, self.loaded_path)

    def search(self, query: str, max_results: int = 20) -> SearchResponse:
        """Tokenize ``query``, score matching pages and return the best ``max_results``."""
        tokens = tokenize_query(query)
        if not tokens and self.engine.index is None:
            # The engine skips resolution for blank queries; resolve so ``index`` reflects the roots
            self.engine.resolve()
        pages = self.engine.search(tokens, query)
        ranked = rank_results(pages, max_results)
        base_url = self.settings.docs_base_url

        hits = [
            SearchHit(
                title=page.title,
                description=page.description,
                url=page.url,
                browse_url=browse_url(page.url, base_url),
                page_type=page.type,
                score=page.score,
            )
            for page in ranked
        ]
        logger.debug("Search %r returned %d of %d matches", query, len(hits), len(pages))
        return SearchResponse(query=query, results=hits, total_matches=len(pages), index=self.index_info())

    def _resolve_index(self) -> DocsIndex | None:
        loaded = self.store.resolve(self.target_version or LATEST_VERSION)
        self._loaded = loaded
        return loaded.index if loaded is not None else None


def _index_info(index: DocsIndex, path: str | None) -> IndexInfo:
    return IndexInfo(
        unity_version=str(index.unity_version),
        docs_version=index.docs_version,
        path=path,
        page_count=index.page_count,
        term_count=index.term_count,
    )
