"""Offline index builder for Unity-style offline documentation.

The documentation toolchain ships a raw search payload
(``docdata/index.json``) with four structures:

* ``pages`` - ``[url, title]`` per page
* ``info`` - per page, first element is the short description
* ``common`` - stop words (keys of a mapping)
* ``searchIndex`` - term -> list of page indices

``IndexBuilder`` turns that payload into a ``DocsIndex``: terms are co-sorted
into parallel key/value sequences, pages are typed with ``PageClassifier``,
and the documentation version is read from the reference landing page.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
import threading
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docs_quicksearch.config import Settings
from docs_quicksearch.observability.context import bind_docs_version
from docs_quicksearch.observability.metrics import BUILD_PAGES
from docs_quicksearch.observability.tracing import create_span
from docs_quicksearch.search.classifier import DEFAULT_RULES, ClassificationIssue, ClassificationRules, PageClassifier
from docs_quicksearch.search.models import DocsIndex, Entry, Page, PageType
from docs_quicksearch.search.storage import save_index
from docs_quicksearch.search.version import UNKNOWN_VERSION, MajorMinorVersion, VersionParseError


logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"Publication: (\d+\.\d+\w?)-(\w+)")
UNKNOWN_DOCS_VERSION = "unknown"


class BuildInputError(RuntimeError):
    """Raised when the raw search data is missing or malformed."""


class BuildCancelledError(RuntimeError):
    """Raised when a build observes a cancellation request."""


class RawSearchData(BaseModel):
    """Shape of the toolchain's raw search payload."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    pages: list[list[str]]
    info: list[list[Any]]
    common: dict[str, Any]
    search_index: dict[str, list[int]] = Field(alias="searchIndex")

    @field_validator("pages")
    @classmethod
    def _check_pages(cls, value: list[list[str]]) -> list[list[str]]:
        for position, page in enumerate(value):
            if len(page) < 2:
                raise ValueError(f"page {position} must provide [url, title]")
        return value

    @field_validator("info")
    @classmethod
    def _check_info(cls, value: list[list[Any]]) -> list[list[Any]]:
        for position, info in enumerate(value):
            if not info:
                raise ValueError(f"info {position} is empty")
        return value


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of a complete offline build."""

    output_path: Path
    unity_version: MajorMinorVersion
    docs_version: str
    pages_indexed: int
    terms_indexed: int
    duration_s: float
    issues: tuple[ClassificationIssue, ...] = ()
    type_counts: Mapping[PageType, int] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "warning")


def parse_raw_search_data(payload: bytes | str) -> RawSearchData:
    """Validate the raw search JSON payload.

    Raises:
        BuildInputError: if any required structure is absent or malformed.
    """
    try:
        return RawSearchData.model_validate_json(payload)
    except ValidationError as exc:
        raise BuildInputError(f"Failed to parse search index: {exc}") from exc


def extract_docs_version(html: str) -> tuple[MajorMinorVersion, str]:
    """Read ``(version, revision)`` from the documentation landing page.

    Raises:
        VersionParseError: if the publication marker is missing or malformed.
    """
    match = VERSION_PATTERN.search(html)
    if match is None:
        raise VersionParseError("Publication marker not found")
    return MajorMinorVersion.parse(match.group(1)), match.group(2)


class IndexBuilder:
    """Coordinate raw data ingestion, page typing and persistence for one build."""

    def __init__(self, settings: Settings | None = None, *, rules: ClassificationRules = DEFAULT_RULES) -> None:
        self.settings = settings or Settings()
        self.rules = rules
        # Classification issues from the most recent completed build
        self.issues: tuple[ClassificationIssue, ...] = ()

    def build(
        self,
        raw: RawSearchData,
        docs_root: str | Path,
        *,
        version_html: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> DocsIndex:
        """Build an in-memory index from validated raw data.

        Args:
            raw: Validated raw search payload
            docs_root: Offline documentation root used to read page HTML
            version_html: Landing page contents holding the publication marker;
                the version stays unknown when omitted or unparseable
            cancel_event: Checked before every page; when set the build stops
                with ``BuildCancelledError``

        Returns:
            The index. Pages that could not be typed are listed in ``issues``.
        """
        if len(raw.info) < len(raw.pages):
            raise BuildInputError(f"info has {len(raw.info)} entries for {len(raw.pages)} pages")

        page_count = len(raw.pages)
        index_keys, index_values = self._sorted_terms(raw.search_index, page_count)

        classifier = PageClassifier(Path(docs_root) / self.settings.docs_url_prefix, self.rules)
        type_cache: dict[str, PageType] = {}
        pages: list[Page] = []
        for position, (raw_page, raw_info) in enumerate(zip(raw.pages, raw.info)):
            if cancel_event is not None and cancel_event.is_set():
                raise BuildCancelledError(f"Build cancelled after {position} of {page_count} pages")
            url, title = raw_page[0], raw_page[1]
            pages.append(
                Page(
                    title=title,
                    description=_description_of(raw_info),
                    url=url,
                    type=classifier.classify(url, type_cache),
                )
            )

        unity_version, docs_version = self._resolve_version(version_html)
        index = DocsIndex(
            pages=tuple(pages),
            common=frozenset(raw.common),
            index_keys=index_keys,
            index_values=index_values,
            unity_version=unity_version,
            docs_version=docs_version,
        )
        self.issues = tuple(classifier.issues)
        return index

    def build_from_docs(
        self,
        docs_root: str | Path,
        output_dir: str | Path | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> IndexBuildResult:
        """Run a complete build for an offline documentation folder and write the artifact.

        Raises:
            BuildInputError: if the raw search data is missing or malformed.
            BuildCancelledError: if ``cancel_event`` was set; nothing is written.
        """
        docs_root = Path(docs_root)
        target_dir = Path(output_dir) if output_dir is not None else self.settings.index_output_dir
        start = time.perf_counter()

        with create_span("index.build", attributes={"build.docs_root": str(docs_root)}) as span:
            raw_path = docs_root / self.settings.docs_index_path
            try:
                raw_payload = raw_path.read_bytes()
            except OSError as exc:
                raise BuildInputError(f"Invalid docs path: could not read search data at {raw_path}: {exc}") from exc
            raw = parse_raw_search_data(raw_payload)

            version_path = docs_root / self.settings.docs_version_path
            try:
                version_html = version_path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Could not read version page %s: %s", version_path, exc)
                version_html = None

            index = self.build(raw, docs_root, version_html=version_html, cancel_event=cancel_event)
            bind_docs_version(index.docs_version)
            output_path = save_index(index, target_dir)

            type_counts = Counter(page.type for page in index.pages)
            for page_type, count in type_counts.items():
                BUILD_PAGES.labels(page_type=page_type.value).inc(count)

            span.set_attribute("build.page_count", index.page_count)
            span.set_attribute("build.term_count", index.term_count)
            span.set_attribute("build.issue_count", len(self.issues))

        result = IndexBuildResult(
            output_path=output_path,
            unity_version=index.unity_version,
            docs_version=index.docs_version,
            pages_indexed=index.page_count,
            terms_indexed=index.term_count,
            duration_s=time.perf_counter() - start,
            issues=self.issues,
            type_counts=dict(type_counts),
        )
        logger.info(
            "Saved index with %d pages and %d entries to '%s' (%d errors, %d warnings)",
            result.pages_indexed,
            result.terms_indexed,
            output_path,
            result.error_count,
            result.warning_count,
        )
        return result

    # --- internal helpers -------------------------------------------------

    def _sorted_terms(
        self, search_index: Mapping[str, list[int]], page_count: int
    ) -> tuple[tuple[str, ...], tuple[Entry, ...]]:
        keys: list[str] = []
        values: list[Entry] = []
        for term in sorted(search_index):
            page_indices = search_index[term]
            valid = tuple(page_index for page_index in page_indices if 0 <= page_index < page_count)
            if len(valid) != len(page_indices):
                logger.warning(
                    "Dropped %d out-of-range page references for term %r",
                    len(page_indices) - len(valid),
                    term,
                )
            keys.append(term)
            values.append(Entry(pages=valid))
        return tuple(keys), tuple(values)

    def _resolve_version(self, version_html: str | None) -> tuple[MajorMinorVersion, str]:
        if version_html is None:
            logger.warning("Could not determine Unity version of docs (no version page)")
            return UNKNOWN_VERSION, UNKNOWN_DOCS_VERSION
        try:
            return extract_docs_version(version_html)
        except VersionParseError as exc:
            logger.warning("Could not determine Unity version of docs: %s", exc)
            return UNKNOWN_VERSION, UNKNOWN_DOCS_VERSION


def _description_of(raw_info: list[Any]) -> str:
    description = raw_info[0]
    if description is None:
        return ""
    return str(description)
