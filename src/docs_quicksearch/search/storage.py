"""Index artifact persistence and versioned lookup.

Each build produces one immutable JSON file named
``DocsIndex-<major>.<minor>-<docsVersion>.json``. The version is encoded in
the file name so candidate roots can be scanned without opening any file.

``VersionedIndexStore`` scans an ordered list of roots and loads the index
that best matches a target documentation version:

* an exact version match wins;
* otherwise the oldest version newer than the target;
* otherwise the newest version older than the target.

The first root that yields a loadable index wins, regardless of how close a
later root would have been.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import logging
from pathlib import Path
import re
from typing import Any

import orjson

from docs_quicksearch.observability.metrics import INDEX_LOADS
from docs_quicksearch.observability.tracing import create_span
from docs_quicksearch.search.models import DocsIndex
from docs_quicksearch.search.version import MajorMinorVersion


logger = logging.getLogger(__name__)

INDEX_FILE_PREFIX = "DocsIndex"
INDEX_FILE_SUFFIX = ".json"
INDEX_FILE_GLOB = f"{INDEX_FILE_PREFIX}-*{INDEX_FILE_SUFFIX}"
_INDEX_FILENAME_PATTERN = re.compile(rf"^{INDEX_FILE_PREFIX}-(\d+\.\d+)-(\w+){re.escape(INDEX_FILE_SUFFIX)}$")


class IndexCorruptError(ValueError):
    """Raised when an index file cannot be decoded into a valid ``DocsIndex``."""


def index_filename(unity_version: MajorMinorVersion, docs_version: str) -> str:
    """Return the artifact name for a version pair."""
    if not re.fullmatch(r"\w+", docs_version):
        raise ValueError(f"docs_version must be a word token to be embedded in a file name: {docs_version!r}")
    return f"{INDEX_FILE_PREFIX}-{unity_version}-{docs_version}{INDEX_FILE_SUFFIX}"


def parse_index_filename(name: str) -> tuple[MajorMinorVersion, str] | None:
    """Recover ``(version, docs_version)`` from an artifact name, or None."""
    match = _INDEX_FILENAME_PATTERN.match(name)
    if match is None:
        return None
    version = MajorMinorVersion.try_parse(match.group(1))
    if version is None:
        return None
    return version, match.group(2)


def save_index(index: DocsIndex, directory: str | Path) -> Path:
    """Serialize ``index`` into ``directory`` and return the file path.

    The payload is written to a temporary file first and renamed into place,
    so readers never observe a partially written artifact.
    """
    index.validate()
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / index_filename(index.unity_version, index.docs_version)
    _atomic_write_json(path, index.to_dict())
    return path


def load_index(path: str | Path) -> DocsIndex:
    """Deserialize an index file.

    Raises:
        IndexCorruptError: if the file cannot be read, decoded, or violates
            the index invariants.
    """
    path = Path(path)
    try:
        payload = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError) as exc:
        raise IndexCorruptError(f"Cannot read index file {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise IndexCorruptError(f"Index file {path} does not contain an object")

    try:
        index = DocsIndex.from_dict(payload)
        index.validate()
    except (KeyError, TypeError, ValueError) as exc:
        raise IndexCorruptError(f"Invalid index file {path}: {exc}") from exc
    return index


def _atomic_write_json(path: Path, payload: Any) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_bytes(orjson.dumps(payload))
    tmp_path.replace(path)


@dataclass(frozen=True, slots=True)
class IndexCandidate:
    """An index file found during a root scan."""

    path: Path
    version: MajorMinorVersion
    docs_version: str


@dataclass(frozen=True, slots=True)
class LoadedIndex:
    """An index together with the file it was loaded from."""

    index: DocsIndex
    path: Path


def list_candidates(root: str | Path) -> list[IndexCandidate]:
    """Return index files in ``root`` whose names carry a parseable version."""
    root = Path(root)
    if not root.is_dir():
        logger.debug("Index root does not exist: %s", root)
        return []

    candidates: list[IndexCandidate] = []
    for path in sorted(root.glob(INDEX_FILE_GLOB)):
        parsed = parse_index_filename(path.name)
        if parsed is None:
            logger.debug("Ignoring file with unparseable index name: %s", path)
            continue
        version, docs_version = parsed
        candidates.append(IndexCandidate(path=path, version=version, docs_version=docs_version))
    return candidates


def rank_candidates(candidates: Iterable[IndexCandidate], target: MajorMinorVersion) -> list[IndexCandidate]:
    """Order candidates from most to least preferred for ``target``.

    Exact matches come first, then newer versions from oldest to newest, then
    older versions from newest to oldest. Files sharing a version are ordered
    by descending ``docs_version``.
    """
    by_revision = sorted(candidates, key=lambda candidate: candidate.docs_version, reverse=True)
    exact = [candidate for candidate in by_revision if candidate.version == target]
    newer = sorted(
        (candidate for candidate in by_revision if candidate.version > target),
        key=lambda candidate: candidate.version,
    )
    older = sorted(
        (candidate for candidate in by_revision if candidate.version < target),
        key=lambda candidate: candidate.version,
        reverse=True,
    )
    return exact + newer + older


class VersionedIndexStore:
    """Find and load the best index for a documentation version."""

    def __init__(self, roots: Sequence[str | Path]) -> None:
        self.roots = [Path(root) for root in roots]

    def resolve(self, target: MajorMinorVersion) -> LoadedIndex | None:
        """Load the best-matching index, or None when no root offers one."""
        with create_span(
            "index.resolve",
            attributes={"index.target_version": str(target), "index.root_count": len(self.roots)},
        ) as span:
            for root in self.roots:
                loaded = self._resolve_in_root(root, target)
                if loaded is not None:
                    span.set_attribute("index.path", str(loaded.path))
                    INDEX_LOADS.labels(outcome="loaded").inc()
                    logger.info(
                        "Loaded docs index %s-%s (%d pages) from %s",
                        loaded.index.unity_version,
                        loaded.index.docs_version,
                        loaded.index.page_count,
                        loaded.path,
                    )
                    return loaded

            INDEX_LOADS.labels(outcome="not_found").inc()
            logger.warning(
                "No docs index found for version %s in: %s",
                target,
                ", ".join(str(root) for root in self.roots) or "(no roots configured)",
            )
            return None

    def _resolve_in_root(self, root: Path, target: MajorMinorVersion) -> LoadedIndex | None:
        for candidate in rank_candidates(list_candidates(root), target):
            try:
                index = load_index(candidate.path)
            except IndexCorruptError as exc:
                INDEX_LOADS.labels(outcome="corrupt").inc()
                logger.error("Skipping unusable index candidate: %s", exc)
                continue
            return LoadedIndex(index=index, path=candidate.path)
        return None
