"""Search index data models."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from docs_quicksearch.search.version import UNKNOWN_VERSION, MajorMinorVersion


class PageType(Enum):
    """Structural category of a documentation page."""

    UNKNOWN = "Unknown"

    MODULE = "Module"
    CLASS = "Class"
    STRUCT = "Struct"
    ENUMERATION = "Enumeration"
    INTERFACE = "Interface"

    PROPERTY = "Property"
    METHOD = "Method"
    EVENT = "Event"
    DELEGATE = "Delegate"
    MESSAGE = "Message"
    ENUMERATOR = "Enumerator"

    OBSOLETE = "Obsolete"


@dataclass(frozen=True, slots=True)
class Page:
    """A single documentation page.

    ``score`` is only meaningful on query results and never takes part in
    equality or serialization.
    """

    title: str
    description: str
    url: str
    type: PageType = PageType.UNKNOWN
    score: int = field(default=0, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Page:
        return cls(
            title=str(data["title"]),
            description=str(data.get("description", "")),
            url=str(data["url"]),
            type=PageType(data.get("type", PageType.UNKNOWN.value)),
        )


@dataclass(frozen=True, slots=True)
class Entry:
    """Posting list: indices into ``DocsIndex.pages`` where a term occurs."""

    pages: tuple[int, ...]


@dataclass(frozen=True)
class DocsIndex:
    """Immutable search index for one documentation version.

    ``index_keys`` is sorted ascending by ordinal string comparison and
    ``index_values[i]`` holds the postings of ``index_keys[i]``.
    """

    pages: tuple[Page, ...]
    common: frozenset[str]
    index_keys: tuple[str, ...]
    index_values: tuple[Entry, ...]
    unity_version: MajorMinorVersion = UNKNOWN_VERSION
    docs_version: str = "unknown"

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def term_count(self) -> int:
        return len(self.index_keys)

    def validate(self) -> None:
        """Check the structural invariants the query engine relies on.

        Raises:
            ValueError: if keys and values differ in length, keys are not
                strictly ascending, or a posting references a missing page.
        """
        if len(self.index_keys) != len(self.index_values):
            raise ValueError(
                f"index_keys ({len(self.index_keys)}) and index_values ({len(self.index_values)}) differ in length"
            )
        for previous, current in zip(self.index_keys, self.index_keys[1:]):
            if previous >= current:
                raise ValueError(f"index_keys not strictly ascending at {previous!r} / {current!r}")
        page_count = len(self.pages)
        for key, entry in zip(self.index_keys, self.index_values):
            for page_index in entry.pages:
                if not 0 <= page_index < page_count:
                    raise ValueError(f"Term {key!r} references page {page_index} outside of {page_count} pages")

    def to_dict(self) -> dict[str, Any]:
        return {
            "unityVersion": str(self.unity_version),
            "docsVersion": self.docs_version,
            "pages": [page.to_dict() for page in self.pages],
            "common": sorted(self.common),
            "indexKeys": list(self.index_keys),
            "indexValues": [list(entry.pages) for entry in self.index_values],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DocsIndex:
        unity_version = MajorMinorVersion.parse(str(data["unityVersion"]))
        return cls(
            pages=tuple(Page.from_dict(page) for page in data["pages"]),
            common=frozenset(str(word) for word in data.get("common", ())),
            index_keys=tuple(str(key) for key in data["indexKeys"]),
            index_values=tuple(_entry_from_raw(raw) for raw in data["indexValues"]),
            unity_version=unity_version,
            docs_version=str(data.get("docsVersion", "unknown")),
        )


def _entry_from_raw(raw: Iterable[Any]) -> Entry:
    return Entry(pages=tuple(int(page_index) for page_index in raw))
