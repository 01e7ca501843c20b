"""Page type inference for offline documentation pages.

The classifier reads a page's HTML and decides which ``PageType`` it
documents. Type pages (classes, structs, ...) are recognised from textual
cues. Member pages carry no reliable cue of their own, so their type is
discovered from the member tables of their parent page: classifying a type
page records the type of every member it lists in the shared cache, and
classifying a member classifies its parent first and then reads the cache.

The cache is therefore part of the algorithm and not only memoization. One
mapping must be shared by every ``classify`` call of a build.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
from typing import Literal

from docs_quicksearch.observability.metrics import CLASSIFICATION_ISSUES
from docs_quicksearch.search.models import PageType


logger = logging.getLogger(__name__)

Severity = Literal["warning", "error"]

# Phrases in type pages, checked in order
_TYPE_INDICATORS: dict[str, PageType] = {
    "class in": PageType.CLASS,
    "struct in": PageType.STRUCT,
    "interface in": PageType.INTERFACE,
    "enumeration": PageType.ENUMERATION,
}

# Member table headings on type pages
_MEMBER_SECTIONS: dict[str, PageType] = {
    "Description": PageType.UNKNOWN,
    "Inherited Members": PageType.UNKNOWN,
    "Static Properties": PageType.PROPERTY,
    "Static Methods": PageType.METHOD,
    "Properties": PageType.PROPERTY,
    "Constructors": PageType.METHOD,
    "Public Methods": PageType.METHOD,
    "Protected Methods": PageType.METHOD,
    "Messages": PageType.MESSAGE,
    "Events": PageType.EVENT,
    "Delegates": PageType.DELEGATE,
    "Operators": PageType.METHOD,
}

# Pages whose HTML does not follow the usual layout
_PAGE_TYPE_OVERRIDES: dict[str, PageType] = {
    # Pseudo-pages
    "Array": PageType.CLASS,
    "Hashtable": PageType.CLASS,
    "String": PageType.CLASS,
    "Serializable": PageType.CLASS,
    "NonSerialized": PageType.CLASS,
    "Path": PageType.CLASS,
    # Broken pages
    "PopupWindow": PageType.CLASS,
    "XR.XRNodeState": PageType.STRUCT,
}

# Verdicts that end classification without scanning member tables
_TERMINAL_TYPES = frozenset({PageType.MODULE, PageType.OBSOLETE, PageType.DELEGATE})


@dataclass(frozen=True)
class ClassificationRules:
    """Textual cues used to type pages.

    Kept as data so new heading variants or irregular pages can be handled
    without touching the classification algorithm.
    """

    content_marker: str = "\n"
    module_pattern: str = r"^(?:UnityEngine.*Module|UnityEditor)$"
    obsolete_marker: str = "Obsolete"
    delegate_marker: str = "public delegate"
    member_separators: tuple[str, ...] = ("-", ".")
    heading_pattern: str = r'<div class="subsection"><h2>(?P<heading>[ \w]+)</h2>'
    member_pattern: str = r'<td class="lbl"><a href="(?P<member>[^"/]+)\.html">[^<]+</a>'
    type_indicators: Mapping[str, PageType] = field(default_factory=lambda: dict(_TYPE_INDICATORS))
    member_sections: Mapping[str, PageType] = field(default_factory=lambda: dict(_MEMBER_SECTIONS))
    overrides: Mapping[str, PageType] = field(default_factory=lambda: dict(_PAGE_TYPE_OVERRIDES))


DEFAULT_RULES = ClassificationRules()


@dataclass(frozen=True, slots=True)
class ClassificationIssue:
    """A page that could not be typed cleanly during a build."""

    url: str
    severity: Severity
    message: str


class PageClassifier:
    """Determine page types for one documentation tree."""

    def __init__(self, pages_dir: Path, rules: ClassificationRules = DEFAULT_RULES) -> None:
        self.pages_dir = Path(pages_dir)
        self.rules = rules
        self.issues: list[ClassificationIssue] = []
        self._module_re = re.compile(rules.module_pattern)
        self._scan_re = re.compile(f"{rules.heading_pattern}|{rules.member_pattern}")

    def page_path(self, url: str) -> Path:
        return self.pages_dir / f"{url}.html"

    def parent_url(self, url: str) -> str | None:
        """Return the url of the type page a member url belongs to.

        ``Transform-position`` -> ``Transform``, ``XR.InputDevice`` -> ``XR``.
        """
        for separator in self.rules.member_separators:
            position = url.rfind(separator)
            if position > 0:
                return url[:position]
            if position == 0:
                return None
        return None

    def classify(self, url: str, cache: MutableMapping[str, PageType]) -> PageType:
        """Return the type of the page at ``url``.

        Never raises: pages that cannot be typed resolve to
        ``PageType.UNKNOWN`` and are recorded in ``issues``.

        Args:
            url: Relative page identifier, e.g. ``Transform-position``
            cache: Mapping shared across the whole build; receives this page's
                verdict and, for type pages, the verdicts of listed members
        """
        cached = cache.get(url)
        if cached is not None:
            return cached

        page_path = self.page_path(url)
        try:
            contents = page_path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            self._report(url, "error", f"Could not find documentation page at path: {page_path}")
            cache[url] = PageType.UNKNOWN
            return PageType.UNKNOWN
        except OSError as exc:
            self._report(url, "error", f"Could not read documentation page {page_path}: {exc}")
            cache[url] = PageType.UNKNOWN
            return PageType.UNKNOWN

        if self.rules.content_marker not in contents:
            # Undocumented members have placeholder pages; leave them uncached
            self._report(url, "warning", f"Probably broken documentation page? ({page_path})")
            return PageType.UNKNOWN

        page_type = self._match_page_rules(url, contents)
        if page_type is PageType.UNKNOWN:
            return self._classify_member(url, cache)

        if page_type not in _TERMINAL_TYPES:
            self._record_members(url, contents, cache)
        cache[url] = page_type
        return page_type

    def _match_page_rules(self, url: str, contents: str) -> PageType:
        rules = self.rules
        if self._module_re.match(url):
            return PageType.MODULE
        if rules.obsolete_marker in contents:
            return PageType.OBSOLETE
        if rules.delegate_marker in contents:
            return PageType.DELEGATE

        override = rules.overrides.get(url)
        if override is not None:
            return override

        for phrase, page_type in rules.type_indicators.items():
            if phrase in contents:
                return page_type
        return PageType.UNKNOWN

    def _classify_member(self, url: str, cache: MutableMapping[str, PageType]) -> PageType:
        parent_url = self.parent_url(url)
        if parent_url is None:
            self._report(url, "error", f"Could not determine parent of member: {self.page_path(url)}")
            cache[url] = PageType.UNKNOWN
            return PageType.UNKNOWN

        parent_type = self.classify(parent_url, cache)

        # Members of obsolete types are not always marked themselves
        if parent_type is PageType.OBSOLETE:
            cache[url] = PageType.OBSOLETE
            return PageType.OBSOLETE

        member_type = cache.get(url)
        if member_type is None:
            self._report(
                url,
                "error",
                f"Could not determine member type after parsing parent: {self.page_path(url)} "
                f"({parent_url} = {parent_type.value})",
            )
            cache[url] = PageType.UNKNOWN
            return PageType.UNKNOWN
        return member_type

    def _record_members(self, url: str, contents: str, cache: MutableMapping[str, PageType]) -> None:
        section_type = PageType.UNKNOWN
        for match in self._scan_re.finditer(contents):
            heading = match.group("heading")
            if heading is not None:
                heading = heading.strip()
                known = self.rules.member_sections.get(heading)
                if known is None:
                    self._report(url, "error", f"Unknown member section heading: {heading!r}")
                    known = PageType.UNKNOWN
                section_type = known
                continue

            member_url = match.group("member")
            if section_type is PageType.UNKNOWN:
                logger.debug("Skipping member %s outside a typed section of %s", member_url, url)
                continue
            cache[member_url] = section_type

    def _report(self, url: str, severity: Severity, message: str) -> None:
        self.issues.append(ClassificationIssue(url=url, severity=severity, message=message))
        CLASSIFICATION_ISSUES.labels(severity=severity).inc()
        if severity == "error":
            logger.error(message)
        else:
            logger.warning(message)
