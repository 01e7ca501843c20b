"""Major.minor version values used to tag and select documentation indexes."""

from __future__ import annotations

from dataclasses import dataclass
import re


_PLAIN_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)[A-Za-z]?$")
_PLATFORM_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)\w*$")


class VersionParseError(ValueError):
    """Raised when a version string does not have the expected shape."""


@dataclass(frozen=True, order=True, slots=True)
class MajorMinorVersion:
    """Ordered ``(major, minor)`` pair.

    Ordering compares ``major`` first and ``minor`` second, so
    ``2019.2 < 2019.3 < 2020.1``.
    """

    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"

    @property
    def is_unknown(self) -> bool:
        return self == UNKNOWN_VERSION

    @classmethod
    def parse(cls, text: str) -> MajorMinorVersion:
        """Parse a plain ``major.minor`` string such as ``"2019.3"``.

        A single trailing letter (``"2019.3a"``) is accepted and dropped.

        Raises:
            VersionParseError: if ``text`` is not a ``major.minor`` string.
        """
        match = _PLAIN_VERSION_PATTERN.match(text.strip()) if text else None
        if match is None:
            raise VersionParseError(f"Invalid major.minor version: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def try_parse(cls, text: str) -> MajorMinorVersion | None:
        try:
            return cls.parse(text)
        except VersionParseError:
            return None

    @classmethod
    def from_platform_version(cls, text: str) -> MajorMinorVersion:
        """Parse a ``major.minor.patch`` platform version, discarding the patch.

        ``"2019.3.0f1"`` becomes ``2019.3``.

        Raises:
            VersionParseError: if ``text`` does not have three numeric components.
        """
        match = _PLATFORM_VERSION_PATTERN.match(text.strip()) if text else None
        if match is None:
            raise VersionParseError(f"Invalid platform version: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)))


UNKNOWN_VERSION = MajorMinorVersion(0, 0)


def parse_target_version(text: str) -> MajorMinorVersion:
    """Parse either a ``major.minor`` or a ``major.minor.patch`` version string."""
    if text.count(".") >= 2:
        return MajorMinorVersion.from_platform_version(text)
    return MajorMinorVersion.parse(text)
