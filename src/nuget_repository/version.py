"""
NuGet package versions.

Accepts SemVer 2.0 versions and legacy four-part numeric versions, and
computes the normalized form used in storage keys and documents.

Normalization:
- leading zeros are trimmed from every numeric part
- a lone major part is padded to ``major.0``
- a zero fourth (revision) part is dropped
- pre-release label and build metadata are kept
- the result is lowercased

Examples:
    >>> Version("01.002.0003.0").normalized
    '1.2.3'
    >>> Version("1.0.0-Beta.1+Git.Abc").normalized
    '1.0.0-beta.1+git.abc'
    >>> Version("0.1").normalized
    '0.1'
"""
from __future__ import annotations

import functools
import re
from typing import Optional, Tuple

__all__ = ["Version"]

_IDENTIFIERS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"

VERSION_PATTERN = re.compile(
    r"^(?P<numbers>\d+(?:\.\d+){0,3})"
    rf"(?:-(?P<label>{_IDENTIFIERS}))?"
    rf"(?:\+(?P<metadata>{_IDENTIFIERS}))?$"
)


@functools.total_ordering
class Version:
    """
    NuGet version.

    Equality and hashing use the normalized form; ordering follows NuGet
    precedence (numeric parts, then release above pre-release, then SemVer
    pre-release identifiers), with the normalized string as final tie-breaker.
    """

    __slots__ = ("_original", "_numbers", "_label", "_metadata", "_normalized")

    def __init__(self, value: str) -> None:
        if value is None or not str(value).strip():
            raise ValueError("version cannot be empty")
        text = str(value).strip()
        match = VERSION_PATTERN.match(text)
        if match is None:
            raise ValueError("invalid version format")

        numbers = [int(part) for part in match.group("numbers").split(".")]
        if len(numbers) == 1:
            numbers.append(0)
        if len(numbers) == 4 and numbers[3] == 0:
            numbers.pop()

        self._original = text
        self._numbers: Tuple[int, ...] = tuple(numbers)
        self._label: Optional[str] = match.group("label")
        self._metadata: Optional[str] = match.group("metadata")

        normalized = ".".join(str(number) for number in self._numbers)
        if self._label:
            normalized += f"-{self._label}"
        if self._metadata:
            normalized += f"+{self._metadata}"
        self._normalized = normalized.lower()

    @property
    def original(self) -> str:
        return self._original

    @property
    def normalized(self) -> str:
        return self._normalized

    @property
    def is_prerelease(self) -> bool:
        return self._label is not None

    def _precedence(self) -> tuple:
        numbers = self._numbers + (0,) * (4 - len(self._numbers))
        if self._label is None:
            # Releases sort above any pre-release of the same numbers
            return (numbers, 1, ())
        return (numbers, 0, tuple(_identifier_key(part) for part in self._label.split(".")))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._normalized == other._normalized

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return (self._precedence(), self._normalized) < (other._precedence(), other._normalized)

    def __hash__(self) -> int:
        return hash(self._normalized)

    def __str__(self) -> str:
        return self._original

    def __repr__(self) -> str:
        return f"Version({self._original!r})"


def _identifier_key(identifier: str) -> tuple:
    """SemVer pre-release identifier precedence: numeric ones sort first, by value."""
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier.lower())
