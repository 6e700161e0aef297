"""
Package identifiers and the storage keys derived from them.

Layout under the store root::

    {id}/index.json
    {id}/{version}/{id}.{version}.nupkg
    {id}/{version}/{id}.{version}.nupkg.sha512
    {id}/{version}/{id}.nuspec

where ``{id}`` is the lowercase package id and ``{version}`` the normalized
version.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from .storage.key import Key
from .version import Version

__all__ = ["PackageId", "PackageIdentity", "MAX_PACKAGE_ID_LENGTH"]

MAX_PACKAGE_ID_LENGTH = 100

PACKAGE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_]+(?:[._-][A-Za-z0-9_]+)*$")


class PackageId:
    """
    Case-preserving package id.

    ``original`` keeps the id as supplied; ``lower`` is its ASCII lowercase
    form and is what equality, hashing and storage keys use.
    """

    __slots__ = ("_original", "_lower")

    def __init__(self, value: str) -> None:
        if value is None or not str(value).strip():
            raise ValueError("package id cannot be empty")
        text = str(value).strip()
        if len(text) > MAX_PACKAGE_ID_LENGTH or not PACKAGE_ID_PATTERN.match(text):
            raise ValueError("invalid package id")
        self._original = text
        # ASCII-only by the pattern above, so str.lower() is ASCII lowercasing
        self._lower = text.lower()

    @property
    def original(self) -> str:
        return self._original

    @property
    def lower(self) -> str:
        return self._lower

    @property
    def root_key(self) -> Key:
        return Key(self._lower)

    @property
    def versions_key(self) -> Key:
        return Key.join(self.root_key, "index.json")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageId):
            return NotImplemented
        return self._lower == other._lower

    def __hash__(self) -> int:
        return hash(self._lower)

    def __str__(self) -> str:
        return self._original

    def __repr__(self) -> str:
        return f"PackageId({self._original!r})"


@dataclass(frozen=True)
class PackageIdentity:
    """Package id and version pair identifying one published artifact."""
    id: PackageId
    version: Version

    @property
    def root_key(self) -> Key:
        return Key.join(self.id.root_key, self.version.normalized)

    @property
    def nupkg_key(self) -> Key:
        return self.root_key.child(f"{self.id.lower}.{self.version.normalized}.nupkg")

    @property
    def hash_key(self) -> Key:
        return self.root_key.child(f"{self.id.lower}.{self.version.normalized}.nupkg.sha512")

    @property
    def nuspec_key(self) -> Key:
        return self.root_key.child(f"{self.id.lower}.nuspec")

    def __str__(self) -> str:
        return f"Package: '{self.id}' Version: '{self.version}'"
