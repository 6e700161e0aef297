"""
Registration (package metadata) resources.

See https://learn.microsoft.com/en-us/nuget/api/registration-base-url-resource
"""
from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, Callable, Dict, List, Sequence

from ..errors import CorruptIndex, IllegalState, PackageNotFound
from ..identity import PackageId, PackageIdentity
from ..repository import Repository
from ..version import Version

__all__ = ["ContentUrl", "RegistrationPage", "Registration", "content_url"]

logger = logging.getLogger(__name__)

# Maps a package identity to the absolute URL of its .nupkg
ContentUrl = Callable[[PackageIdentity], str]

MAX_NUSPEC_READERS = 8


def content_url(base_url: str) -> ContentUrl:
    """``ContentUrl`` pointing into the PackageBaseAddress resource below ``base_url``."""
    base = base_url.rstrip("/")

    def _url(identity: PackageIdentity) -> str:
        return f"{base}/content/{identity.nupkg_key}"

    return _url


class RegistrationPage:
    """
    One page of a registration index, listing ``versions`` in the given order.

    Each item's ``catalogEntry`` is built from the stored nuspec of that
    version, so every listed version must be published.
    """

    def __init__(self, repository: Repository, content_url: ContentUrl,
                 package_id: PackageId, versions: Sequence[Version]) -> None:
        self._repository = repository
        self._content_url = content_url
        self._id = package_id
        self._versions = list(versions)

    def json(self) -> Dict[str, Any]:
        """
        Render the page.

        Raises:
            IllegalState: If the page has no versions
            PackageNotFound: If a listed version has no stored nuspec
            CorruptIndex: If a listed version's stored nuspec is malformed
        """
        if not self._versions:
            raise IllegalState("Registration page contains no versions")

        workers = min(MAX_NUSPEC_READERS, len(self._versions))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            items = list(pool.map(self._item, self._versions))

        return {
            "lower": min(self._versions).normalized,
            "upper": max(self._versions).normalized,
            "count": len(self._versions),
            "items": items,
        }

    def _item(self, version: Version) -> Dict[str, Any]:
        identity = PackageIdentity(self._id, version)
        entry = self._repository.nuspec(identity).metadata()
        entry["id"] = self._id.original
        entry["version"] = version.normalized
        return {
            "catalogEntry": entry,
            "packageContent": self._content_url(identity),
        }


class Registration:
    """Registration index of a package: a single inline page of all its versions, ascending."""

    def __init__(self, repository: Repository, content_url: ContentUrl,
                 package_id: PackageId) -> None:
        self._repository = repository
        self._content_url = content_url
        self._id = package_id

    def versions(self) -> List[Version]:
        index = self._repository.versions(self._id)
        try:
            return sorted(Version(value) for value in index.versions)
        except ValueError as e:
            raise CorruptIndex("versions index lists an invalid version") from e

    def json(self) -> Dict[str, Any]:
        """
        Render the index.

        Raises:
            PackageNotFound: If the package has no published versions
        """
        versions = self.versions()
        if not versions:
            raise PackageNotFound("package not found")
        logger.debug(f"Rendering registration of {self._id.lower} with {len(versions)} versions")
        page = RegistrationPage(self._repository, self._content_url, self._id, versions)
        return {"count": 1, "items": [page.json()]}
