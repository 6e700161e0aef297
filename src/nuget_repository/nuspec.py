"""
Nuspec metadata documents.

Nuspec files come in several schema namespaces
(``http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd`` through
``.../2013/05/nuspec.xsd``), so elements are matched by local name only.
"""
from __future__ import annotations

import codecs
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from .errors import InvalidPackage
from .identity import PackageId, PackageIdentity
from .storage.base import Storage
from .version import Version

__all__ = ["Nuspec"]

# Optional <metadata> children copied into registration catalog entries
TEXT_FIELDS = (
    "title",
    "description",
    "summary",
    "authors",
    "owners",
    "projectUrl",
    "licenseUrl",
    "iconUrl",
    "language",
    "releaseNotes",
    "copyright",
)


def _local(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _first(element: ET.Element, name: str) -> Optional[ET.Element]:
    matches = _children(element, name)
    return matches[0] if matches else None


class Nuspec:
    """
    Parsed ``.nuspec`` document.

    Construction only checks that the document is well-formed and has a
    ``package/metadata`` element; ``package_id()`` and ``version()`` validate
    their element lazily. Use ``Nuspec.parse`` to require both up front.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        content = self._data[len(codecs.BOM_UTF8):] if self._data.startswith(codecs.BOM_UTF8) else self._data
        try:
            root = ET.fromstring(content)
        except (ET.ParseError, ValueError, LookupError) as e:
            raise InvalidPackage("malformed nuspec") from e

        if _local(root.tag) != "package":
            raise InvalidPackage("nuspec root element is not <package>")
        metadata = _first(root, "metadata")
        if metadata is None:
            raise InvalidPackage("nuspec has no <metadata>")
        self._metadata = metadata

    @classmethod
    def parse(cls, data: bytes) -> "Nuspec":
        """Parse and require a valid ``id`` and ``version``."""
        nuspec = cls(data)
        nuspec.identity()
        return nuspec

    def _text(self, name: str) -> Optional[str]:
        element = _first(self._metadata, name)
        if element is None or element.text is None:
            return None
        text = element.text.strip()
        return text or None

    def package_id(self) -> PackageId:
        text = self._text("id")
        if text is None:
            raise InvalidPackage("nuspec has no <id>")
        try:
            return PackageId(text)
        except ValueError as e:
            raise InvalidPackage("nuspec <id> is not a valid package id") from e

    def version(self) -> Version:
        text = self._text("version")
        if text is None:
            raise InvalidPackage("nuspec has no <version>")
        try:
            return Version(text)
        except ValueError as e:
            raise InvalidPackage("nuspec <version> is not a valid version") from e

    def identity(self) -> PackageIdentity:
        return PackageIdentity(self.package_id(), self.version())

    def content(self) -> bytes:
        return self._data

    def save(self, storage: Storage) -> None:
        """Write the raw document at the identity's nuspec key."""
        storage.save(self.identity().nuspec_key, self._data)

    def metadata(self) -> Dict[str, Any]:
        """
        Optional metadata in NuGet catalog entry form.

        Only fields present in the document are returned. ``tags`` becomes a
        list, ``requireLicenseAcceptance`` a bool, and ``<dependencies>`` is
        rendered as ``dependencyGroups``.
        """
        result: Dict[str, Any] = {}
        for name in TEXT_FIELDS:
            text = self._text(name)
            if text is not None:
                result[name] = text

        tags = self._text("tags")
        if tags is not None:
            result["tags"] = tags.replace(",", " ").split()

        accept = self._text("requireLicenseAcceptance")
        if accept is not None:
            result["requireLicenseAcceptance"] = accept.lower() == "true"

        groups = self._dependency_groups()
        if groups:
            result["dependencyGroups"] = groups
        return result

    def _dependency_groups(self) -> List[Dict[str, Any]]:
        dependencies = _first(self._metadata, "dependencies")
        if dependencies is None:
            return []

        groups = []
        flat = _children(dependencies, "dependency")
        if flat:
            groups.append({"dependencies": [_dependency(item) for item in flat]})

        for group in _children(dependencies, "group"):
            rendered: Dict[str, Any] = {}
            framework = group.get("targetFramework")
            if framework:
                rendered["targetFramework"] = framework
            items = [_dependency(item) for item in _children(group, "dependency")]
            if items:
                rendered["dependencies"] = items
            groups.append(rendered)
        return groups

    def __repr__(self) -> str:
        return f"Nuspec({len(self._data)} bytes)"


def _dependency(element: ET.Element) -> Dict[str, str]:
    rendered = {"id": element.get("id", "")}
    version_range = element.get("version")
    if version_range:
        rendered["range"] = version_range
    return rendered
