"""
Packages in ``.nupkg`` format.

A nupkg is a ZIP archive holding exactly one ``.nuspec`` entry plus payload
files. ``Nupkg`` reads it from fully buffered bytes or from a re-openable
byte source, so ``nuspec()`` and ``hash()`` can each consume the content
independently.
"""
from __future__ import annotations

import base64
import hashlib
import io
import logging
import lzma
import struct
import zipfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Callable, Union

from .errors import InvalidPackage
from .identity import PackageIdentity
from .nuspec import Nuspec
from .storage.base import Storage

__all__ = ["Nupkg", "Hash", "ByteSource"]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MiB

NUSPEC_SUFFIX = ".nuspec"

# Opener returning a fresh binary stream on every call
ByteSource = Union[bytes, Callable[[], BinaryIO]]

# Everything zipfile and zlib raise on hostile or damaged archives
ZIP_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    lzma.LZMAError,
    struct.error,
    EOFError,
    ValueError,
    NotImplementedError,
    RuntimeError,
    UnicodeDecodeError,
    KeyError,
    # bz2 reports corrupt streams as plain OSError
    OSError,
)


@dataclass(frozen=True)
class Hash:
    """SHA-512 digest of a whole nupkg."""
    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != hashlib.sha512().digest_size:
            raise ValueError("SHA-512 digest must be 64 bytes")

    def base64(self) -> str:
        return base64.b64encode(self.digest).decode("ascii")

    def save(self, storage: Storage, identity: PackageIdentity) -> None:
        """Write the base-64 digest, without trailing newline, at the identity's hash key."""
        storage.save(identity.hash_key, self.base64().encode("ascii"))


class Nupkg:
    """
    Package archive in .nupkg format.

    Both operations are idempotent and may be called in either order.
    """

    def __init__(self, source: ByteSource) -> None:
        self._source = source

    def _open(self) -> BinaryIO:
        if isinstance(self._source, (bytes, bytearray, memoryview)):
            return io.BytesIO(self._source)
        return self._source()

    def nuspec(self) -> Nuspec:
        """
        Extract the package's nuspec.

        Raises:
            InvalidPackage: If the content is not a ZIP archive, or holds no
                ``.nuspec`` entry or more than one, or the nuspec lacks a
                valid ``id`` / ``version``
        """
        # Read outside the ZIP error handling so source I/O errors stay OSError
        with self._open() as stream:
            content = stream.read()

        try:
            with zipfile.ZipFile(io.BytesIO(content)) as archive:
                entries = [
                    info for info in archive.infolist()
                    if not info.is_dir() and info.filename.lower().endswith(NUSPEC_SUFFIX)
                ]
                data = archive.read(entries[0]) if len(entries) == 1 else None
        except ZIP_ERRORS as e:
            raise InvalidPackage("not a zip") from e

        if len(entries) > 1:
            raise InvalidPackage("multiple .nuspec")
        if data is None:
            raise InvalidPackage("no .nuspec")

        logger.debug(f"Read nuspec entry of {len(data)} bytes from {len(content)} byte package")
        return Nuspec.parse(data)

    def hash(self) -> Hash:
        """SHA-512 over the entire package content."""
        digest = hashlib.sha512()
        with self._open() as stream:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
        return Hash(digest.digest())
