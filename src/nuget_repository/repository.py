"""
Package repository engine.

Ingests uploaded nupkgs into a ``Storage`` and serves the stored artifacts
back. Writes for one package are serialized by a ``StorageLock`` on the
package's versions index, and the index is written last: a version listed
there always has its nupkg, hash and nuspec in place.
"""
from __future__ import annotations

import concurrent.futures
import logging
import uuid
from typing import Dict, List, Optional

from .errors import CorruptIndex, InvalidPackage, PackageNotFound, PackageVersionAlreadyExists, StoreFailure
from .identity import PackageId, PackageIdentity
from .lock import StorageLock
from .nupkg import Hash, Nupkg
from .nuspec import Nuspec
from .storage.base import Storage
from .storage.key import Key
from .versions import VersionsIndex

__all__ = ["Repository"]

logger = logging.getLogger(__name__)

# One worker per blob of a published version
BLOB_WRITERS = 3

# Staging area for uploads awaiting ingest
UPLOADS = Key(".uploads")


class Repository:
    """
    NuGet package repository over a blob store.

    Safe to share between threads. All methods block.

    Args:
        storage: Blob store holding the repository layout
        lock_ttl: Seconds after which another writer's lock marker counts as
            stale and may be taken over; None never takes over
    """

    def __init__(self, storage: Storage, *, lock_ttl: Optional[float] = None) -> None:
        self._storage = storage
        self._lock_ttl = lock_ttl

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def lock_ttl(self) -> Optional[float]:
        return self._lock_ttl

    def add(self, source_key: Key) -> PackageIdentity:
        """
        Publish the nupkg stored at ``source_key``.

        The source blob is deleted once the package is published and left
        untouched otherwise.

        Args:
            source_key: Key of the uploaded nupkg

        Returns:
            Identity of the published package

        Raises:
            PackageNotFound: If nothing is stored at ``source_key``
            InvalidPackage: If the upload is not a valid nupkg
            LockUnavailable: If another writer is publishing the same package
            CorruptIndex: If the package's versions index is unreadable
            PackageVersionAlreadyExists: If the identity is already published
            StoreFailure: For store I/O errors
        """
        try:
            content = self._storage.value(source_key)
        except FileNotFoundError as e:
            raise PackageNotFound("uploaded package not found") from e
        except OSError as e:
            raise StoreFailure("failed to read uploaded package") from e

        nupkg = Nupkg(content)
        nuspec = nupkg.nuspec()
        identity = nuspec.identity()
        package_hash = nupkg.hash()

        lock = StorageLock(self._storage, identity.id.versions_key, ttl=self._lock_ttl)
        try:
            with lock:
                self._commit(identity, content, nuspec, package_hash)
        except OSError as e:
            raise StoreFailure("store I/O failed while publishing") from e

        logger.info(f"Published {identity.id.lower} {identity.version.normalized}")

        try:
            self._storage.delete(source_key)
        except OSError as e:
            raise StoreFailure("failed to delete uploaded package") from e
        return identity

    def publish(self, content: bytes) -> PackageIdentity:
        """
        Stage ``content`` under a fresh upload key and ``add`` it.

        The staged blob is removed whether or not the publish succeeds.

        Raises:
            Same as ``add``
        """
        source_key = UPLOADS.child(uuid.uuid4().hex)
        try:
            self._storage.save(source_key, content)
        except OSError as e:
            raise StoreFailure("failed to stage uploaded package") from e
        logger.debug(f"Staged {len(content)} byte upload at {source_key}")

        try:
            return self.add(source_key)
        except Exception:
            self._discard([source_key])
            raise

    def _commit(self, identity: PackageIdentity, content: bytes, nuspec: Nuspec,
                package_hash: Hash) -> None:
        """Write the version's blobs, then its versions index entry. Caller holds the lock."""
        index = VersionsIndex.load(self._storage, identity.id)
        if index.contains(identity.version):
            raise PackageVersionAlreadyExists("package version already exists", identity)

        written = self._write_blobs(identity, content, nuspec, package_hash)
        try:
            index.add(identity.version).save(self._storage, identity.id.versions_key)
        except OSError as e:
            self._discard(written)
            raise StoreFailure("failed to update versions index") from e

    def _write_blobs(self, identity: PackageIdentity, content: bytes, nuspec: Nuspec,
                     package_hash: Hash) -> List[Key]:
        """
        Write nupkg, hash and nuspec concurrently.

        Returns:
            Keys written

        Raises:
            StoreFailure: If any write fails; blobs already written are removed
        """
        written: List[Key] = []
        failures: List[OSError] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=BLOB_WRITERS) as pool:
            futures: Dict[concurrent.futures.Future, Key] = {
                pool.submit(self._storage.save, identity.nupkg_key, content): identity.nupkg_key,
                pool.submit(package_hash.save, self._storage, identity): identity.hash_key,
                pool.submit(nuspec.save, self._storage): identity.nuspec_key,
            }
            for future in concurrent.futures.as_completed(futures):
                key = futures[future]
                try:
                    future.result()
                except OSError as e:
                    logger.debug(f"Write of {key} failed: {e}")
                    failures.append(e)
                else:
                    written.append(key)

        if failures:
            self._discard(written)
            raise StoreFailure("failed to write package blobs") from failures[0]
        logger.debug(f"Wrote {len(written)} blobs for {identity.id.lower} {identity.version.normalized}")
        return written

    def _discard(self, keys: List[Key]) -> None:
        for key in keys:
            try:
                self._storage.delete(key)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Failed to remove partial write {key}: {e}")

    def nuspec(self, identity: PackageIdentity) -> Nuspec:
        """
        Stored nuspec of a published package.

        Raises:
            PackageNotFound: If no nuspec is stored for ``identity``
            CorruptIndex: If the stored document is malformed
            StoreFailure: For store I/O errors
        """
        data = self._read(identity.nuspec_key, identity, "nuspec not found")
        try:
            return Nuspec(data)
        except InvalidPackage as e:
            raise CorruptIndex("stored nuspec is corrupt") from e

    def versions(self, package_id: PackageId) -> VersionsIndex:
        """
        Versions index of ``package_id``; empty when nothing is published.

        Raises:
            CorruptIndex: If the stored index is unreadable
            StoreFailure: For store I/O errors
        """
        try:
            return VersionsIndex.load(self._storage, package_id)
        except OSError as e:
            raise StoreFailure("failed to read versions index") from e

    def package_content(self, identity: PackageIdentity) -> bytes:
        """
        Stored nupkg bytes of a published package.

        Raises:
            PackageNotFound: If no nupkg is stored for ``identity``
            StoreFailure: For store I/O errors
        """
        return self._read(identity.nupkg_key, identity, "package not found")

    def _read(self, key: Key, identity: PackageIdentity, missing: str) -> bytes:
        try:
            return self._storage.value(key)
        except FileNotFoundError as e:
            raise PackageNotFound(missing, identity) from e
        except OSError as e:
            raise StoreFailure("failed to read package data") from e
