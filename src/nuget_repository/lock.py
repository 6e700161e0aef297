"""
Store-backed advisory locks.

A lock on key ``K`` is the marker blob ``{K}.lock``, placed with the store's
create-if-absent primitive. Acquisition never waits: a held lock fails at
once with ``LockUnavailable`` and the caller decides whether to retry.

Markers record their owner and acquisition time. A marker older than the
configured TTL is treated as left behind by a crashed writer and may be
taken over or swept.
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from typing import List, Optional

from .errors import LockUnavailable
from .storage.base import Storage
from .storage.key import Key

__all__ = ["StorageLock", "lock_key", "takeover_key", "sweep_stale_locks", "LOCK_SUFFIX"]

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


def lock_key(key: Key) -> Key:
    """Marker key guarding ``key``; a sibling, so file-backed stores can hold both."""
    if key.is_root():
        return Key(f"root{LOCK_SUFFIX}")
    return Key(f"{key}{LOCK_SUFFIX}")


def takeover_key(marker: Key, stale: bytes) -> Key:
    """
    Key arbitrating the takeover of one stale marker.

    Carries the lock suffix so a takeover orphaned by a crash is swept like
    any other marker.
    """
    digest = hashlib.sha256(stale).hexdigest()[:16]
    return Key(f"{marker}.{digest}{LOCK_SUFFIX}")


def _marker_age(data: bytes, now: float) -> Optional[float]:
    """Seconds since a marker was written, or None when the marker is unreadable."""
    try:
        acquired_at = float(json.loads(data)["acquired_at"])
    except (ValueError, KeyError, TypeError):
        return None
    return now - acquired_at


class StorageLock:
    """
    Best-effort mutual exclusion keyed by a storage key.

    Holds only as far as the store's ``create`` is atomic. Use as a context
    manager so the marker is removed on every exit path::

        with StorageLock(storage, package_id.versions_key):
            ...
    """

    def __init__(self, storage: Storage, key: Key, *, ttl: Optional[float] = None) -> None:
        self._storage = storage
        self._key = key
        self._marker = lock_key(key)
        self._ttl = ttl
        self._owner = uuid.uuid4().hex
        self._held = False

    @property
    def marker(self) -> Key:
        return self._marker

    @property
    def held(self) -> bool:
        return self._held

    def _payload(self) -> bytes:
        return json.dumps({"owner": self._owner, "acquired_at": time.time()}).encode("utf-8")

    def acquire(self) -> None:
        """
        Place the marker.

        Raises:
            LockUnavailable: If another writer holds the lock
            OSError: For store I/O errors
        """
        if self._held:
            raise LockUnavailable("Lock already held by this owner.")
        try:
            self._storage.create(self._marker, self._payload())
        except FileExistsError:
            if not self._take_over_stale():
                raise LockUnavailable("Failed to acquire lock.")
        self._held = True
        logger.debug(f"Acquired lock {self._marker}")

    def _take_over_stale(self) -> bool:
        """
        Replace an expired marker; True when this owner now holds the lock.

        Racers that read the same stale marker are arbitrated by creating a
        takeover key derived from that marker's content: only its creator may
        delete and replace the marker.
        """
        if self._ttl is None:
            return False
        try:
            stale = self._storage.value(self._marker)
        except FileNotFoundError:
            # Released between our create and read
            return self._create_marker()
        age = _marker_age(stale, time.time())
        if age is None or age < self._ttl:
            return False

        takeover = takeover_key(self._marker, stale)
        try:
            self._storage.create(takeover, self._payload())
        except FileExistsError:
            return False
        try:
            try:
                current = self._storage.value(self._marker)
            except FileNotFoundError:
                current = None
            if current is not None and current != stale:
                # Someone else replaced the stale marker first
                return False
            logger.warning(f"Taking over stale lock {self._marker}")
            if current is not None:
                try:
                    self._storage.delete(self._marker)
                except FileNotFoundError:
                    pass
            return self._create_marker()
        finally:
            try:
                self._storage.delete(takeover)
            except FileNotFoundError:
                pass

    def _create_marker(self) -> bool:
        try:
            self._storage.create(self._marker, self._payload())
        except FileExistsError:
            return False
        return True

    def release(self) -> None:
        """
        Remove the marker if this owner still holds it.

        A missing or foreign marker is logged rather than raised, so release
        is safe on every exit path.
        """
        if not self._held:
            return
        self._held = False
        try:
            data = self._storage.value(self._marker)
        except FileNotFoundError:
            logger.warning(f"Lock {self._marker} vanished before release")
            return

        try:
            owner = json.loads(data).get("owner")
        except (ValueError, AttributeError):
            owner = None
        if owner != self._owner:
            logger.warning(f"Lock {self._marker} was taken over; leaving it in place")
            return

        try:
            self._storage.delete(self._marker)
        except FileNotFoundError:
            logger.warning(f"Lock {self._marker} vanished before release")
            return
        logger.debug(f"Released lock {self._marker}")

    def __enter__(self) -> "StorageLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def sweep_stale_locks(storage: Storage, ttl: float, prefix: Key = Key.ROOT) -> List[Key]:
    """
    Delete lock markers older than ``ttl`` seconds below ``prefix``.

    Unreadable markers are left alone: a marker may be observed between its
    creation and the write of its payload.

    Returns:
        Keys of the markers removed
    """
    now = time.time()
    removed = []
    for key in storage.list(prefix):
        if not key.name.endswith(LOCK_SUFFIX):
            continue
        try:
            age = _marker_age(storage.value(key), now)
        except FileNotFoundError:
            continue
        if age is None or age < ttl:
            continue
        try:
            storage.delete(key)
        except FileNotFoundError:
            continue
        removed.append(key)
        logger.info(f"Removed stale lock {key} ({age:.0f}s old)")
    return removed
