"""
Tests for the repository engine.

Covers ingest, duplicate rejection, reads, concurrent publishes of the same
identity and cleanup after store failures.
"""
from __future__ import annotations

import base64
import hashlib
import json
import threading
import uuid
import zipfile

import pytest

from nuget_repository.errors import (
    CorruptIndex,
    InvalidPackage,
    LockUnavailable,
    PackageNotFound,
    PackageVersionAlreadyExists,
    StoreFailure,
)
from nuget_repository.identity import PackageId, PackageIdentity
from nuget_repository.lock import lock_key
from nuget_repository.repository import UPLOADS, Repository
from nuget_repository.storage.filesystem import FileStorage
from nuget_repository.storage.key import Key
from nuget_repository.storage.memory import InMemoryStorage
from nuget_repository.version import Version

from tests.helpers.nupkg import build_nupkg, corrupt_first_entry, nuspec_xml

NEWTONSOFT = PackageIdentity(PackageId("newtonsoft.json"), Version("12.0.3"))


def _stored_versions(storage, package_id: PackageId):
    return json.loads(storage.value(package_id.versions_key))["versions"]


class TestAdd:
    """Test publishing packages."""

    def test_add_package(self, storage, repository, newtonsoft_nupkg):
        """Test all blobs, the index entry and source removal after add."""
        source = Key("package.zip")
        storage.save(source, newtonsoft_nupkg)

        identity = repository.add(source)

        assert identity == NEWTONSOFT
        assert storage.value(NEWTONSOFT.nupkg_key) == newtonsoft_nupkg
        expected_hash = base64.b64encode(hashlib.sha512(newtonsoft_nupkg).digest())
        assert storage.value(NEWTONSOFT.hash_key) == expected_hash
        assert storage.value(NEWTONSOFT.nuspec_key) == nuspec_xml("Newtonsoft.Json", "12.0.3")
        assert _stored_versions(storage, NEWTONSOFT.id) == ["12.0.3"]
        assert not storage.exists(source)

    def test_layout_is_exact(self, storage, repository, newtonsoft_nupkg):
        """Test nothing but the four layout keys remains after add."""
        storage.save(Key("package.zip"), newtonsoft_nupkg)
        repository.add(Key("package.zip"))
        assert storage.list(Key.ROOT) == [
            Key("newtonsoft.json/12.0.3/newtonsoft.json.12.0.3.nupkg"),
            Key("newtonsoft.json/12.0.3/newtonsoft.json.12.0.3.nupkg.sha512"),
            Key("newtonsoft.json/12.0.3/newtonsoft.json.nuspec"),
            Key("newtonsoft.json/index.json"),
        ]

    def test_versions_appended_in_publish_order(self, storage, repository):
        """Test later versions are appended to the index."""
        for version in ("2.0.0", "1.0.0", "1.5.0.0"):
            storage.save(Key("src"), build_nupkg("My.Lib", version))
            repository.add(Key("src"))
        assert _stored_versions(storage, PackageId("my.lib")) == ["2.0.0", "1.0.0", "1.5.0"]

    def test_invalid_package_rejected(self, storage, repository):
        """Test a non-zip upload raises InvalidPackage and writes nothing."""
        source = Key("invalid")
        storage.save(source, b"not a zip")
        with pytest.raises(InvalidPackage):
            repository.add(source)
        assert storage.list(Key.ROOT) == [source]

    @pytest.mark.parametrize("compression", [zipfile.ZIP_BZIP2, zipfile.ZIP_LZMA])
    def test_corrupt_compressed_package_rejected(self, storage, repository, compression):
        """Test undecodable entry data is an invalid package, not a store failure."""
        source = Key("corrupt")
        storage.save(source, corrupt_first_entry(build_nupkg("Lib", "1.0.0", compression=compression)))

        with pytest.raises(InvalidPackage):
            repository.add(source)
        assert storage.list(Key.ROOT) == [source]

    def test_missing_source(self, repository):
        """Test an absent source key raises PackageNotFound."""
        with pytest.raises(PackageNotFound):
            repository.add(Key("nothing-here"))

    def test_duplicate_rejected(self, storage, repository, newtonsoft_nupkg):
        """Test a second upload of a published identity is rejected untouched."""
        storage.save(Key("first"), newtonsoft_nupkg)
        repository.add(Key("first"))
        before = {key: storage.value(key) for key in storage.list(Key.ROOT)}

        storage.save(Key("second"), newtonsoft_nupkg)
        with pytest.raises(PackageVersionAlreadyExists) as exc_info:
            repository.add(Key("second"))

        assert exc_info.value.identity == NEWTONSOFT
        assert storage.exists(Key("second"))
        for key, value in before.items():
            assert storage.value(key) == value
        assert not storage.exists(lock_key(NEWTONSOFT.id.versions_key))

    def test_duplicate_differs_only_in_case_and_form(self, storage, repository):
        """Test identities equal after normalization count as duplicates."""
        storage.save(Key("a"), build_nupkg("My.Lib", "1.0.0"))
        repository.add(Key("a"))
        storage.save(Key("b"), build_nupkg("MY.LIB", "1.0.0.0"))
        with pytest.raises(PackageVersionAlreadyExists):
            repository.add(Key("b"))

    def test_held_lock_rejects_add(self, storage, repository, newtonsoft_nupkg):
        """Test a publish in progress makes add fail with LockUnavailable."""
        storage.create(lock_key(NEWTONSOFT.id.versions_key), b"{}")
        storage.save(Key("src"), newtonsoft_nupkg)
        with pytest.raises(LockUnavailable):
            repository.add(Key("src"))
        assert storage.exists(Key("src"))
        assert not storage.exists(NEWTONSOFT.nupkg_key)

    def test_corrupt_index_rejects_add(self, storage, repository, newtonsoft_nupkg):
        """Test an unreadable index fails the publish and releases the lock."""
        storage.save(NEWTONSOFT.id.versions_key, b"garbage")
        storage.save(Key("src"), newtonsoft_nupkg)
        with pytest.raises(CorruptIndex):
            repository.add(Key("src"))
        assert not storage.exists(lock_key(NEWTONSOFT.id.versions_key))

    def test_publish_stages_and_cleans_up(self, storage, repository, newtonsoft_nupkg):
        """Test publish leaves no staged upload on success or failure."""
        repository.publish(newtonsoft_nupkg)
        with pytest.raises(PackageVersionAlreadyExists):
            repository.publish(newtonsoft_nupkg)
        with pytest.raises(InvalidPackage):
            repository.publish(b"not a zip")
        assert storage.list(UPLOADS) == []


class TestConcurrentAdd:
    """Test racing publishes of one identity."""

    @pytest.fixture(params=["memory", "fs"])
    def race_storage(self, request, tmp_path):
        if request.param == "memory":
            return InMemoryStorage()
        return FileStorage(tmp_path / "store")

    def _race(self, storage, repository, content, count=3):
        barrier = threading.Barrier(count)
        successes = []
        failures = []

        def worker():
            source = UPLOADS.child(uuid.uuid4().hex)
            storage.save(source, content)
            barrier.wait()
            try:
                repository.add(source)
                successes.append(source)
            except Exception as e:
                failures.append(e)

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
            assert not thread.is_alive()
        return successes, failures

    def _assert_outcome(self, storage, successes, failures):
        assert len(successes) <= 1
        assert failures
        for failure in failures:
            assert isinstance(failure, (LockUnavailable, PackageVersionAlreadyExists))
            if isinstance(failure, LockUnavailable):
                assert "Failed to acquire lock." in str(failure)
        assert not any("lock" in str(key) for key in storage.list(Key.ROOT))
        if successes:
            assert _stored_versions(storage, NEWTONSOFT.id) == ["12.0.3"]

    @pytest.mark.parametrize("attempt", range(10))
    def test_simultaneous_adds(self, attempt, race_storage, newtonsoft_nupkg):
        """Test at most one of three racing adds succeeds and no lock remains."""
        repository = Repository(race_storage)
        successes, failures = self._race(race_storage, repository, newtonsoft_nupkg)
        self._assert_outcome(race_storage, successes, failures)

    @pytest.mark.parametrize("attempt", range(5))
    def test_simultaneous_adds_over_stale_lock(self, attempt, race_storage, newtonsoft_nupkg):
        """Test racing writers taking over an orphaned lock still admit at most one publish."""
        orphan = json.dumps({"owner": "crashed", "acquired_at": 0}).encode("utf-8")
        race_storage.save(lock_key(NEWTONSOFT.id.versions_key), orphan)
        repository = Repository(race_storage, lock_ttl=60)
        successes, failures = self._race(race_storage, repository, newtonsoft_nupkg)
        self._assert_outcome(race_storage, successes, failures)


class TestReads:
    """Test reading published data."""

    def test_versions_round_trip(self, storage, repository):
        """Test a stored index is returned and re-saves byte-identically."""
        data = b'{"versions":["1.0.0","1.0.1"]}'
        foo = PackageId("Foo")
        storage.save(foo.versions_key, data)
        repository.versions(foo).save(storage, Key("bar"))
        assert storage.value(Key("bar")) == data

    def test_versions_empty_when_absent(self, storage, repository):
        """Test an unknown package has an empty index."""
        index = repository.versions(PackageId("MyLib"))
        index.save(storage, Key("sink"))
        assert json.loads(storage.value(Key("sink"))) == {"versions": []}

    def test_read_nuspec(self, storage, repository):
        """Test a stored nuspec without version still reports its id."""
        identity = PackageIdentity(PackageId("UsefulLib"), Version("2.0"))
        storage.save(identity.nuspec_key, nuspec_xml("UsefulLib", None))
        assert repository.nuspec(identity).package_id().lower == "usefullib"

    def test_corrupt_nuspec(self, storage, repository):
        """Test a malformed stored nuspec raises CorruptIndex."""
        identity = PackageIdentity(PackageId("MyPack"), Version("1.0"))
        storage.save(identity.nuspec_key, b"<package><oops>")
        with pytest.raises(CorruptIndex, match="stored nuspec is corrupt"):
            repository.nuspec(identity)

    def test_missing_nuspec(self, repository):
        """Test an absent nuspec raises PackageNotFound."""
        identity = PackageIdentity(PackageId("MyPack"), Version("1.0"))
        with pytest.raises(PackageNotFound) as exc_info:
            repository.nuspec(identity)
        assert exc_info.value.identity == identity

    def test_package_content(self, storage, repository, newtonsoft_nupkg):
        """Test the stored nupkg bytes are returned after publish."""
        repository.publish(newtonsoft_nupkg)
        assert repository.package_content(NEWTONSOFT) == newtonsoft_nupkg

    def test_missing_package_content(self, repository):
        """Test an unpublished identity raises PackageNotFound."""
        with pytest.raises(PackageNotFound):
            repository.package_content(NEWTONSOFT)


class TestStoreFailures:
    """Test cleanup and error wrapping when the store fails."""

    @pytest.fixture
    def faulty_repository(self, faulty_storage):
        return Repository(faulty_storage)

    def test_source_read_failure(self, faulty_storage, faulty_repository):
        """Test an I/O error reading the upload becomes StoreFailure."""
        faulty_storage.save(Key("src"), b"x")
        faulty_storage.fail_on("value", name_suffix="src")
        with pytest.raises(StoreFailure):
            faulty_repository.add(Key("src"))

    def test_blob_write_failure_cleans_up(self, faulty_storage, faulty_repository, newtonsoft_nupkg):
        """Test a failed nupkg write removes sibling blobs and leaves the index untouched."""
        faulty_storage.save(Key("src"), newtonsoft_nupkg)
        faulty_storage.fail_on("save", name_suffix=".nupkg")

        with pytest.raises(StoreFailure) as exc_info:
            faulty_repository.add(Key("src"))

        assert isinstance(exc_info.value.__cause__, OSError)
        assert faulty_storage.inner.list(Key.ROOT) == [Key("src")]

    def test_index_write_failure_cleans_up(self, faulty_storage, faulty_repository, newtonsoft_nupkg):
        """Test a failed index write removes every blob of the version."""
        faulty_storage.save(Key("src"), newtonsoft_nupkg)
        faulty_storage.fail_on("save", name_suffix="index.json")

        with pytest.raises(StoreFailure):
            faulty_repository.add(Key("src"))

        assert faulty_storage.inner.list(Key.ROOT) == [Key("src")]
        assert set(faulty_storage.keys("delete")) >= {
            NEWTONSOFT.nupkg_key, NEWTONSOFT.hash_key, NEWTONSOFT.nuspec_key,
        }

    def test_cleanup_failure_still_raises_store_failure(self, faulty_storage, faulty_repository, newtonsoft_nupkg):
        """Test a failing cleanup is logged and the original failure propagates."""
        faulty_storage.save(Key("src"), newtonsoft_nupkg)
        faulty_storage.fail_on("save", name_suffix="index.json")
        faulty_storage.fail_on("delete", name_suffix=".nuspec")

        with pytest.raises(StoreFailure, match="failed to update versions index"):
            faulty_repository.add(Key("src"))

        assert faulty_storage.inner.exists(NEWTONSOFT.nuspec_key)
        assert not faulty_storage.inner.exists(NEWTONSOFT.id.versions_key)

    def test_source_delete_failure_after_commit(self, faulty_storage, faulty_repository, newtonsoft_nupkg):
        """Test the version stays published when removing the upload fails."""
        faulty_storage.save(Key("src"), newtonsoft_nupkg)
        faulty_storage.fail_on("delete", name_suffix="src")

        with pytest.raises(StoreFailure, match="failed to delete uploaded package"):
            faulty_repository.add(Key("src"))

        faulty_storage.clear_faults()
        assert faulty_repository.versions(NEWTONSOFT.id).versions == ["12.0.3"]

    def test_lock_released_after_failure(self, faulty_storage, faulty_repository, newtonsoft_nupkg):
        """Test the marker is gone after a failed publish, so a retry can succeed."""
        faulty_storage.save(Key("src"), newtonsoft_nupkg)
        faulty_storage.fail_on("save", name_suffix=".nuspec", once=True)

        with pytest.raises(StoreFailure):
            faulty_repository.add(Key("src"))
        assert not faulty_storage.inner.exists(lock_key(NEWTONSOFT.id.versions_key))

        assert faulty_repository.add(Key("src")) == NEWTONSOFT

    def test_versions_read_failure(self, faulty_storage, faulty_repository):
        """Test an I/O error reading the index becomes StoreFailure."""
        faulty_storage.fail_on("value", name_suffix="index.json")
        with pytest.raises(StoreFailure):
            faulty_repository.versions(PackageId("Lib"))
