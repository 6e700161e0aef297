"""
Tests for the per-package versions index.
"""
from __future__ import annotations

import pytest

from nuget_repository.errors import CorruptIndex
from nuget_repository.identity import PackageId
from nuget_repository.storage.key import Key
from nuget_repository.version import Version
from nuget_repository.versions import VersionsIndex


class TestLoad:
    """Test reading stored indexes."""

    def test_absent_index_is_empty(self, storage):
        """Test a package with no index has no versions."""
        assert VersionsIndex.load(storage, PackageId("Lib")).versions == []

    def test_reads_stored_versions(self, storage):
        """Test a stored index is read back in order."""
        storage.save(Key("lib/index.json"), b'{"versions":["1.0.0","0.9.0"]}')
        assert VersionsIndex.load(storage, PackageId("LIB")).versions == ["1.0.0", "0.9.0"]

    @pytest.mark.parametrize("data", [
        b"not json",
        b"[]",
        b"{}",
        b'{"versions": "1.0.0"}',
        b'{"versions": [1, 2]}',
        b'{"versions": [null]}',
    ])
    def test_corrupt_index(self, storage, data):
        """Test non-conforming documents raise CorruptIndex."""
        storage.save(Key("lib/index.json"), data)
        with pytest.raises(CorruptIndex, match="versions index is corrupt"):
            VersionsIndex.load(storage, PackageId("Lib"))


class TestUpdate:
    """Test adding versions and serialization."""

    def test_add_appends_normalized(self):
        """Test add appends the normalized version and returns a new index."""
        index = VersionsIndex(versions=["1.0.0"])
        updated = index.add(Version("1.1.0.0"))
        assert updated.versions == ["1.0.0", "1.1.0"]
        assert index.versions == ["1.0.0"]

    def test_add_existing_is_noop(self):
        """Test adding a listed version keeps the index unchanged."""
        index = VersionsIndex(versions=["1.0.0"])
        assert index.add(Version("1.0.0.0")).versions == ["1.0.0"]

    def test_contains_uses_normalized_form(self):
        """Test contains compares normalized versions."""
        index = VersionsIndex(versions=["1.0.0-beta"])
        assert index.contains(Version("1.0.0-BETA"))
        assert not index.contains(Version("1.0.0"))

    def test_json_bytes_compact(self):
        """Test the serialized form."""
        index = VersionsIndex(versions=["1.0.0", "1.0.1"])
        assert index.json_bytes() == b'{"versions":["1.0.0","1.0.1"]}'

    def test_save_and_reload(self, storage):
        """Test a saved index loads back equal and byte-identical."""
        key = Key("lib/index.json")
        VersionsIndex(versions=["0.1", "0.2"]).save(storage, key)
        assert storage.value(key) == b'{"versions":["0.1","0.2"]}'
        assert VersionsIndex.load_key(storage, key).versions == ["0.1", "0.2"]
