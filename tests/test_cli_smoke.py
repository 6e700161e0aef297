"""
CLI smoke tests.

Tests basic CLI functionality and command wiring against a filesystem
repository in a temporary directory. Validates that all commands can be
invoked, produce the expected output and map failures to exit codes.
"""
from __future__ import annotations

import json
import time
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from nuget_repository.cli import app
from nuget_repository.storage.filesystem import FileStorage
from nuget_repository.storage.key import Key

from tests.helpers.nupkg import build_nupkg


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the CLI at a fresh filesystem repository."""
    root = tmp_path / "data"
    monkeypatch.setenv("NUGET_REPO_STORAGE", "fs")
    monkeypatch.setenv("NUGET_REPO_STORAGE_ROOT", str(root))
    monkeypatch.setenv("NUGET_REPO_BASE_URL", "http://localhost:4321/repo")
    return root


@pytest.fixture
def package_file(tmp_path):
    path = tmp_path / "My.Lib.1.0.0.nupkg"
    path.write_bytes(build_nupkg("My.Lib", "1.0.0"))
    return path


class TestCLISmokeTests:
    """Smoke tests for CLI commands."""

    def setup_method(self):
        """Set up test environment."""
        self.runner = CliRunner()

    def test_help(self):
        """Test the app lists every command."""
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "push", "versions", "registration", "service-index", "sweep-locks"):
            assert command in result.stdout

    def test_push_then_versions(self, data_dir, package_file):
        """Test push publishes and versions lists the result."""
        result = self.runner.invoke(app, ["push", str(package_file)])
        assert result.exit_code == 0, result.output
        assert "Published" in result.stdout
        assert (data_dir / "my.lib" / "1.0.0" / "my.lib.1.0.0.nupkg").is_file()

        result = self.runner.invoke(app, ["versions", "MY.LIB"])
        assert result.exit_code == 0
        assert "1.0.0" in result.stdout

    def test_versions_unknown_package(self, data_dir):
        """Test versions of an unknown package succeeds with an empty listing."""
        result = self.runner.invoke(app, ["versions", "Nope"])
        assert result.exit_code == 0
        assert "No versions published" in result.stdout

    def test_push_duplicate_exit_code(self, data_dir, package_file):
        """Test a duplicate push exits with code 4."""
        assert self.runner.invoke(app, ["push", str(package_file)]).exit_code == 0
        result = self.runner.invoke(app, ["push", str(package_file)])
        assert result.exit_code == 4

    def test_push_invalid_package_exit_code(self, data_dir, tmp_path):
        """Test an invalid package exits with code 2."""
        path = tmp_path / "broken.nupkg"
        path.write_bytes(b"not a zip")
        result = self.runner.invoke(app, ["push", str(path)])
        assert result.exit_code == 2

    def test_push_missing_file(self, data_dir, tmp_path):
        """Test a missing package file exits with the fallback code."""
        result = self.runner.invoke(app, ["push", str(tmp_path / "absent.nupkg")])
        assert result.exit_code == 3

    def test_registration(self, data_dir, package_file):
        """Test registration prints the index JSON."""
        self.runner.invoke(app, ["push", str(package_file)])
        result = self.runner.invoke(app, ["registration", "my.lib"])
        assert result.exit_code == 0
        document = json.loads(result.stdout)
        item = document["items"][0]["items"][0]
        assert item["packageContent"] == "http://localhost:4321/repo/content/my.lib/1.0.0/my.lib.1.0.0.nupkg"

    def test_registration_unknown_package(self, data_dir):
        """Test registration of an unknown package exits with code 1."""
        result = self.runner.invoke(app, ["registration", "nope"])
        assert result.exit_code == 1

    def test_invalid_package_id(self, data_dir):
        """Test an invalid id argument exits with code 2."""
        result = self.runner.invoke(app, ["versions", "../etc"])
        assert result.exit_code == 2

    def test_service_index(self, data_dir):
        """Test service-index prints the advertised resources."""
        result = self.runner.invoke(app, ["service-index"])
        assert result.exit_code == 0
        document = json.loads(result.stdout)
        assert document["resources"][0]["@id"] == "http://localhost:4321/repo/package"

    def test_sweep_locks(self, data_dir):
        """Test sweep-locks removes stale markers only."""
        storage = FileStorage(data_dir)
        stale = json.dumps({"owner": "x", "acquired_at": time.time() - 3600}).encode()
        fresh = json.dumps({"owner": "y", "acquired_at": time.time()}).encode()
        storage.save(Key("a/index.json.lock"), stale)
        storage.save(Key("b/index.json.lock"), fresh)

        result = self.runner.invoke(app, ["sweep-locks", "--ttl", "60"])

        assert result.exit_code == 0
        assert "a/index.json.lock" in result.stdout
        assert not storage.exists(Key("a/index.json.lock"))
        assert storage.exists(Key("b/index.json.lock"))

    def test_sweep_locks_without_ttl(self, data_dir, monkeypatch):
        """Test sweep-locks fails when expiry is disabled and no --ttl given."""
        monkeypatch.setenv("NUGET_REPO_LOCK_TTL", "0")
        result = self.runner.invoke(app, ["sweep-locks"])
        assert result.exit_code == 2

    def test_config_file(self, tmp_path, package_file):
        """Test --config selects settings from YAML."""
        root = tmp_path / "from-config"
        config = tmp_path / "nuget.yaml"
        config.write_text(f"storage_backend: fs\nstorage_root: {root}\nbase_url: https://pkgs.example.org\n")

        result = self.runner.invoke(app, ["--config", str(config), "push", str(package_file)])

        assert result.exit_code == 0, result.output
        assert (root / "my.lib" / "index.json").is_file()

    def test_invalid_config_exit_code(self, tmp_path):
        """Test invalid settings exit with code 2."""
        config = tmp_path / "nuget.yaml"
        config.write_text("port: 0\n")
        result = self.runner.invoke(app, ["--config", str(config), "service-index"])
        assert result.exit_code == 2

    def test_serve_runs_flask_app(self, data_dir, monkeypatch):
        """Test serve starts the Flask app on the configured address."""
        monkeypatch.setenv("NUGET_REPO_HOST", "0.0.0.0")
        monkeypatch.setenv("NUGET_REPO_PORT", "9123")
        with patch("flask.Flask.run") as run:
            result = self.runner.invoke(app, ["serve"])
        assert result.exit_code == 0, result.output
        run.assert_called_once()
        assert run.call_args.kwargs["host"] == "0.0.0.0"
        assert run.call_args.kwargs["port"] == 9123
