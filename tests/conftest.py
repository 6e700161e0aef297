"""Root pytest configuration for nuget-repository tests."""
import pytest

from nuget_repository.repository import Repository
from nuget_repository.settings import Settings
from nuget_repository.storage.memory import InMemoryStorage

from tests.helpers.nupkg import build_nupkg
from tests.storage.fakes import FaultyStorage

ENV_VARS = (
    "NUGET_REPO_BASE_URL",
    "NUGET_REPO_HOST",
    "NUGET_REPO_PORT",
    "NUGET_REPO_LOG_LEVEL",
    "NUGET_REPO_STORAGE",
    "NUGET_REPO_STORAGE_ROOT",
    "NUGET_REPO_LOCK_TTL",
    "NUGET_REPO_AZURE_BLOB_ENDPOINT",
    "NUGET_REPO_AZURE_CONTAINER",
    "NUGET_REPO_EXT_TIMEOUT",
    "NUGET_REPO_CONFIG",
    "AZURE_STORAGE_CONNECTION_STRING",
    "AZURE_STORAGE_ACCOUNT",
    "AZURE_STORAGE_KEY",
)


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Isolate tests from the developer's environment
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically clear repository environment variables."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# Standardized test fixtures
@pytest.fixture
def settings(tmp_path):
    """Standard test settings over a temporary fs root."""
    return Settings(
        base_url="http://localhost:4321/repo",
        storage_backend="fs",
        storage_root=str(tmp_path / "data"),
    )


@pytest.fixture
def storage():
    """Standard in-memory store for testing."""
    return InMemoryStorage()


@pytest.fixture
def faulty_storage():
    """Fault-injecting store for failure-path tests."""
    return FaultyStorage()


@pytest.fixture
def repository(storage):
    """Repository over the in-memory store."""
    return Repository(storage)


@pytest.fixture
def make_nupkg():
    """Factory building nupkg bytes; see ``tests.helpers.nupkg.build_nupkg``."""
    return build_nupkg


@pytest.fixture
def newtonsoft_nupkg():
    """Synthesized Newtonsoft.Json 12.0.3 package."""
    return build_nupkg("Newtonsoft.Json", "12.0.3")
