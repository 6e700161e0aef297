"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings, storage
and repository instances, avoiding global state and enabling proper
dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .repository import Repository
from .settings import Settings, create_settings_from_env, create_settings_from_file
from .storage.base import Storage
from .storage.factory import storage_for


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, storage, repository)
    that are initialized once and shared across a CLI command execution.
    """
    settings: Settings
    _storage: Optional[Storage] = None
    _repository: Optional[Repository] = None

    @classmethod
    def from_env(cls) -> CLIContext:
        """
        Create CLI context from environment variables.

        Returns:
            CLIContext with settings loaded from environment
        """
        return cls(settings=create_settings_from_env())

    @classmethod
    def from_config(cls, path: Optional[Path]) -> CLIContext:
        """
        Create CLI context from a YAML config file, or the environment when
        no file is given.

        Args:
            path: Config file path

        Returns:
            CLIContext with settings loaded from file and environment
        """
        if path is None:
            return cls.from_env()
        return cls(settings=create_settings_from_file(path))

    @property
    def storage(self) -> Storage:
        """
        Get or create the storage backend (lazy initialization).

        Returns:
            Storage selected by ``settings.storage_backend``
        """
        if self._storage is None:
            self._storage = storage_for(self.settings)
        return self._storage

    @property
    def repository(self) -> Repository:
        """
        Get or create the repository over ``storage`` (lazy initialization).

        Returns:
            Repository instance
        """
        if self._repository is None:
            self._repository = Repository(self.storage, lock_ttl=self.settings.lock_ttl_s)
        return self._repository
