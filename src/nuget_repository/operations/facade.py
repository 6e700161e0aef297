"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the repository engine,
centralizing command orchestration while keeping CLI commands thin and
testable.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask

from ..identity import PackageId, PackageIdentity
from ..lock import sweep_stale_locks
from ..metadata import Registration, ServiceIndex, content_url
from ..repository import Repository
from ..settings import Settings
from ..storage.key import Key
from ..versions import VersionsIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes output policy so commands do not each carry their own flags.
    """
    verbose: bool = False         # Debug logging; also runs the server in Flask debug mode


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Exceptions bubble up unchanged so the CLI can map
    them to exit codes in one place (``run_and_exit``).
    """

    def __init__(self, config: OpsConfig, repository: Repository, settings: Settings):
        """
        Initialize Operations facade.

        Args:
            config: Output configuration
            repository: Repository the commands act on
            settings: Settings providing base URL, bind address and lock TTL
        """
        self.cfg = config
        self.repository = repository
        self.settings = settings

    def push(self, path: str | Path) -> PackageIdentity:
        """
        Publish a local ``.nupkg`` file.

        Args:
            path: Package file

        Returns:
            Identity of the published package

        Raises:
            FileNotFoundError: If ``path`` does not exist
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Package file not found: {path}")
        return self.repository.publish(path.read_bytes())

    def versions(self, package_id: str) -> Tuple[PackageId, VersionsIndex]:
        """
        Published versions of a package.

        Args:
            package_id: Package id, any case

        Returns:
            Validated id and its versions index
        """
        pid = PackageId(package_id)
        return pid, self.repository.versions(pid)

    def registration(self, package_id: str) -> Dict[str, Any]:
        """
        Registration index of a package, as served over HTTP.

        Args:
            package_id: Package id, any case

        Returns:
            Registration index JSON document
        """
        urls = content_url(self.settings.public_base_url)
        return Registration(self.repository, urls, PackageId(package_id)).json()

    def service_index(self) -> Dict[str, Any]:
        """
        Service index for the configured base URL.

        Returns:
            Service index JSON document
        """
        return ServiceIndex(self.settings.public_base_url).json()

    def sweep_locks(self, ttl: Optional[float] = None) -> Tuple[List[Key], float]:
        """
        Remove orphaned lock markers.

        Args:
            ttl: Age threshold in seconds; defaults to ``settings.lock_ttl_s``

        Returns:
            Removed marker keys and the threshold used

        Raises:
            ValueError: If no threshold is given and none is configured
        """
        if ttl is None:
            ttl = self.settings.lock_ttl_s
        if ttl is None:
            raise ValueError("No lock TTL configured; pass --ttl")
        if ttl <= 0:
            raise ValueError("Lock TTL must be positive")
        return sweep_stale_locks(self.repository.storage, ttl), ttl

    def app(self) -> Flask:
        """
        Flask application serving the repository.

        Returns:
            Configured Flask app
        """
        # Import here to avoid circular dependencies
        from ..http import create_app

        return create_app(self.repository, self.settings.public_base_url)

    def serve(self) -> None:
        """Run the HTTP server on ``settings.host``:``settings.port`` until interrupted."""
        logger.info(f"Starting NuGet repository on {self.settings.host}:{self.settings.port}")
        logger.info(f"Advertised base URL: {self.settings.public_base_url}")
        self.app().run(host=self.settings.host, port=self.settings.port, debug=self.cfg.verbose)
