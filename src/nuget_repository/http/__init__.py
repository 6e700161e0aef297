"""HTTP surface: Flask application serving the NuGet v3 API."""

from .app import create_app

__all__ = ["create_app"]
