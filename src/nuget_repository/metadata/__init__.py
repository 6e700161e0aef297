"""
NuGet v3 JSON resources.

Builders for the service index and the registration (package metadata)
documents served over HTTP and printed by the CLI.
"""

from .registration import ContentUrl, Registration, RegistrationPage, content_url
from .service_index import ServiceIndex

__all__ = ["ContentUrl", "Registration", "RegistrationPage", "ServiceIndex", "content_url"]
