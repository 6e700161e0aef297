"""
Flask application and NuGet v3 endpoints.

Serves the service index, package publish, PackageBaseAddress (flat
container) and registration resources of a ``Repository``:

    GET /index.json
    PUT /package
    GET /content/<id>/index.json
    GET /content/<id>/<version>/<id>.<version>.nupkg
    GET /content/<id>/<version>/<id>.nuspec
    GET /registrations/<id>/index.json
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

from flask import Flask, Response, request
from werkzeug.exceptions import HTTPException

from ..errors import PackageNotFound, RepositoryError
from ..identity import PackageId, PackageIdentity
from ..metadata import Registration, ServiceIndex, content_url
from ..operations.mappers import error_body, http_status_for
from ..repository import Repository
from ..version import Version

__all__ = ["create_app"]

logger = logging.getLogger(__name__)

JSON_MIMETYPE = "application/json"
NUPKG_MIMETYPE = "application/octet-stream"
NUSPEC_MIMETYPE = "application/xml"


def _json_response(document: Dict[str, Any], status: int = 200) -> Response:
    return Response(json.dumps(document), status=status, mimetype=JSON_MIMETYPE)


def create_app(repository: Repository, base_url: str) -> Flask:
    """
    Build the Flask app serving ``repository``.

    Args:
        repository: Repository to serve
        base_url: Public URL the app is reachable at; resource URLs in the
            service index and registrations are built from it

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    service_index = ServiceIndex(base_url)
    package_url = content_url(base_url)

    @app.route("/index.json", methods=["GET"])
    def get_service_index():
        """NuGet v3 service index."""
        return _json_response(service_index.json())

    @app.route("/package", methods=["PUT"])
    def put_package():
        """
        Publish a package.

        Accepts the ``multipart/form-data`` upload sent by ``nuget push``
        (first file part, normally ``package``) or the raw nupkg as body.

        Returns:
            201 on success; 400 invalid package, 409 version exists or
            publish in progress
        """
        upload = next(iter(request.files.values()), None)
        content = upload.read() if upload is not None else request.get_data()
        logger.debug(f"Upload received: {len(content)} bytes")

        repository.publish(content)
        return Response(status=201)

    @app.route("/content/<package_id>/index.json", methods=["GET"])
    def get_package_versions(package_id):
        """Versions index of a package; empty list for unknown packages."""
        index = repository.versions(PackageId(package_id))
        return Response(index.json_bytes(), status=200, mimetype=JSON_MIMETYPE)

    @app.route("/content/<package_id>/<version>/<filename>", methods=["GET"])
    def get_package_content(package_id, version, filename):
        """Stored nupkg or nuspec of a published version."""
        identity = PackageIdentity(PackageId(package_id), Version(version))
        name = filename.lower()

        if name == identity.nupkg_key.name:
            content = repository.package_content(identity)
            return Response(content, status=200, mimetype=NUPKG_MIMETYPE)
        if name == identity.nuspec_key.name:
            nuspec = repository.nuspec(identity)
            return Response(nuspec.content(), status=200, mimetype=NUSPEC_MIMETYPE)
        raise PackageNotFound("file not found", identity)

    @app.route("/registrations/<package_id>/index.json", methods=["GET"])
    def get_registration(package_id):
        """Registration index of a package."""
        registration = Registration(repository, package_url, PackageId(package_id))
        return _json_response(registration.json())

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        response = _json_response({"error": e.name}, status=e.code or 500)
        # 405 responses must list the allowed methods
        allow = e.get_response().headers.get("Allow")
        if allow:
            response.headers["Allow"] = allow
        return response

    @app.errorhandler(RepositoryError)
    def handle_repository_error(e):
        status = http_status_for(e)
        if status >= 500:
            logger.error(f"{request.method} {request.path} failed: {type(e).__name__}: {e}")
        else:
            logger.info(f"{request.method} {request.path} rejected ({status}): {e}")
        return _json_response(error_body(e), status=status)

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        logger.info(f"{request.method} {request.path} rejected (400): {e}")
        return _json_response(error_body(e), status=http_status_for(e))

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"{request.method} {request.path} failed")
        return _json_response({"error": "internal server error"}, status=500)

    return app
