"""
Error mapping and CLI utilities.

Provides centralized exception-to-status mapping for both surfaces: HTTP
status codes for the Flask app and exit codes for Typer commands.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, TypeVar

import typer

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Keyed by class name; lookups walk the MRO so subclasses inherit a mapping
HTTP_STATUS: Dict[str, int] = {
    "InvalidPackage": 400,
    "PackageVersionAlreadyExists": 409,
    "PackageNotFound": 404,
    "LockUnavailable": 409,
    "CorruptIndex": 500,
    "StoreFailure": 500,
    "IllegalState": 500,
    "ValueError": 400,
}

EXIT_CODES: Dict[str, int] = {
    "PackageNotFound": 1,
    "InvalidPackage": 2,
    "ValueError": 2,
    "CorruptIndex": 3,
    "StoreFailure": 3,
    "IllegalState": 3,
    "PackageVersionAlreadyExists": 4,
    "LockUnavailable": 5,
}

DEFAULT_HTTP_STATUS = 500
DEFAULT_EXIT_CODE = 3


def _lookup(table: Dict[str, int], exc: BaseException, default: int) -> int:
    for cls in type(exc).__mro__:
        if cls.__name__ in table:
            return table[cls.__name__]
    return default


def http_status_for(exc: BaseException) -> int:
    """
    Map exception to HTTP status code.

    - 400: Invalid package, or invalid id / version (ValueError)
    - 404: Package not found
    - 409: Version already exists, or lock held by another writer
    - 500: Corrupt index, store failure, illegal state or unknown error

    Args:
        exc: Exception to map

    Returns:
        HTTP status code (500 as fallback for unknown exceptions)
    """
    return _lookup(HTTP_STATUS, exc, DEFAULT_HTTP_STATUS)


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    - 0: Success
    - 1: Package not found (PackageNotFound)
    - 2: Invalid package or argument (InvalidPackage, ValueError)
    - 3: Store, index or unknown error
    - 4: Version already exists (PackageVersionAlreadyExists)
    - 5: Lock held by another writer (LockUnavailable)

    Args:
        exc: Exception to map

    Returns:
        Exit code (3 as fallback for unknown exceptions)
    """
    return _lookup(EXIT_CODES, exc, DEFAULT_EXIT_CODE)


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function and maps any exceptions to appropriate
    exit codes using typer.Exit, reporting the error message on stderr.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        code = exit_code_for(e)
        if code == DEFAULT_EXIT_CODE:
            logger.error(f"{type(e).__name__}: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=code) from e


def error_body(exc: BaseException) -> Dict[str, Any]:
    """JSON error document rendered by the HTTP layer."""
    return {"error": str(exc) or type(exc).__name__}
