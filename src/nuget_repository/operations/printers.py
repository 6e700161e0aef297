"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin. JSON documents
are printed verbatim so they can be piped into other tools.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

import typer
from rich.console import Console
from rich.table import Table

from ..identity import PackageId, PackageIdentity
from ..storage.key import Key
from ..versions import VersionsIndex

_console = Console()


def print_json(document: Dict[str, Any]) -> None:
    """
    Print a JSON document.

    Args:
        document: JSON-serializable mapping
    """
    typer.echo(json.dumps(document, indent=2))


def print_publish_summary(identity: PackageIdentity) -> None:
    """
    Print result of a successful push.

    Args:
        identity: Published package identity
    """
    _console.print(f"[bold green]Published[/] {identity.id.original} {identity.version.normalized}")


def print_versions(package_id: PackageId, index: VersionsIndex) -> None:
    """
    Print published versions of a package, in publish order.

    Args:
        package_id: Package queried
        index: Its versions index
    """
    if not index.versions:
        _console.print(f"[dim]No versions published for {package_id.lower}[/]")
        return

    table = Table(title=f"{package_id.original} ({len(index.versions)} versions)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Version", style="cyan")
    for position, version in enumerate(index.versions, start=1):
        table.add_row(str(position), version)
    _console.print(table)


def print_swept_locks(removed: List[Key], ttl: float) -> None:
    """
    Print stale lock markers removed by a sweep.

    Args:
        removed: Marker keys deleted
        ttl: Age threshold used, in seconds
    """
    if not removed:
        _console.print(f"No lock markers older than {ttl:g}s")
        return
    for key in removed:
        typer.echo(f"Removed {key}")
    _console.print(f"[bold]{len(removed)}[/] stale lock marker(s) removed")
