"""
NuGet Repository CLI

Implements 6 CLI verbs over the Operations facade:
- serve: Run the HTTP server
- push: Publish a local .nupkg
- versions: List published versions of a package
- registration: Print the registration index of a package
- service-index: Print the service index
- sweep-locks: Remove orphaned lock markers
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .cli_context import CLIContext
from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_json, print_publish_summary, print_swept_locks, print_versions
)

app = typer.Typer(name="nuget-repository", help="NuGet v3 package repository")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", envvar="NUGET_REPO_CONFIG", help="YAML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
) -> None:
    """NuGet v3 package repository."""
    ctx.obj = {"config": config, "verbose": verbose}


def _operations(ctx: typer.Context) -> Operations:
    """
    Build the facade for a command and configure logging from settings.

    Settings are loaded inside the command so configuration errors map to
    exit codes like any other failure.
    """
    options = ctx.obj or {}
    verbose = options.get("verbose", False)
    context = CLIContext.from_config(options.get("config"))

    level = logging.DEBUG if verbose else getattr(logging, context.settings.log_level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    return Operations(
        config=OpsConfig(verbose=verbose),
        repository=context.repository,
        settings=context.settings
    )


@app.command()
def serve(ctx: typer.Context) -> None:
    """Serve the repository over HTTP."""

    def _serve() -> None:
        ops = _operations(ctx)
        ops.serve()

    run_and_exit(_serve)


@app.command()
def push(
    ctx: typer.Context,
    package: Path = typer.Argument(..., help="Path to the .nupkg file")
) -> None:
    """Publish a local package."""

    def _push() -> None:
        ops = _operations(ctx)
        identity = ops.push(package)
        print_publish_summary(identity)

    run_and_exit(_push)


@app.command()
def versions(
    ctx: typer.Context,
    package_id: str = typer.Argument(..., help="Package id")
) -> None:
    """List published versions of a package."""

    def _versions() -> None:
        ops = _operations(ctx)
        pid, index = ops.versions(package_id)
        print_versions(pid, index)

    run_and_exit(_versions)


@app.command()
def registration(
    ctx: typer.Context,
    package_id: str = typer.Argument(..., help="Package id")
) -> None:
    """Print the registration index of a package."""

    def _registration() -> None:
        ops = _operations(ctx)
        print_json(ops.registration(package_id))

    run_and_exit(_registration)


@app.command("service-index")
def service_index(ctx: typer.Context) -> None:
    """Print the service index."""

    def _service_index() -> None:
        ops = _operations(ctx)
        print_json(ops.service_index())

    run_and_exit(_service_index)


@app.command("sweep-locks")
def sweep_locks(
    ctx: typer.Context,
    ttl: Optional[float] = typer.Option(None, "--ttl", help="Age in seconds after which a lock counts as stale (default: configured lock TTL)")
) -> None:
    """Remove lock markers left behind by crashed writers."""

    def _sweep() -> None:
        ops = _operations(ctx)
        removed, threshold = ops.sweep_locks(ttl)
        print_swept_locks(removed, threshold)

    run_and_exit(_sweep)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
