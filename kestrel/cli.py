"""Kestrel CLI.

Commands:
    serve   - Serve an application with uvicorn
    routes  - Print the bound routes of an application

TARGET is ``package.module:attribute`` naming a ``Kestrel`` instance or a
zero-argument factory returning one.
"""

import importlib
import logging
import os
import sys
from typing import Tuple

import click

from . import __version__
from .app import Kestrel


logger = logging.getLogger("kestrel.cli")


def load_target(target: str) -> Tuple[Kestrel, bool]:
    """
    Import ``module:attribute`` and return the application.

    Returns:
        The application and whether the attribute was a factory
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise click.BadParameter(f"expected 'module:attribute', got {target!r}", param_hint="TARGET")

    # Resolve targets relative to the working directory
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="TARGET") from e

    try:
        obj = getattr(module, attribute)
    except AttributeError:
        raise click.BadParameter(f"{module_name!r} has no attribute {attribute!r}", param_hint="TARGET") from None

    if isinstance(obj, Kestrel):
        return obj, False
    if callable(obj):
        app = obj()
        if isinstance(app, Kestrel):
            return app, True
    raise click.BadParameter(f"{target!r} is not a Kestrel application or factory", param_hint="TARGET")


@click.group()
@click.version_option(version=__version__, prog_name="kestrel")
def cli():
    """Declarative routing and dependency injection on ASGI."""


@cli.command("serve")
@click.argument("target")
@click.option("--host", type=str, default=None, help="Server host (default: KESTREL_HOST)")
@click.option("--port", type=int, default=None, help="Server port (default: KESTREL_PORT)")
@click.option("--reload/--no-reload", default=False, help="Enable hot-reload")
@click.option(
    "--log-level",
    type=click.Choice(["critical", "error", "warning", "info", "debug"], case_sensitive=False),
    default=None,
    help="Logging level (default: KESTREL_LOG_LEVEL)",
)
def serve(target: str, host, port, reload: bool, log_level):
    """
    Serve TARGET with uvicorn.

    Examples:
      kestrel serve examples.users.app:create_app
      kestrel serve myapp:app --port=8080 --reload
    """
    import uvicorn

    app, is_factory = load_target(target)
    config = app.config
    host = host or config.host
    port = port or config.port
    log_level = (log_level or config.log_level).lower()

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    logger.info(f"Starting uvicorn server on {host}:{port}")

    try:
        if reload:
            uvicorn.run(target, factory=is_factory, host=host, port=port, reload=True, log_level=log_level)
        else:
            uvicorn.run(app, host=host, port=port, log_level=log_level)
    except KeyboardInterrupt:
        click.echo("Server stopped")


@cli.command("routes")
@click.argument("target")
def routes(target: str):
    """
    Print the routes bound by TARGET.

    Example:
      kestrel routes examples.users.app:create_app
    """
    app, _ = load_target(target)
    bound = app.routes
    if not bound:
        click.echo("No routes registered")
        return

    rows = [
        (
            r.verb.upper(),
            r.path,
            f"{r.controller.__name__}.{r.handler_name}",
            str(len(r.guards)),
            str(len(r.filters)),
        )
        for r in bound
    ]
    headers = ("METHOD", "PATH", "HANDLER", "GUARDS", "FILTERS")
    widths = [max(len(row[i]) for row in (headers, *rows)) for i in range(len(headers))]
    for row in (headers, *rows):
        click.echo("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())


def main():
    """Entry point for `kestrel` command."""
    try:
        cli()
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
