#!/usr/bin/env python3
"""devbox CLI - lifecycle manager for a persistent Docker dev environment."""
from typing import Optional

import typer

from devbox import __version__
from devbox.cli_config_commands import register_config_commands
from devbox.cli_lifecycle_commands import register_lifecycle_commands
from devbox.cli_maintenance_commands import register_maintenance_commands
from devbox.cli_status_commands import register_status_commands
from devbox.core.config import RuntimeSettings
from devbox.core.logger import configure_logging, console, get_logger, setup_file_logging

app = typer.Typer(
    name="devbox",
    help="""devbox - a persistent Ubuntu dev container, managed from the host

Your data lives on the host and is mounted at /data in the container.

Quick start:
  devbox setup            # Create the container
  devbox start            # Start and attach
  devbox status           # Check everything

Environment: DRY_RUN=1, FORCE=1, DEBUG=1, CONTAINER_NAME, DATA_PATH
""",
    add_completion=False,
    no_args_is_help=True,
)

logger = get_logger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"devbox {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    log_file: Optional[str] = typer.Option(
        None, "--log-file", help="Also write logs to this file."
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    settings = RuntimeSettings.from_env()
    ctx.obj = settings

    configure_logging(debug=settings.debug_logging, show_timestamps=settings.show_timestamps)
    if log_file:
        setup_file_logging(log_file=log_file, verbose=settings.debug_logging)
    if settings.dry_run:
        logger.info("[DRY RUN] No changes will be made")


# Attach modular subcommands
register_lifecycle_commands(app, console)
register_status_commands(app, console)
register_maintenance_commands(app, console)
register_config_commands(app, console)

if __name__ == "__main__":
    app()
