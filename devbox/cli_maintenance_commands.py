"""Maintenance CLI commands: update, backup, cleanup."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from devbox.cli_support import build_services, get_settings, print_success, reported_errors


def register_maintenance_commands(root: typer.Typer, console: Console) -> None:
    """Attach maintenance commands to the main CLI."""

    @root.command("update")
    def update_command(
        ctx: typer.Context,
        force: bool = typer.Option(False, "--force", help="Do not ask for confirmation."),
    ) -> None:
        """Pull the latest image and remove the container (data is kept)."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            build_services(settings, force=force).maintenance().update_image()

    @root.command("backup")
    def backup_command(
        ctx: typer.Context,
        output: Optional[str] = typer.Option(None, "--output", "-o", help="Archive path."),
        no_compress: bool = typer.Option(False, "--no-compress", help="Write a plain .tar archive."),
        include_container: bool = typer.Option(
            False, "--include-container", help="Also snapshot the container as an image."
        ),
    ) -> None:
        """Archive the data directory."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            archive = build_services(settings).maintenance().backup(
                output=output,
                compress=not no_compress,
                include_container=include_container,
            )
        if archive is not None:
            print_success(console, f"Backup written to {archive}")

    @root.command("cleanup")
    def cleanup_command(
        ctx: typer.Context,
        all_resources: bool = typer.Option(False, "--all", help="Also remove unused images, not just dangling ones."),
        images: bool = typer.Option(False, "--images", help="Prune all unused images."),
        volumes: bool = typer.Option(False, "--volumes", help="Prune unused volumes."),
        force: bool = typer.Option(False, "--force", help="Do not ask for confirmation."),
    ) -> None:
        """Remove unused Docker resources."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            reports = build_services(settings, force=force).maintenance().cleanup(
                all_resources=all_resources, images=images, volumes=volumes
            )
        for report in reports:
            console.print(report, style="dim", markup=False, highlight=False)
