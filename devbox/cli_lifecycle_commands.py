"""Container lifecycle CLI commands."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from devbox.cli_support import (
    build_services,
    get_settings,
    print_error,
    print_info,
    print_success,
    reported_errors,
)
from devbox.core.config import RuntimeSettings
from devbox.services.host import detect_external_volumes

DATA_DIR_NAME = "ubuntu-data"

# Everything after the first positional belongs to the container command
PASSTHROUGH = {"allow_interspersed_args": False, "ignore_unknown_options": True}


def choose_data_path(
    console: Console,
    settings: RuntimeSettings,
    path: Optional[str],
    default: str,
    force: bool = False,
) -> Optional[str]:
    """Pick the data directory for setup.

    ``--path P`` maps to ``P/ubuntu-data``; DATA_PATH wins next; otherwise
    mounted external volumes are offered interactively. None keeps the
    configured default.
    """
    if path:
        return str(Path(path).expanduser() / DATA_DIR_NAME)
    if settings.data_path:
        return settings.data_path

    volumes = detect_external_volumes()
    if not volumes or force or settings.force or settings.dry_run:
        return None

    console.print("\n[bold]External volumes detected:[/bold]")
    for index, volume in enumerate(volumes, start=1):
        console.print(f"  {index}. {volume}/{DATA_DIR_NAME}")
    console.print(f"  0. Keep default ({default})")

    choice = typer.prompt("Where should the data directory live?", type=int, default=0)
    if choice == 0:
        return None
    if not 1 <= choice <= len(volumes):
        print_error(console, f"Invalid choice: {choice}")
        raise typer.Exit(1)
    return str(Path(volumes[choice - 1]) / DATA_DIR_NAME)


def register_lifecycle_commands(root: typer.Typer, console: Console) -> None:
    """Attach lifecycle commands to the main CLI."""

    @root.command("setup")
    def setup_command(
        ctx: typer.Context,
        path: Optional[str] = typer.Option(
            None, "--path", "-p", help="Parent directory for the data directory (uses PATH/ubuntu-data)."
        ),
        docker_bin: Optional[str] = typer.Option(None, "--docker-bin", help="Path to the docker binary."),
        image: Optional[str] = typer.Option(None, "--image", help="Image to run (default: ubuntu:latest)."),
        force: bool = typer.Option(False, "--force", help="Skip prompts."),
    ) -> None:
        """Create the dev container with its data directory mounted at /data."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            services = build_services(settings, force=force, docker_bin=docker_bin)
            data_path = choose_data_path(
                console, settings, path, services.store.current.data_path, force=force
            )
            services.lifecycle().setup(data_path=data_path, image=image)

        print_success(console, "Setup complete")
        console.print("\n[bold]Next steps:[/bold]")
        console.print("  devbox start       # Start and attach")
        console.print("  devbox status      # Check status")

    @root.command("start")
    def start_command(
        ctx: typer.Context,
        attach: bool = typer.Option(False, "--attach", "-a", help="Attach a shell if already running."),
        detach: bool = typer.Option(False, "--detach", "-d", help="Start in the background."),
    ) -> None:
        """Start the container (attached unless --detach)."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            exit_code = build_services(settings).lifecycle().start(detach=detach, attach=attach)
        if exit_code != 0:
            raise typer.Exit(exit_code)
        if detach:
            print_info(console, "Attach with: devbox attach")

    @root.command("stop")
    def stop_command(
        ctx: typer.Context,
        force: bool = typer.Option(False, "--force", help="Do not ask for confirmation."),
    ) -> None:
        """Stop the running container."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            build_services(settings, force=force).lifecycle().stop()

    @root.command("restart")
    def restart_command(
        ctx: typer.Context,
        force: bool = typer.Option(False, "--force", help="Kill instead of a graceful stop (also FORCE=1)."),
        timeout: int = typer.Option(10, "--timeout", help="Seconds to wait for a graceful stop."),
    ) -> None:
        """Restart the container."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            build_services(settings, force=force).lifecycle().restart(
                force=force or settings.force, timeout=timeout
            )

    @root.command("delete")
    def delete_command(
        ctx: typer.Context,
        force: bool = typer.Option(False, "--force", help="Do not ask for confirmation."),
        keep_data: bool = typer.Option(False, "--keep-data", help="Never offer to delete the data directory."),
    ) -> None:
        """Delete the container (the data directory is kept unless you say otherwise)."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            build_services(settings, force=force).lifecycle().delete(keep_data=keep_data)

    @root.command("attach", context_settings=PASSTHROUGH)
    def attach_command(
        ctx: typer.Context,
        command: Optional[List[str]] = typer.Argument(
            None, help="Command to run (default: /bin/bash).", metavar="[COMMAND]..."
        ),
        start: bool = typer.Option(False, "--start", help="Start the container first if stopped."),
    ) -> None:
        """Open a shell (or run a command) in the container."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            exit_code = build_services(settings).lifecycle().attach(command or [], auto_start=start)
        if exit_code != 0:
            raise typer.Exit(exit_code)

    @root.command("exec", context_settings=PASSTHROUGH)
    def exec_command(
        ctx: typer.Context,
        command: List[str] = typer.Argument(..., help="Command to run in the container.", metavar="COMMAND..."),
        interactive: bool = typer.Option(False, "--interactive", "-i", help="Keep stdin open."),
    ) -> None:
        """Run a command in the running container."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            exit_code = build_services(settings).lifecycle().exec(command, interactive=interactive)
        if exit_code != 0:
            raise typer.Exit(exit_code)
