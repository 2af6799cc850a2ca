"""Read-only CLI commands: status, logs, inspect, list."""
from __future__ import annotations

import time
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from devbox.cli_support import (
    build_services,
    build_status_collector,
    get_settings,
    print_info,
    print_warning,
    reported_errors,
)
from devbox.services.engine.status import DetailedStatus

WATCH_INTERVAL = 5

STATE_STYLES = {
    "Running": "green",
    "Stopped": "yellow",
    "Not found": "red",
    "Docker not running": "red",
}


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


def render_compact(console: Console, status: DetailedStatus) -> None:
    style = STATE_STYLES.get(status.label, "white")
    details = []
    if status.container.status_text:
        details.append(status.container.status_text)
    if status.data.size:
        details.append(f"data {status.data.size}")
    suffix = f" [dim]({', '.join(details)})[/dim]" if details else ""
    console.print(f"[{style}]●[/{style}] {status.name}: [{style}]{status.label}[/{style}]{suffix}")


def render_detailed(console: Console, status: DetailedStatus) -> None:
    style = STATE_STYLES.get(status.label, "white")
    container = status.container

    table = Table(title=f"Container '{status.name}'", show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_row("State", f"[{style}]{status.label}[/{style}]")
    if container.exists:
        table.add_row("Status", container.status_text or "-")
        table.add_row("Image", container.image or "-")
        created = container.created_at.strftime("%Y-%m-%d %H:%M") if container.created_at else "-"
        table.add_row("Created", created)
        table.add_row("Ports", container.ports or "-")
    console.print(table)

    data = Table(title="Data directory", show_header=False, title_justify="left")
    data.add_column("Field", style="bold")
    data.add_column("Value", overflow="fold")
    data.add_row("Path", status.data.path)
    data.add_row("Exists", _yes_no(status.data.exists))
    if status.data.exists:
        data.add_row("Size", status.data.size or "-")
        data.add_row("Permissions", status.data.permissions or "-")
    console.print(data)

    system = Table(title="System", show_header=False, title_justify="left")
    system.add_column("Field", style="bold")
    system.add_column("Value")
    system.add_row("Platform", f"{status.system.os} ({status.system.arch})")
    system.add_row("Memory", status.system.memory or "-")
    system.add_row("Docker daemon", _yes_no(status.system.daemon_running))
    system.add_row("Docker version", status.system.engine_version or "-")
    console.print(system)

    tools = Table(title="Host tools", show_header=True, header_style="bold cyan", title_justify="left")
    tools.add_column("Tool")
    tools.add_column("Available")
    tools.add_column("Version")
    for name, info in status.tools.items():
        tools.add_row(name, _yes_no(info.available), info.version or "-")
    console.print(tools)

    if not status.system.daemon_running:
        print_info(console, "Docker is not reachable. Any lifecycle command starts it (e.g. devbox start)")
    elif not container.exists:
        print_info(console, "Create the container with: devbox setup")
    elif not container.running:
        print_info(console, "Start it with: devbox start")


def register_status_commands(root: typer.Typer, console: Console) -> None:
    """Attach read-only commands to the main CLI."""

    @root.command("status")
    def status_command(
        ctx: typer.Context,
        compact: bool = typer.Option(False, "--compact", "-c", help="One-line summary."),
        watch: bool = typer.Option(False, "--watch", "-w", help=f"Refresh every {WATCH_INTERVAL}s until Ctrl+C."),
    ) -> None:
        """Show container, data directory and toolchain status.

        Exit codes: 0 running, 1 stopped, 2 Docker unreachable, 3 not found.
        """
        settings = get_settings(ctx)
        collector = build_status_collector(settings)
        render = render_compact if compact else render_detailed

        if not watch:
            status = collector.collect()
            render(console, status)
            raise typer.Exit(status.exit_code)

        try:
            while True:
                status = collector.collect()
                console.clear()
                render(console, status)
                console.print(
                    f"\n[dim]Last updated {datetime.now():%H:%M:%S}, "
                    f"refreshing every {WATCH_INTERVAL}s (Ctrl+C to exit)[/dim]"
                )
                time.sleep(WATCH_INTERVAL)
        except KeyboardInterrupt:
            console.print()
            print_info(console, "Watch mode stopped")
            raise typer.Exit(0)

    @root.command("logs")
    def logs_command(
        ctx: typer.Context,
        follow: bool = typer.Option(False, "--follow", "-f", help="Follow log output."),
        tail: str = typer.Option("50", "--tail", help="Number of lines to show from the end."),
        since: Optional[str] = typer.Option(None, "--since", help="Show logs since timestamp or duration (e.g. 10m)."),
    ) -> None:
        """Show container logs."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            exit_code = build_services(settings).maintenance().logs(follow=follow, tail=tail, since=since)
        if exit_code not in (0, 130):
            raise typer.Exit(exit_code)

    @root.command("inspect")
    def inspect_command(
        ctx: typer.Context,
        fmt: Optional[str] = typer.Option(None, "--format", help="Go template passed to docker inspect."),
    ) -> None:
        """Show low-level container details."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            details = build_services(settings).maintenance().inspect(fmt=fmt)
        if fmt:
            typer.echo(details)
        else:
            console.print_json(data=details)

    @root.command("list")
    def list_command(ctx: typer.Context) -> None:
        """List all Docker containers (the managed one is marked)."""
        settings = get_settings(ctx)
        with reported_errors(console, settings):
            containers = build_services(settings).maintenance().list_containers()

        if not containers:
            print_warning(console, "No containers found")
            return

        table = Table(title="Containers", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="bold")
        table.add_column("Status")
        table.add_column("Created")
        table.add_column("Image")
        for container in containers:
            name = f"{container.name} *" if container.managed else container.name
            status_style = "green" if container.running else "yellow"
            table.add_row(name, f"[{status_style}]{container.status}[/{status_style}]",
                          container.created, container.image)
        console.print(table)
        console.print("[dim]* managed by devbox[/dim]")
