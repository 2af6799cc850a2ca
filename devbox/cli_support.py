"""Shared utilities for devbox CLI modules."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import typer
from rich.console import Console

from devbox.core.config import RuntimeSettings
from devbox.core.config_store import ConfigStore
from devbox.core.confirm import ConfirmationPort, confirmation_for
from devbox.core.errors import EngineNotInstalled, ManagerError
from devbox.core.logger import configure_logging
from devbox.services.engine.daemon import DaemonStarter
from devbox.services.engine.invocation import CommandRunner, Engine
from devbox.services.engine.lifecycle import LifecycleController
from devbox.services.engine.maintenance import MaintenanceOperations
from devbox.services.engine.probe import EngineProbe, resolve_binary
from devbox.services.engine.status import StatusCollector


def get_settings(ctx: typer.Context) -> RuntimeSettings:
    """Settings built by the root callback (or from the environment if absent)."""
    settings = ctx.obj if ctx is not None else None
    if isinstance(settings, RuntimeSettings):
        return settings
    return RuntimeSettings.from_env()


def create_runner() -> CommandRunner:
    """Process runner shared by all engine components of one invocation."""
    return CommandRunner()


def load_store(settings: RuntimeSettings) -> ConfigStore:
    """Load the persisted config and apply its logging preferences."""
    store = ConfigStore(settings)
    preferences = store.current.preferences
    configure_logging(
        debug=settings.debug_logging or preferences.verbose_logging,
        show_timestamps=settings.show_timestamps and preferences.show_timestamps,
    )
    return store


@dataclass
class Services:
    """Engine components wired for one CLI invocation."""

    settings: RuntimeSettings
    store: ConfigStore
    engine: Engine
    probe: EngineProbe
    daemon: DaemonStarter
    confirm: ConfirmationPort

    def lifecycle(self) -> LifecycleController:
        return LifecycleController(
            self.settings, self.store, self.engine, self.probe, self.daemon, self.confirm
        )

    def maintenance(self) -> MaintenanceOperations:
        return MaintenanceOperations(
            self.settings, self.store, self.engine, self.probe, self.daemon, self.confirm
        )


def build_services(
    settings: RuntimeSettings,
    force: bool = False,
    docker_bin: Optional[str] = None,
) -> Services:
    """Resolve the docker binary and wire the engine components.

    Raises:
        EngineNotInstalled: No docker binary could be found
    """
    store = load_store(settings)
    handle = resolve_binary(docker_bin or settings.engine_binary)
    runner = create_runner()
    probe = EngineProbe(handle, settings, runner)
    return Services(
        settings=settings,
        store=store,
        engine=Engine(handle, runner, dry_run=settings.dry_run),
        probe=probe,
        daemon=DaemonStarter(probe, settings, runner),
        confirm=confirmation_for(settings, force=force),
    )


def build_status_collector(settings: RuntimeSettings) -> StatusCollector:
    """StatusCollector that tolerates a missing docker binary."""
    store = load_store(settings)
    runner = create_runner()
    try:
        handle = resolve_binary(settings.engine_binary)
    except EngineNotInstalled:
        probe = None
    else:
        probe = EngineProbe(handle, settings, runner)
    return StatusCollector(settings, store.current, probe, runner)


def handle_cli_error(
    e: ManagerError,
    console: Console,
    verbose: bool = False,
) -> None:
    """Report a ManagerError with its hints and exit with its exit code.

    Args:
        e: Error to report
        console: Rich console for output
        verbose: Show exception traceback if True
    """
    if e.exit_code == 0:
        print_warning(console, e.message)
    else:
        console.print(f"[red]Error:[/red] {e.message}")
    if e.hints:
        console.print("\n[bold]Suggestions:[/bold]" if e.exit_code == 0 else "\n[bold]Try:[/bold]")
        for hint in e.hints:
            console.print(f"  • {hint}")
    if verbose and e.exit_code != 0:
        console.print_exception()
    raise typer.Exit(e.exit_code)


@contextmanager
def reported_errors(console: Console, settings: RuntimeSettings) -> Iterator[None]:
    """Translate ManagerError and Ctrl+C into CLI exits."""
    try:
        yield
    except ManagerError as e:
        handle_cli_error(e, console, verbose=settings.debug_logging)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting."""
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")
