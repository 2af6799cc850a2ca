"""Configuration CLI commands (devbox config ...)."""
from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from devbox.cli_support import (
    get_settings,
    load_store,
    print_info,
    print_success,
    reported_errors,
)
from devbox.core.config import RuntimeSettings
from devbox.core.config_store import ConfigStore
from devbox.core.confirm import confirmation_for
from devbox.core.errors import ConfigError, ConfirmationDeclined

ConfigTyper = typer.Typer(help="Show and edit the persisted configuration", add_completion=False)
VolumeTyper = typer.Typer(help="Manage volumes mounted into new containers", add_completion=False)
ConfigTyper.add_typer(VolumeTyper, name="volume")

_console: Console = Console()

# Accepted spellings -> ConfigStore setter
SETTABLE_KEYS = {
    "containerName": "container_name",
    "container-name": "container_name",
    "dataPath": "data_path",
    "data-path": "data_path",
}

# Accepted spellings -> (section, field)
TOGGLE_KEYS = {
    "autoStart": (None, "auto_start"),
    "auto-start": (None, "auto_start"),
    "showTimestamps": ("preferences", "show_timestamps"),
    "verboseLogging": ("preferences", "verbose_logging"),
    "autoCleanup": ("preferences", "auto_cleanup"),
}


def _dry_run(settings: RuntimeSettings, description: str) -> bool:
    if settings.dry_run:
        print_info(_console, f"[DRY RUN] Would {description}")
    return settings.dry_run


def show_config(console: Console, store: ConfigStore) -> None:
    config = store.current
    table = Table(title="Configuration", show_header=False, title_justify="left")
    table.add_column("Key", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_row("containerName", config.container_name)
    table.add_row("dataPath", config.data_path)
    table.add_row("autoStart", str(config.auto_start).lower())
    table.add_row("defaultVolumes", ", ".join(config.default_volumes) or "-")
    table.add_row("showTimestamps", str(config.preferences.show_timestamps).lower())
    table.add_row("verboseLogging", str(config.preferences.verbose_logging).lower())
    table.add_row("autoCleanup", str(config.preferences.auto_cleanup).lower())
    console.print(table)

    location = f"[dim]{store.path}[/dim]"
    if not store.exists:
        location += " [yellow](not saved yet, showing defaults)[/yellow]"
    console.print(location)


def register_config_commands(root: typer.Typer, console: Console) -> None:
    """Attach the config command group to the root CLI."""
    global _console
    _console = console
    root.add_typer(ConfigTyper, name="config")


@ConfigTyper.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    """Show the configuration when no subcommand is given."""
    if ctx.invoked_subcommand:
        return
    show_config(_console, load_store(get_settings(ctx)))


@ConfigTyper.command("show")
def show_command(ctx: typer.Context) -> None:
    """Show the current configuration."""
    show_config(_console, load_store(get_settings(ctx)))


@ConfigTyper.command("reset")
def reset_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Do not ask for confirmation."),
) -> None:
    """Restore defaults (the old file is kept as <config>.backup)."""
    settings = get_settings(ctx)
    with reported_errors(_console, settings):
        store = load_store(settings)
        if _dry_run(settings, f"back up {store.path} and restore defaults"):
            return
        if not confirmation_for(settings, force=force).confirm("Reset configuration to defaults?"):
            raise ConfirmationDeclined("Operation cancelled.")
        backup = store.reset()

    print_success(_console, "Configuration reset to defaults")
    if backup is not None:
        print_info(_console, f"Previous configuration saved to {backup}")


@ConfigTyper.command("set")
def set_command(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="containerName or dataPath"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set a configuration value."""
    settings = get_settings(ctx)
    with reported_errors(_console, settings):
        field_name = SETTABLE_KEYS.get(key)
        if field_name is None:
            raise ConfigError(
                f"Unknown configuration key: {key}",
                hints=[f"Settable keys: {', '.join(sorted(set(SETTABLE_KEYS)))}"],
            )
        store = load_store(settings)
        if _dry_run(settings, f"set {key}={value} in {store.path}"):
            return
        if field_name == "container_name":
            store.set_container_name(value)
        else:
            store.set_data_path(value)

    print_success(_console, f"{key} set to {value}")


@ConfigTyper.command("toggle")
def toggle_command(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="autoStart, showTimestamps, verboseLogging or autoCleanup"),
) -> None:
    """Flip a boolean setting."""
    settings = get_settings(ctx)
    with reported_errors(_console, settings):
        target = TOGGLE_KEYS.get(key)
        if target is None:
            raise ConfigError(
                f"Cannot toggle: {key}",
                hints=[f"Toggleable keys: {', '.join(k for k in TOGGLE_KEYS if '-' not in k)}"],
            )
        store = load_store(settings)
        if _dry_run(settings, f"toggle {key} in {store.path}"):
            return

        section, field_name = target
        if section is None:
            config = store.toggle_auto_start()
            value = config.auto_start
        else:
            current = getattr(store.current.preferences, field_name)
            config = store.update(preferences={field_name: not current})
            value = getattr(config.preferences, field_name)

    print_success(_console, f"{key} is now {'enabled' if value else 'disabled'}")


@VolumeTyper.callback(invoke_without_command=True)
def volume_callback(ctx: typer.Context) -> None:
    """List default volumes when no subcommand is given."""
    if ctx.invoked_subcommand:
        return
    _list_volumes(load_store(get_settings(ctx)))


def _list_volumes(store: ConfigStore) -> None:
    volumes = store.current.default_volumes
    if not volumes:
        print_info(_console, "No default volumes configured")
        return
    _console.print("[bold]Default volumes:[/bold]")
    for volume in volumes:
        _console.print(f"  • {volume}", markup=False)


@VolumeTyper.command("list")
def volume_list_command(ctx: typer.Context) -> None:
    """List default volumes."""
    _list_volumes(load_store(get_settings(ctx)))


@VolumeTyper.command("add")
def volume_add_command(
    ctx: typer.Context,
    volume: str = typer.Argument(..., help="Host path, or host:container mapping"),
) -> None:
    """Mount a volume into containers created by setup."""
    settings = get_settings(ctx)
    with reported_errors(_console, settings):
        store = load_store(settings)
        if _dry_run(settings, f"add default volume {volume}"):
            return
        added = store.add_default_volume(volume)

    if added:
        print_success(_console, f"Added volume: {volume}")
        print_info(_console, "Takes effect for containers created with 'devbox setup'")


@VolumeTyper.command("remove")
def volume_remove_command(
    ctx: typer.Context,
    volume: str = typer.Argument(..., help="Volume to remove"),
) -> None:
    """Stop mounting a volume into new containers."""
    settings = get_settings(ctx)
    with reported_errors(_console, settings):
        store = load_store(settings)
        if _dry_run(settings, f"remove default volume {volume}"):
            return
        removed = store.remove_default_volume(volume)

    if removed:
        print_success(_console, f"Removed volume: {volume}")
