"""Tests for CLI support utilities."""
from io import StringIO

import pytest
import typer
from rich.console import Console

from devbox.cli_support import (
    build_services,
    handle_cli_error,
    print_error,
    print_info,
    print_success,
    print_warning,
    reported_errors,
)
from devbox.core.config import RuntimeSettings
from devbox.core.confirm import ForceConfirmation, InteractiveConfirmation
from devbox.core.errors import ContainerAlreadyInState, ContainerNotFound, EngineNotInstalled


def make_console():
    return Console(file=StringIO(), width=120)


class TestHandleCliError:
    """Test error reporting and exit codes."""

    def test_error_exits_non_zero_with_hints(self):
        console = make_console()
        error = ContainerNotFound("Container 'ubuntu' does not exist.", hints=["devbox setup"])

        with pytest.raises(typer.Exit) as exc_info:
            handle_cli_error(error, console)

        output = console.file.getvalue()
        assert exc_info.value.exit_code == 1
        assert "Error:" in output
        assert "• devbox setup" in output

    def test_already_in_state_is_warning(self):
        console = make_console()

        with pytest.raises(typer.Exit) as exc_info:
            handle_cli_error(ContainerAlreadyInState("Container 'ubuntu' is not running."), console)

        assert exc_info.value.exit_code == 0
        assert "Error:" not in console.file.getvalue()
        assert "⚠" in console.file.getvalue()


class TestReportedErrors:
    def test_translates_manager_error(self):
        console = make_console()
        with pytest.raises(typer.Exit) as exc_info:
            with reported_errors(console, RuntimeSettings()):
                raise ContainerNotFound("gone")
        assert exc_info.value.exit_code == 1

    def test_keyboard_interrupt(self):
        console = make_console()
        with pytest.raises(typer.Exit) as exc_info:
            with reported_errors(console, RuntimeSettings()):
                raise KeyboardInterrupt
        assert exc_info.value.exit_code == 130

    def test_other_errors_propagate(self):
        with pytest.raises(RuntimeError):
            with reported_errors(make_console(), RuntimeSettings()):
                raise RuntimeError("bug")


class TestBuildServices:
    def test_wires_components(self, cli_env):
        services = build_services(RuntimeSettings.from_env())

        assert services.engine.runner is cli_env
        assert services.probe.runner is cli_env
        assert isinstance(services.confirm, InteractiveConfirmation)
        assert services.lifecycle().name == "ubuntu"

    def test_force(self, cli_env):
        services = build_services(RuntimeSettings.from_env(), force=True)
        assert isinstance(services.confirm, ForceConfirmation)

    def test_missing_binary(self, tmp_path):
        settings = RuntimeSettings(home=str(tmp_path), engine_binary=str(tmp_path / "docker"))
        with pytest.raises(EngineNotInstalled):
            build_services(settings)


class TestPrintHelpers:
    @pytest.mark.parametrize("helper,symbol", [
        (print_success, "✓"),
        (print_error, "✗"),
        (print_warning, "⚠"),
        (print_info, "ℹ"),
    ])
    def test_prefix(self, helper, symbol):
        console = make_console()
        helper(console, "message")
        assert console.file.getvalue().strip() == f"{symbol} message"
