"""Tests for devbox lifecycle commands."""
import json

from typer.testing import CliRunner

from devbox.cli import app

runner = CliRunner()


def test_start_absent_suggests_setup(cli_env):
    """Start on a missing container fails and points at setup."""
    result = runner.invoke(app, ['start'])

    assert result.exit_code == 1
    assert "devbox setup" in result.stdout
    assert cli_env.mutating_calls == []


def test_start_detached(cli_env):
    cli_env.containers["ubuntu"] = False

    result = runner.invoke(app, ['start', '--detach'])

    assert result.exit_code == 0
    assert cli_env.mutating_calls == [["start", "ubuntu"]]
    assert "devbox attach" in result.stdout


def test_start_running_is_a_warning(cli_env):
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['start'])

    assert result.exit_code == 0
    assert "already running" in result.stdout
    assert cli_env.mutating_calls == []


def test_stop_with_force(cli_env):
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['stop', '--force'])

    assert result.exit_code == 0
    assert cli_env.containers["ubuntu"] is False


def test_stop_twice_is_idempotent(cli_env):
    cli_env.containers["ubuntu"] = True

    first = runner.invoke(app, ['stop', '--force'])
    second = runner.invoke(app, ['stop', '--force'])

    assert first.exit_code == 0
    assert second.exit_code == 0
    assert "not running" in second.stdout
    assert [call[0] for call in cli_env.mutating_calls] == ["stop"]


def test_stop_declined(cli_env):
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['stop'], input="n\n")

    assert result.exit_code == 1
    assert "cancelled" in result.stdout
    assert cli_env.containers["ubuntu"] is True


def test_force_environment_skips_prompt(cli_env, monkeypatch):
    monkeypatch.setenv("FORCE", "1")
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['stop'])

    assert result.exit_code == 0
    assert cli_env.containers["ubuntu"] is False


def test_dry_run_stop_changes_nothing(cli_env, monkeypatch):
    monkeypatch.setenv("DRY_RUN", "1")
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['stop'])

    assert result.exit_code == 0
    assert "[DRY RUN]" in result.stdout
    assert cli_env.mutating_calls == []
    assert cli_env.containers["ubuntu"] is True


def test_restart_force_kills(cli_env):
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['restart', '--force'])

    assert result.exit_code == 0
    assert cli_env.mutating_calls == [["kill", "ubuntu"], ["start", "ubuntu"]]


def test_restart_force_from_environment_kills(cli_env, monkeypatch):
    monkeypatch.setenv("FORCE", "1")
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['restart'])

    assert result.exit_code == 0
    assert cli_env.mutating_calls == [["kill", "ubuntu"], ["start", "ubuntu"]]


def test_delete_keep_data(cli_env, tmp_path):
    (tmp_path / "ubuntu-data").mkdir()
    cli_env.containers["ubuntu"] = False

    result = runner.invoke(app, ['delete', '--force', '--keep-data'])

    assert result.exit_code == 0
    assert "ubuntu" not in cli_env.containers
    assert (tmp_path / "ubuntu-data").exists()


def test_exec_passes_command_through(cli_env):
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['exec', 'ls', '-la', '/data'])

    assert result.exit_code == 0
    assert cli_env.mutating_calls == [["exec", "ubuntu", "ls", "-la", "/data"]]


def test_exec_propagates_exit_code(cli_env):
    cli_env.containers["ubuntu"] = True
    cli_env.exec_exit_code = 5

    result = runner.invoke(app, ['exec', 'false'])

    assert result.exit_code == 5


def test_attach_stopped_without_start(cli_env):
    cli_env.containers["ubuntu"] = False

    result = runner.invoke(app, ['attach'])

    assert result.exit_code == 1
    assert "not running" in result.stdout


def test_attach_with_start(cli_env):
    cli_env.containers["ubuntu"] = False

    result = runner.invoke(app, ['attach', '--start'])

    assert result.exit_code == 0
    assert cli_env.mutating_calls == [["start", "ubuntu"], ["exec", "-it", "ubuntu", "/bin/bash"]]


def test_setup_with_path(cli_env, tmp_path):
    external = tmp_path / "external"
    external.mkdir()

    result = runner.invoke(app, ['setup', '--path', str(external)])

    assert result.exit_code == 0
    data_dir = external / "ubuntu-data"
    assert (data_dir / ".setup-env.sh").exists()
    run = next(call for call in cli_env.mutating_calls if call[0] == "run")
    assert f"{data_dir}:/data" in run
    saved = json.loads((tmp_path / ".devbox.json").read_text())
    assert saved["dataPath"] == str(data_dir)
    assert saved["containerName"] == "ubuntu"


def test_setup_existing_container(cli_env):
    cli_env.containers["ubuntu"] = True

    result = runner.invoke(app, ['setup'])

    assert result.exit_code == 0
    assert "already exists" in result.stdout
    assert cli_env.mutating_calls == []


def test_missing_docker_binary(cli_env, monkeypatch, tmp_path):
    monkeypatch.setenv("DOCKER_BIN", str(tmp_path / "nowhere" / "docker"))

    result = runner.invoke(app, ['start'])

    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_container_name_from_environment(cli_env, monkeypatch):
    monkeypatch.setenv("CONTAINER_NAME", "web")
    cli_env.containers.update({"web": False, "web2": True})

    result = runner.invoke(app, ['start', '--detach'])

    assert result.exit_code == 0
    assert cli_env.mutating_calls == [["start", "web"]]
