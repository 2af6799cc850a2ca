"""Shared test fixtures for devbox tests."""
import json
import os
import re
from typing import Dict, List, Optional

import pytest

from devbox.cli_support import Services
from devbox.core.config import RuntimeSettings
from devbox.core.config_store import ConfigStore
from devbox.core.confirm import ForceConfirmation
from devbox.services.engine.daemon import DaemonStarter
from devbox.services.engine.invocation import CommandResult, Engine, EngineHandle
from devbox.services.engine.probe import EngineProbe

CREATED_AT = "2024-05-01 12:34:56 +0000 UTC"

# docker subcommands that change engine or container state
MUTATING_SUBCOMMANDS = {
    "start", "stop", "kill", "rm", "run", "exec", "pull", "commit", "system", "image", "volume",
}

# Environment variables read by RuntimeSettings.from_env()
SETTINGS_ENV = [
    "CONTAINER_NAME", "DATA_PATH", "DRY_RUN", "FORCE", "DEBUG", "VERBOSE", "AUTO_START",
    "SHOW_TIMESTAMPS", "AUTO_CLEANUP", "DOCKER_BIN", "DEVBOX_CONFIG",
]


class FakeDocker:
    """Stands in for the docker CLI: keeps container state and records calls.

    ``containers`` maps container name -> running flag.
    """

    def __init__(self, containers: Optional[Dict[str, bool]] = None, daemon_ready: bool = True):
        self.containers: Dict[str, bool] = dict(containers or {})
        self.daemon_ready = daemon_ready
        self.calls: List[List[str]] = []
        self.exec_exit_code = 0
        self.failures: Dict[str, CommandResult] = {}

    def run(self, argv, timeout=None, capture=True) -> CommandResult:
        argv = list(argv)
        self.calls.append(argv)
        program = os.path.basename(argv[0])

        if program == "open":
            return CommandResult(0)
        if program != "docker":
            return CommandResult(0, f"{program} version 1.2.3\n")

        args = argv[1:]
        if args == ["--version"]:
            return CommandResult(0, "Docker version 24.0.7, build afdd53b\n")
        if not self.daemon_ready:
            return CommandResult(1, "", "Cannot connect to the Docker daemon")

        subcommand, rest = args[0], args[1:]
        if subcommand in self.failures:
            return self.failures[subcommand]
        handler = getattr(self, f"_{subcommand}", None)
        if handler is None:
            return CommandResult(0)
        return handler(rest)

    @property
    def docker_calls(self) -> List[List[str]]:
        return [call[1:] for call in self.calls if os.path.basename(call[0]) == "docker"]

    @property
    def mutating_calls(self) -> List[List[str]]:
        return [call for call in self.docker_calls if call and call[0] in MUTATING_SUBCOMMANDS]

    def subcommands(self) -> List[str]:
        return [call[0] for call in self.docker_calls if call]

    def _missing(self, name: str) -> CommandResult:
        return CommandResult(1, "", f"Error: No such container: {name}")

    def _ps(self, rest: List[str]) -> CommandResult:
        if "-q" in rest:
            ids = [f"{index:012x}" for index, running in enumerate(self.containers.values()) if running]
            return CommandResult(0, "".join(f"{i}\n" for i in ids))

        names = [name for name, running in self.containers.items() if running or "-a" in rest]
        if "--filter" in rest:
            pattern = rest[rest.index("--filter") + 1].split("=", 1)[1]
            names = [name for name in names if re.search(pattern, name)]

        fmt = rest[rest.index("--format") + 1] if "--format" in rest else "{{.Names}}"
        lines = []
        for name in names:
            if fmt == "{{.Names}}":
                lines.append(name)
                continue
            status = "Up 5 minutes" if self.containers[name] else "Exited (0) 2 hours ago"
            last = "ubuntu:latest" if "{{.Image}}" in fmt else ""
            lines.append("\t".join([name, status, CREATED_AT, last]))
        return CommandResult(0, "".join(f"{line}\n" for line in lines))

    def _start(self, rest: List[str]) -> CommandResult:
        name = rest[-1]
        if name not in self.containers:
            return self._missing(name)
        self.containers[name] = True
        return CommandResult(0, f"{name}\n")

    def _stop(self, rest: List[str]) -> CommandResult:
        name = rest[-1]
        if name not in self.containers:
            return self._missing(name)
        self.containers[name] = False
        return CommandResult(0, f"{name}\n")

    _kill = _stop

    def _rm(self, rest: List[str]) -> CommandResult:
        name = rest[-1]
        if name not in self.containers:
            return self._missing(name)
        if self.containers[name]:
            return CommandResult(1, "", "Error: cannot remove a running container")
        del self.containers[name]
        return CommandResult(0, f"{name}\n")

    def _run(self, rest: List[str]) -> CommandResult:
        name = rest[rest.index("--name") + 1]
        self.containers[name] = True
        return CommandResult(0, "f00dfeed\n")

    def _exec(self, rest: List[str]) -> CommandResult:
        name = next(arg for arg in rest if not arg.startswith("-"))
        if not self.containers.get(name):
            return CommandResult(1, "", f"Error: container {name} is not running")
        return CommandResult(self.exec_exit_code)

    def _inspect(self, rest: List[str]) -> CommandResult:
        name = rest[0]
        if name not in self.containers:
            return self._missing(name)
        if "--format" in rest:
            return CommandResult(0, "ubuntu:latest\n")
        return CommandResult(0, json.dumps([{"Name": f"/{name}", "Config": {"Image": "ubuntu:latest"}}]))

    def _version(self, rest: List[str]) -> CommandResult:
        return CommandResult(0, "24.0.7\n")

    def _system(self, rest: List[str]) -> CommandResult:
        return CommandResult(0, "Total reclaimed space: 0B\n")


class FakeClock:
    """Monotonic clock advanced only by sleep() (and explicit advance())."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to a temporary home directory."""
    return RuntimeSettings(
        home=str(tmp_path),
        config_path=str(tmp_path / ".devbox.json"),
        data_path=str(tmp_path / "ubuntu-data"),
    )


@pytest.fixture
def fake_docker():
    return FakeDocker()


def make_services(settings: RuntimeSettings, docker: FakeDocker) -> Services:
    """Wire engine components around a FakeDocker (never sleeps, auto-confirms)."""
    handle = EngineHandle("/usr/local/bin/docker")
    probe = EngineProbe(handle, settings, docker)
    return Services(
        settings=settings,
        store=ConfigStore(settings),
        engine=Engine(handle, docker, dry_run=settings.dry_run),
        probe=probe,
        daemon=DaemonStarter(probe, settings, docker, sleep=lambda seconds: None),
        confirm=ForceConfirmation(),
    )


@pytest.fixture
def cli_env(tmp_path, monkeypatch, fake_docker):
    """Run the CLI against FakeDocker with config and data under tmp_path."""
    for key in SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)

    docker_bin = tmp_path / "bin" / "docker"
    docker_bin.parent.mkdir()
    docker_bin.write_text("#!/bin/sh\n")

    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("DEVBOX_CONFIG", str(tmp_path / ".devbox.json"))
    monkeypatch.setenv("DATA_PATH", str(tmp_path / "ubuntu-data"))
    monkeypatch.setenv("DOCKER_BIN", str(docker_bin))
    monkeypatch.setattr("devbox.cli_support.create_runner", lambda: fake_docker)
    return fake_docker
