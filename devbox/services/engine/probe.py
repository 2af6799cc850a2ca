"""Read-only queries against the docker engine and the managed container."""
import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from devbox.core.config import RuntimeSettings
from devbox.core.errors import EngineNotInstalled
from devbox.core.logger import get_logger
from devbox.services.engine.invocation import (
    CommandRunner,
    EngineHandle,
    EngineInvocation,
)

logger = get_logger(__name__)

ENGINE_BINARY = "docker"

# Searched in order after PATH
WELL_KNOWN_LOCATIONS = (
    "/usr/local/bin/docker",
    "/opt/homebrew/bin/docker",
    "/Applications/Docker.app/Contents/Resources/bin/docker",
)

STATUS_FORMAT = "{{.Names}}\t{{.Status}}\t{{.CreatedAt}}\t{{.Ports}}"


def resolve_binary(
    preferred: Optional[str] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    exists: Callable[[str], bool] = os.path.exists,
) -> EngineHandle:
    """Locate the docker CLI.

    Only checks for existence: running ``docker version`` here could hang
    when the daemon is down.

    Args:
        preferred: Explicit binary path; must exist
        which: PATH lookup
        exists: Filesystem existence check

    Returns:
        EngineHandle for the first match

    Raises:
        EngineNotInstalled: Preferred path missing, or nothing found
    """
    if preferred:
        if exists(preferred):
            return EngineHandle(preferred)
        raise EngineNotInstalled(
            f"Provided docker binary not found at: {preferred}",
            hints=["Check the --docker-bin / DOCKER_BIN value"],
        )

    found = which(ENGINE_BINARY)
    if found:
        return EngineHandle(found)

    for candidate in WELL_KNOWN_LOCATIONS:
        if exists(candidate):
            return EngineHandle(candidate)

    raise EngineNotInstalled(
        "Docker CLI not found. Ensure Docker Desktop (or another Docker engine) is installed.",
        hints=["Install Docker Desktop from https://www.docker.com/products/docker-desktop/"],
    )


@dataclass(frozen=True)
class ContainerState:
    """Observed container state. Computed fresh on every query."""

    exists: bool
    running: bool
    status_text: Optional[str] = None
    created_at: Optional[datetime] = None
    ports: Optional[str] = None
    image: Optional[str] = None

    @classmethod
    def absent(cls) -> "ContainerState":
        return cls(exists=False, running=False)


def _is_running(status: str) -> bool:
    """True for an "Up ..." status that docker has not marked "(Paused)"."""
    status = status.lower()
    return status.startswith("up") and "(paused)" not in status


def parse_created_at(text: str) -> Optional[datetime]:
    """Parse docker's ``2024-05-01 12:34:56 +0000 UTC`` timestamps."""
    try:
        return datetime.strptime(text.strip()[:25], "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        return None


class EngineProbe:
    """Answers "what is true right now" without changing anything."""

    def __init__(self, handle: EngineHandle, settings: RuntimeSettings,
                 runner: Optional[CommandRunner] = None):
        self.handle = handle
        self.settings = settings
        self.runner = runner or CommandRunner()

    def _query(self, subcommand: str, *args: str, timeout: Optional[float] = None):
        invocation = EngineInvocation(
            subcommand,
            tuple(args),
            timeout=timeout or self.settings.diagnostic_timeout,
        )
        return self.runner.run(invocation.argv(self.handle.binary_path), timeout=invocation.timeout)

    def is_daemon_ready(self) -> bool:
        """Return True if the daemon answers a listing in time."""
        result = self._query("ps", "-q", timeout=self.settings.daemon_probe_timeout)
        if not result.ok:
            logger.debug(f"Daemon not ready (exit {result.exit_code})")
        return result.ok

    def container_names(self, include_stopped: bool = True) -> List[str]:
        """List container names; empty on any failure."""
        args = ["-a"] if include_stopped else []
        result = self._query("ps", *args, "--format", "{{.Names}}")
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def container_exists(self, name: str) -> bool:
        return name in self.container_names(include_stopped=True)

    def container_running(self, name: str) -> bool:
        return name in self.container_names(include_stopped=False)

    def get_status(self, name: str) -> ContainerState:
        """Status text, creation time and ports; absent state on any failure."""
        result = self._query("ps", "-a", "--filter", f"name=^{name}$", "--format", STATUS_FORMAT)
        if not result.ok or not result.stdout.strip():
            return ContainerState.absent()

        for line in result.stdout.splitlines():
            parts = line.split("\t")
            # The name filter is a regex; keep exact matches only
            if parts[0].strip() != name:
                continue
            parts += [""] * (4 - len(parts))
            status = parts[1].strip()
            ports = parts[3].strip()
            return ContainerState(
                exists=True,
                running=_is_running(status),
                status_text=status or None,
                created_at=parse_created_at(parts[2]),
                ports=ports or None,
            )

        return ContainerState.absent()

    def container_image(self, name: str) -> Optional[str]:
        result = self._query("inspect", name, "--format", "{{.Config.Image}}")
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def engine_version(self) -> Optional[str]:
        """Server version, or None when the daemon is unreachable."""
        result = self._query(
            "version", "--format", "{{.Server.Version}}",
            timeout=self.settings.command_check_timeout,
        )
        if not result.ok:
            return None
        return result.stdout.strip() or None
