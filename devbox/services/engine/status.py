"""Detailed status of the managed container, its data and the host toolchain.

Status is read-only: it never launches the daemon, and an unreachable or
missing engine is reported rather than fixed.
"""
import platform
import re
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import psutil

from devbox.core.config import RuntimeSettings
from devbox.core.config_store import ManagerConfig
from devbox.core.logger import get_logger
from devbox.services.engine.invocation import CommandRunner
from devbox.services.engine.probe import ContainerState, EngineProbe
from devbox.services.host import DataDirectoryInfo, describe_data_directory, format_size

logger = get_logger(__name__)

# Tool name -> version command
TOOLS: Dict[str, List[str]] = {
    "docker": ["docker", "--version"],
    "bun": ["bun", "--version"],
    "node": ["node", "--version"],
    "python3": ["python3", "--version"],
    "git": ["git", "--version"],
}

VERSION_PATTERN = re.compile(r"\d+(?:\.\d+)+")

EXIT_RUNNING = 0
EXIT_STOPPED = 1
EXIT_DAEMON_UNREACHABLE = 2
EXIT_ABSENT = 3


@dataclass
class ToolInfo:
    available: bool
    version: Optional[str] = None


@dataclass
class SystemInfo:
    os: str
    arch: str
    daemon_running: bool
    engine_version: Optional[str] = None
    memory: Optional[str] = None


@dataclass
class DetailedStatus:
    name: str
    container: ContainerState
    data: DataDirectoryInfo
    system: SystemInfo
    tools: Dict[str, ToolInfo] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        if not self.system.daemon_running:
            return EXIT_DAEMON_UNREACHABLE
        if not self.container.exists:
            return EXIT_ABSENT
        if not self.container.running:
            return EXIT_STOPPED
        return EXIT_RUNNING

    @property
    def label(self) -> str:
        if not self.system.daemon_running:
            return "Docker not running"
        if not self.container.exists:
            return "Not found"
        return "Running" if self.container.running else "Stopped"


class StatusCollector:
    """Gathers a DetailedStatus, running independent checks in parallel."""

    def __init__(
        self,
        settings: RuntimeSettings,
        config: ManagerConfig,
        probe: Optional[EngineProbe],
        runner: Optional[CommandRunner] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.settings = settings
        self.config = config
        self.probe = probe
        self.runner = runner or CommandRunner()
        self.which = which

    def collect(self) -> DetailedStatus:
        daemon_running = self.probe is not None and self.probe.is_daemon_ready()
        logger.debug(f"Collecting status (daemon running: {daemon_running})")

        with ThreadPoolExecutor(max_workers=4) as pool:
            container = pool.submit(self._container, daemon_running)
            data = pool.submit(describe_data_directory, self.config.data_path)
            version = pool.submit(self._engine_version, daemon_running)
            tools = pool.submit(self.tools)

            return DetailedStatus(
                name=self.config.container_name,
                container=container.result(),
                data=data.result(),
                system=SystemInfo(
                    os=platform.system(),
                    arch=platform.machine(),
                    daemon_running=daemon_running,
                    engine_version=version.result(),
                    memory=format_size(psutil.virtual_memory().total),
                ),
                tools=tools.result(),
            )

    def _container(self, daemon_running: bool) -> ContainerState:
        if not daemon_running:
            return ContainerState.absent()
        state = self.probe.get_status(self.config.container_name)
        if not state.exists:
            return state
        image = self.probe.container_image(self.config.container_name)
        return ContainerState(
            exists=True,
            running=state.running,
            status_text=state.status_text,
            created_at=state.created_at,
            ports=state.ports,
            image=image,
        )

    def _engine_version(self, daemon_running: bool) -> Optional[str]:
        if not daemon_running:
            return None
        return self.probe.engine_version()

    def tools(self) -> Dict[str, ToolInfo]:
        """Availability and version of the host tools."""
        found = {}
        for tool, version_cmd in TOOLS.items():
            path = self.which(tool)
            if not path:
                found[tool] = ToolInfo(available=False)
                continue
            result = self.runner.run(
                [path, *version_cmd[1:]], timeout=self.settings.command_check_timeout
            )
            match = VERSION_PATTERN.search(result.stdout) if result.ok else None
            found[tool] = ToolInfo(available=True, version=match.group(0) if match else None)
        return found
