"""devbox runtime configuration and settings."""
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_CONTAINER_NAME = "ubuntu"
DEFAULT_IMAGE = "ubuntu:latest"
CONFIG_FILENAME = ".devbox.json"


def _flag(environ: Mapping[str, str], key: str) -> bool:
    return environ.get(key) == "1"


def _number(environ: Mapping[str, str], key: str, default: float) -> float:
    value = environ.get(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class RuntimeSettings:
    """Runtime configuration for a single devbox invocation.

    Built once at startup from the environment and passed explicitly to every
    component. Nothing downstream reads the environment on its own.

    Attributes:
        container_name: Container name override (CONTAINER_NAME)
        data_path: Data directory override (DATA_PATH)
        dry_run: Describe state-changing calls instead of running them (DRY_RUN=1)
        force: Skip confirmation prompts (FORCE=1)
        debug: Debug logging (DEBUG=1)
        verbose: Verbose logging (VERBOSE=1)
        auto_start: Start stopped containers before attaching (AUTO_START=1)
        show_timestamps: Timestamps in console output (SHOW_TIMESTAMPS=0 disables)
        auto_cleanup: Preference seed for automatic cleanup (AUTO_CLEANUP=1)
        engine_binary: Explicit docker binary path (DOCKER_BIN)
        home: Home directory used for default paths (HOME)
        config_path: Persisted config file (DEVBOX_CONFIG, default ~/.devbox.json)
        command_check_timeout: Seconds for command existence checks (default: 3)
        daemon_probe_timeout: Seconds for a single daemon liveness probe (default: 5)
        daemon_start_timeout: Seconds to wait for a cold daemon start (default: 90)
        daemon_poll_interval: Seconds between liveness probes while starting (default: 1)
        diagnostic_timeout: Seconds for diagnostic commands (default: 10)
    """

    container_name: Optional[str] = None
    data_path: Optional[str] = None
    dry_run: bool = False
    force: bool = False
    debug: bool = False
    verbose: bool = False
    auto_start: bool = False
    show_timestamps: bool = True
    auto_cleanup: bool = False
    engine_binary: Optional[str] = None
    home: str = "/tmp"
    config_path: Optional[str] = None

    # Timeouts
    command_check_timeout: float = 3
    daemon_probe_timeout: float = 5
    daemon_start_timeout: float = 90
    daemon_poll_interval: float = 1.0
    diagnostic_timeout: float = 10

    # Engine application (Docker Desktop)
    engine_app_path: str = "/Applications/Docker.app"
    engine_app_name: str = "Docker"
    image: str = DEFAULT_IMAGE
    progress_every: float = 15

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeSettings":
        """Create settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            RuntimeSettings with values from the environment or defaults
        """
        if environ is None:
            import os
            environ = os.environ

        return cls(
            container_name=environ.get("CONTAINER_NAME") or None,
            data_path=environ.get("DATA_PATH") or None,
            dry_run=_flag(environ, "DRY_RUN"),
            force=_flag(environ, "FORCE"),
            debug=_flag(environ, "DEBUG"),
            verbose=_flag(environ, "VERBOSE"),
            auto_start=_flag(environ, "AUTO_START"),
            show_timestamps=environ.get("SHOW_TIMESTAMPS") != "0",
            auto_cleanup=_flag(environ, "AUTO_CLEANUP"),
            engine_binary=environ.get("DOCKER_BIN") or None,
            home=environ.get("HOME") or "/tmp",
            config_path=environ.get("DEVBOX_CONFIG") or None,
            command_check_timeout=_number(
                environ, "DEVBOX_COMMAND_CHECK_TIMEOUT", cls.command_check_timeout
            ),
            daemon_probe_timeout=_number(
                environ, "DEVBOX_DAEMON_PROBE_TIMEOUT", cls.daemon_probe_timeout
            ),
            daemon_start_timeout=_number(
                environ, "DEVBOX_DAEMON_START_TIMEOUT", cls.daemon_start_timeout
            ),
            daemon_poll_interval=_number(
                environ, "DEVBOX_DAEMON_POLL_INTERVAL", cls.daemon_poll_interval
            ),
            diagnostic_timeout=_number(
                environ, "DEVBOX_DIAGNOSTIC_TIMEOUT", cls.diagnostic_timeout
            ),
        )

    @property
    def debug_logging(self) -> bool:
        return self.debug or self.verbose

    @property
    def config_file(self) -> Path:
        if self.config_path:
            return Path(self.config_path).expanduser()
        return Path(self.home) / CONFIG_FILENAME

    @property
    def default_data_path(self) -> str:
        return str(Path(self.home) / DEFAULT_CONTAINER_NAME)
