"""Error kinds raised by devbox operations.

Every error carries remediation hints and the process exit code the CLI
should use when it surfaces the error.
"""
from typing import Iterable, List, Optional


class ManagerError(Exception):
    """Base class for errors surfaced to the invoking user."""

    exit_code = 1

    def __init__(self, message: str, hints: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.message = message
        self.hints: List[str] = list(hints or [])


class EngineNotInstalled(ManagerError):
    """Raised when no docker binary can be located."""


class EngineAppMissing(ManagerError):
    """Raised when the daemon is down and the engine application is not installed."""


class DaemonStartTimeout(ManagerError):
    """Raised when the daemon did not become reachable within the budget."""

    def __init__(self, elapsed: float, hints: Optional[Iterable[str]] = None):
        super().__init__(
            f"Docker daemon did not start within {elapsed:.0f} seconds",
            hints,
        )
        self.elapsed = elapsed


class ContainerNotFound(ManagerError):
    """Raised when the managed container does not exist."""


class ContainerNotRunning(ManagerError):
    """Raised when an operation needs a running container and it is stopped."""


class ContainerAlreadyInState(ManagerError):
    """The container already satisfies the requested action.

    This is a warning outcome: nothing was changed and the process exits 0.
    """

    exit_code = 0


class ConfirmationDeclined(ManagerError):
    """Raised when the user declines a destructive action."""


class ConfigError(ManagerError):
    """Raised for invalid configuration keys or values."""


class ConfigPersistError(ManagerError):
    """Raised when the configuration file (or its backup) cannot be written."""


class InvocationFailed(ManagerError):
    """Raised when an engine invocation exits non-zero."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"Command failed: {command}: {detail}")
        self.command = command
        self.returncode = exit_code
        self.stderr = stderr
