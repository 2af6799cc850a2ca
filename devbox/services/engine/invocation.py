"""Typed engine invocations and the process runner that executes them."""
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from devbox.core.errors import InvocationFailed
from devbox.core.logger import get_logger

logger = get_logger(__name__)

TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 127


@dataclass(frozen=True)
class EngineHandle:
    """Resolved docker binary, fixed for the process lifetime."""

    binary_path: str


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class EngineInvocation:
    """One docker CLI call: subcommand plus argument list.

    Attributes:
        subcommand: Docker subcommand (``ps``, ``start``, ...)
        args: Arguments after the subcommand
        mutating: Changes engine or container state (skipped under dry-run)
        passthrough: Output goes to the terminal instead of being captured
        timeout: Seconds before the call is abandoned (None = no limit)
    """

    subcommand: str
    args: Tuple[str, ...] = field(default_factory=tuple)
    mutating: bool = False
    passthrough: bool = False
    timeout: Optional[float] = None

    def argv(self, binary: str) -> List[str]:
        return [binary, self.subcommand, *self.args]

    def describe(self, binary: str = "docker") -> str:
        return shlex.join(self.argv(binary))


class CommandRunner:
    """Spawns processes directly (no shell) and never raises."""

    def run(
        self,
        argv: Sequence[str],
        timeout: Optional[float] = None,
        capture: bool = True,
    ) -> CommandResult:
        """Run a command and return its exit code and output.

        Args:
            argv: Program and arguments
            timeout: Seconds before the process is killed
            capture: Capture stdout/stderr; False attaches to the terminal

        Returns:
            CommandResult (exit 124 on timeout, 127 when the program cannot start)
        """
        logger.debug(f"Executing: {shlex.join(argv)}")
        try:
            if capture:
                completed = subprocess.run(
                    list(argv),
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                    check=False,
                )
                result = CommandResult(completed.returncode, completed.stdout or "", completed.stderr or "")
            else:
                completed = subprocess.run(list(argv), timeout=timeout, check=False)
                result = CommandResult(completed.returncode)
        except subprocess.TimeoutExpired:
            logger.debug(f"Command timed out after {timeout}s: {argv[0]}")
            return CommandResult(TIMEOUT_EXIT_CODE, "", f"timed out after {timeout}s")
        except OSError as e:
            logger.debug(f"Failed to spawn {argv[0]}: {e}")
            return CommandResult(SPAWN_FAILURE_EXIT_CODE, "", str(e))

        logger.debug(f"Command completed with exit code: {result.exit_code}")
        return result


class Engine:
    """Executes invocations against one docker binary, honouring dry-run."""

    def __init__(self, handle: EngineHandle, runner: Optional[CommandRunner] = None,
                 dry_run: bool = False):
        self.handle = handle
        self.runner = runner or CommandRunner()
        self.dry_run = dry_run
        self.planned: List[str] = []

    @property
    def binary(self) -> str:
        return self.handle.binary_path

    def describe(self, invocation: EngineInvocation) -> str:
        return invocation.describe(self.binary)

    def describe_host_action(self, description: str) -> None:
        """Record a non-engine action that dry-run skipped."""
        self.planned.append(description)
        logger.info(f"[DRY RUN] Would {description}")

    def execute(self, invocation: EngineInvocation) -> CommandResult:
        """Run an invocation, or describe it if it mutates state under dry-run."""
        if self.dry_run and invocation.mutating:
            command = self.describe(invocation)
            self.planned.append(command)
            logger.info(f"[DRY RUN] Would run: {command}")
            return CommandResult(0)

        return self.runner.run(
            invocation.argv(self.binary),
            timeout=invocation.timeout,
            capture=not invocation.passthrough,
        )

    def check(self, invocation: EngineInvocation) -> CommandResult:
        """Like execute(), but raise InvocationFailed on a non-zero exit."""
        result = self.execute(invocation)
        if not result.ok:
            raise InvocationFailed(self.describe(invocation), result.exit_code, result.stderr)
        return result
