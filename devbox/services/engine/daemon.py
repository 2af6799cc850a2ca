"""Bring the docker daemon from unreachable to ready."""
import os
import time
from enum import Enum
from typing import Callable, Optional

from devbox.core.config import RuntimeSettings
from devbox.core.errors import DaemonStartTimeout, EngineAppMissing, InvocationFailed
from devbox.core.logger import get_logger
from devbox.core.retry import RetryBudget, progress_due, should_continue
from devbox.services.engine.invocation import CommandRunner
from devbox.services.engine.probe import EngineProbe

logger = get_logger(__name__)


class DaemonPhase(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    READY = "ready"
    LAUNCHING = "launching"
    POLLING = "polling"
    TIMED_OUT = "timed_out"


class DaemonStarter:
    """Guarantees the daemon is reachable before container operations run.

    The poll loop measures elapsed time with ``clock`` after each
    sleep + reprobe step, so it ends no later than one poll interval plus one
    probe timeout past the ceiling.
    """

    def __init__(
        self,
        probe: EngineProbe,
        settings: RuntimeSettings,
        runner: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        app_exists: Callable[[str], bool] = os.path.exists,
    ):
        self.probe = probe
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.sleep = sleep
        self.clock = clock
        self.app_exists = app_exists
        self.phase = DaemonPhase.UNKNOWN

    def ensure_ready(self) -> DaemonPhase:
        """Return once the daemon is ready.

        Raises:
            EngineAppMissing: Daemon down and Docker Desktop not installed
            InvocationFailed: Docker Desktop could not be opened
            DaemonStartTimeout: Daemon still unreachable after the ceiling
        """
        self.phase = DaemonPhase.CHECKING
        logger.debug("Checking if Docker daemon is running...")
        if self.probe.is_daemon_ready():
            self.phase = DaemonPhase.READY
            return self.phase

        app_path = self.settings.engine_app_path
        launch = ["open", "-a", self.settings.engine_app_name]

        if self.settings.dry_run:
            logger.info(f"[DRY RUN] Docker is not running; would run: {' '.join(launch)}")
            self.phase = DaemonPhase.READY
            return self.phase

        if not self.app_exists(app_path):
            raise EngineAppMissing(
                f"Docker daemon is not running and Docker Desktop was not found at {app_path}",
                hints=["Install Docker Desktop, or start your Docker engine manually, then re-run"],
            )

        self.phase = DaemonPhase.LAUNCHING
        logger.info("Docker is not running. Starting Docker Desktop...")
        result = self.runner.run(launch, timeout=self.settings.diagnostic_timeout)
        if not result.ok:
            raise InvocationFailed(" ".join(launch), result.exit_code, result.stderr)

        self._poll()
        return self.phase

    def _poll(self) -> None:
        self.phase = DaemonPhase.POLLING
        logger.info("Waiting for Docker daemon to start... (this may take 30-60 seconds)")

        budget = RetryBudget(
            max_seconds=self.settings.daemon_start_timeout,
            poll_interval_ms=int(self.settings.daemon_poll_interval * 1000),
        )
        started = self.clock()
        last_notice = 0.0

        while should_continue(budget):
            self.sleep(budget.poll_interval)
            ready = self.probe.is_daemon_ready()
            budget = budget.advance(self.clock() - started)

            if ready:
                logger.info(f"Docker started successfully after {budget.elapsed_seconds:.0f} seconds")
                self.phase = DaemonPhase.READY
                return

            if progress_due(budget, last_notice, self.settings.progress_every):
                last_notice = budget.elapsed_seconds
                logger.info(f"Still waiting... ({budget.elapsed_seconds:.0f}s elapsed)")

        self.phase = DaemonPhase.TIMED_OUT
        raise DaemonStartTimeout(
            budget.elapsed_seconds,
            hints=[
                "Check if Docker Desktop opened in your Applications",
                "Look for any error messages in Docker Desktop",
                "Once Docker shows 'Docker is running', re-run this command",
            ],
        )
