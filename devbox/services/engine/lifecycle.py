"""Container lifecycle: setup, start, stop, restart, delete, attach, exec."""
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from devbox.core.config import RuntimeSettings
from devbox.core.config_store import ConfigStore
from devbox.core.confirm import ConfirmationPort
from devbox.core.errors import ConfirmationDeclined, ContainerAlreadyInState
from devbox.core.logger import get_logger
from devbox.core.reconciler import (
    Action,
    ActionOptions,
    ReconciliationPlan,
    Step,
    plan_action,
)
from devbox.services.engine.daemon import DaemonStarter
from devbox.services.engine.invocation import Engine, EngineInvocation
from devbox.services.engine.probe import ContainerState, EngineProbe

logger = get_logger(__name__)

DEFAULT_SHELL = "/bin/bash"
SHELLS = {"bash", "sh", "zsh", "ash", "dash", "fish"}

SETUP_MARKER = ".setup-complete"
SETUP_SCRIPT = ".setup-env.sh"

# Runs once on first boot (the marker lives on the data mount), then a shell
BOOTSTRAP = (
    f"if [ ! -f /data/{SETUP_MARKER} ]; then /data/{SETUP_SCRIPT}; fi; "
    "exec /bin/bash"
)

PROVISION_SCRIPT = f"""#!/bin/bash
set -e

echo "Provisioning development environment..."
export DEBIAN_FRONTEND=noninteractive

apt-get update
apt-get install -y --no-install-recommends \\
    ca-certificates curl wget git unzip build-essential \\
    python3 python3-pip python3-venv

# Node.js LTS
curl -fsSL https://deb.nodesource.com/setup_lts.x | bash -
apt-get install -y nodejs

# Bun
curl -fsSL https://bun.sh/install | bash
ln -sf /root/.bun/bin/bun /usr/local/bin/bun

mkdir -p /data/workspace
touch /data/{SETUP_MARKER}
echo "Environment ready."
"""


def is_shell_session(command: Sequence[str]) -> bool:
    """True when ``command`` opens an interactive shell rather than a one-shot command."""
    if not command:
        return True
    program = Path(command[0]).name
    return program in SHELLS and "-c" not in command[1:]


def exec_arguments(command: Sequence[str]) -> List[str]:
    """Argument list for the command part of ``docker exec``.

    A single word containing spaces (``"ls -la /data"``) runs through ``sh -c``;
    anything else is passed as-is.
    """
    if not command:
        return [DEFAULT_SHELL]
    if len(command) == 1 and " " in command[0].strip():
        return ["/bin/sh", "-c", command[0]]
    return list(command)


def volume_argument(volume: str) -> str:
    """``src:dst`` as given; a bare host path mounts at /mnt/<basename>."""
    if ":" in volume:
        return volume
    return f"{volume}:/mnt/{Path(volume.rstrip('/')).name}"


class LifecycleController:
    """Executes reconciliation plans against the managed container.

    Every public action observes the container first, asks the planner what
    to do, and only then talks to the engine.
    """

    def __init__(
        self,
        settings: RuntimeSettings,
        store: ConfigStore,
        engine: Engine,
        probe: EngineProbe,
        daemon: DaemonStarter,
        confirm: ConfirmationPort,
    ):
        self.settings = settings
        self.store = store
        self.engine = engine
        self.probe = probe
        self.daemon = daemon
        self.confirm = confirm

    @property
    def name(self) -> str:
        return self.store.current.container_name

    def observe(self) -> ContainerState:
        """Ensure the daemon is up, then read exists/running by exact name."""
        self.daemon.ensure_ready()
        exists = self.probe.container_exists(self.name)
        running = exists and self.probe.container_running(self.name)
        return ContainerState(exists=exists, running=running)

    def plan(self, action: Action, options: Optional[ActionOptions] = None) -> ReconciliationPlan:
        plan = plan_action(action, self.name, self.observe(), options)
        logger.debug(f"Plan for {action.value}: {[step.value for step in plan.steps]}")
        if plan.error is not None:
            raise plan.error
        if plan.notice is not None:
            raise plan.notice
        return plan

    def _require_confirmation(self, question: str) -> None:
        if not self.confirm.confirm(question):
            raise ConfirmationDeclined("Operation cancelled.")

    def _invocation(self, step: Step, stop_timeout: int = 10,
                    command: Sequence[str] = (), interactive: bool = False) -> EngineInvocation:
        name = self.name
        if step == Step.START:
            return EngineInvocation("start", (name,), mutating=True)
        if step == Step.START_ATTACHED:
            return EngineInvocation("start", ("-ai", name), mutating=True, passthrough=True)
        if step == Step.STOP:
            return EngineInvocation("stop", ("--time", str(stop_timeout), name), mutating=True)
        if step == Step.KILL:
            return EngineInvocation("kill", (name,), mutating=True)
        if step == Step.REMOVE:
            return EngineInvocation("rm", (name,), mutating=True)
        # Step.EXEC
        if is_shell_session(command):
            flags: Tuple[str, ...] = ("-it",)
        else:
            flags = ("-i",) if interactive else ()
        return EngineInvocation(
            "exec",
            (*flags, name, *exec_arguments(command)),
            mutating=True,
            passthrough=True,
        )

    def start(self, detach: bool = False, attach: bool = False) -> int:
        """Start the container (attached by default) or attach to it if running.

        Returns:
            Exit code of the attached session, 0 when detached
        """
        plan = self.plan(Action.START, ActionOptions(detach=detach, attach=attach))
        step = plan.steps[0]

        if step == Step.START:
            logger.info(f"Starting container '{self.name}' in background...")
            self.engine.check(self._invocation(Step.START))
            logger.info(f"✓ Container '{self.name}' started in background")
            return 0

        if step == Step.START_ATTACHED:
            logger.info(f"Starting container '{self.name}' and attaching...")
            return self.engine.execute(self._invocation(Step.START_ATTACHED)).exit_code

        logger.info(f"Attaching to running container '{self.name}'...")
        return self.engine.execute(self._invocation(Step.EXEC)).exit_code

    def stop(self) -> None:
        self.plan(Action.STOP)
        self._require_confirmation(f"Stop container '{self.name}'?")

        logger.info(f"Stopping container '{self.name}'...")
        self.engine.check(self._invocation(Step.STOP))
        logger.info(f"✓ Container '{self.name}' stopped")

    def restart(self, force: bool = False, timeout: int = 10) -> None:
        """Stop (or kill with ``force``) then start; a stopped container is just started."""
        plan = self.plan(Action.RESTART, ActionOptions(force=force, stop_timeout=timeout))

        for step in plan.steps:
            if step == Step.KILL:
                logger.info(f"Force stopping container '{self.name}'...")
            elif step == Step.STOP:
                logger.info(f"Stopping container '{self.name}' (timeout: {timeout}s)...")
            else:
                logger.info(f"Starting container '{self.name}'...")
            self.engine.check(self._invocation(step, stop_timeout=timeout))

        logger.info(f"✓ Container '{self.name}' restarted")

    def delete(self, keep_data: bool = False) -> None:
        """Remove the container, then offer to remove its data directory."""
        plan = self.plan(Action.DELETE)
        data_dir = Path(self.store.current.data_path).expanduser()

        logger.warning("This will permanently delete the container!")
        if data_dir.exists():
            logger.warning(f"Data directory will be preserved unless you choose otherwise: {data_dir}")
        self._require_confirmation(f"Delete container '{self.name}'?")

        for step in plan.steps:
            if step == Step.STOP:
                logger.info("Stopping container...")
                result = self.engine.execute(self._invocation(Step.STOP))
                if not result.ok:
                    detail = result.stderr.strip() or f"exit code {result.exit_code}"
                    logger.warning(f"Failed to stop container gracefully ({detail}), removing anyway")
            else:
                logger.info("Removing container...")
                self.engine.check(self._invocation(Step.REMOVE))
        logger.info(f"✓ Container '{self.name}' deleted")

        if plan.offer_data_removal and not keep_data and data_dir.exists():
            self._remove_data_directory(data_dir)

    def _remove_data_directory(self, data_dir: Path) -> None:
        if not self.confirm.confirm(f"Delete the data directory as well? ({data_dir})"):
            logger.info(f"Data directory preserved at: {data_dir}")
            return

        if self.engine.dry_run:
            self.engine.describe_host_action(f"delete directory {data_dir}")
            return

        try:
            shutil.rmtree(data_dir)
        except OSError as e:
            logger.warning(f"Could not delete data directory: {e}")
            logger.warning(f"Remove it manually: rm -rf '{data_dir}'")
            return
        logger.info("✓ Data directory deleted")

    def attach(self, command: Sequence[str] = (), auto_start: bool = False) -> int:
        """Open a shell (or run ``command``) in the container.

        Args:
            command: Command to run; empty opens /bin/bash
            auto_start: Start the container first if it is stopped

        Returns:
            Exit code of the session
        """
        auto_start = auto_start or self.settings.auto_start or self.store.current.auto_start
        plan = self.plan(Action.ATTACH, ActionOptions(auto_start=auto_start))
        return self._run_exec_plan(plan, command)

    def exec(self, command: Sequence[str], interactive: bool = False) -> int:
        """Run ``command`` in the running container and return its exit code."""
        plan = self.plan(Action.EXEC)
        return self._run_exec_plan(plan, command, interactive=interactive)

    def _run_exec_plan(self, plan: ReconciliationPlan, command: Sequence[str],
                       interactive: bool = False) -> int:
        exit_code = 0
        for step in plan.steps:
            if step == Step.START:
                logger.warning(f"Container '{self.name}' is not running, starting it first")
                self.engine.check(self._invocation(Step.START))
                continue
            if is_shell_session(command):
                logger.info(f"Opening shell in '{self.name}'... (exit to detach)")
            invocation = self._invocation(Step.EXEC, command=command, interactive=interactive)
            exit_code = self.engine.execute(invocation).exit_code

        if exit_code == 130:
            logger.info("Session interrupted")
        return exit_code

    def setup(self, data_path: Optional[str] = None, image: Optional[str] = None) -> Path:
        """Create the container with its data directory bind-mounted at /data.

        Args:
            data_path: Host data directory (defaults to the configured path)
            image: Image to run (defaults to ubuntu:latest)

        Returns:
            The data directory used

        Raises:
            ContainerAlreadyInState: The container already exists
        """
        image = image or self.settings.image
        data_dir = Path(data_path or self.store.current.data_path).expanduser()

        self.daemon.ensure_ready()
        if self.probe.container_exists(self.name):
            raise ContainerAlreadyInState(
                f"Container '{self.name}' already exists.",
                hints=[
                    "devbox start                      # Start the existing container",
                    "devbox delete && devbox setup     # Recreate it",
                ],
            )

        logger.info(f"Data directory: {data_dir}")
        self._prepare_data_directory(data_dir)

        logger.info(f"Pulling {image}...")
        self.engine.check(EngineInvocation("pull", (image,), mutating=True, passthrough=True))

        args = ["-dit", "--name", self.name, "--hostname", self.name, "-v", f"{data_dir}:/data"]
        for volume in self.store.current.default_volumes:
            args += ["-v", volume_argument(volume)]
        args += ["--entrypoint", "/bin/bash", image, "-c", BOOTSTRAP]

        logger.info(f"Creating container '{self.name}'...")
        self.engine.check(EngineInvocation("run", tuple(args), mutating=True))

        if self.engine.dry_run:
            self.engine.describe_host_action(
                f"save containerName={self.name}, dataPath={data_dir} to {self.store.path}"
            )
        else:
            self.store.update(container_name=self.name, data_path=str(data_dir))

        logger.info(f"✓ Container '{self.name}' created")
        logger.info("First boot installs the toolchain; follow progress with 'devbox logs -f'")
        return data_dir

    def _prepare_data_directory(self, data_dir: Path) -> None:
        script = data_dir / SETUP_SCRIPT
        if self.engine.dry_run:
            self.engine.describe_host_action(f"create {data_dir} and write {script}")
            return

        data_dir.mkdir(parents=True, exist_ok=True)
        if (data_dir / SETUP_MARKER).exists():
            logger.info("Existing environment found in data directory; provisioning will be skipped")
        script.write_text(PROVISION_SCRIPT)
        script.chmod(0o755)
