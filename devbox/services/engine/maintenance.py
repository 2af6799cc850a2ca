"""Container maintenance: logs, inspect, image update, backup, cleanup, listing."""
import json
import tarfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

from devbox.core.config import RuntimeSettings
from devbox.core.config_store import ConfigStore
from devbox.core.confirm import ConfirmationPort
from devbox.core.errors import (
    ConfirmationDeclined,
    ContainerNotFound,
    ManagerError,
)
from devbox.core.logger import get_logger
from devbox.core.reconciler import SETUP_HINTS
from devbox.services.engine.daemon import DaemonStarter
from devbox.services.engine.invocation import Engine, EngineInvocation
from devbox.services.engine.probe import ContainerState, EngineProbe

logger = get_logger(__name__)

LIST_FORMAT = "{{.Names}}\t{{.Status}}\t{{.CreatedAt}}\t{{.Image}}"


@dataclass
class ContainerSummary:
    name: str
    status: str
    created: str
    image: str
    managed: bool = False

    @property
    def running(self) -> bool:
        return self.status.lower().startswith("up")


class MaintenanceOperations:
    """Operations on the managed container outside the start/stop lifecycle."""

    def __init__(
        self,
        settings: RuntimeSettings,
        store: ConfigStore,
        engine: Engine,
        probe: EngineProbe,
        daemon: DaemonStarter,
        confirm: ConfirmationPort,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.store = store
        self.engine = engine
        self.probe = probe
        self.daemon = daemon
        self.confirm = confirm
        self.clock = clock

    @property
    def name(self) -> str:
        return self.store.current.container_name

    def _require_container(self) -> ContainerState:
        self.daemon.ensure_ready()
        state = self.probe.get_status(self.name)
        if not state.exists:
            raise ContainerNotFound(f"Container '{self.name}' does not exist.", hints=SETUP_HINTS)
        return state

    def logs(self, follow: bool = False, tail: str = "50", since: Optional[str] = None) -> int:
        """Stream container logs to the terminal and return docker's exit code."""
        self._require_container()

        args = ["--tail", tail]
        if follow:
            args.insert(0, "-f")
            logger.info("Following logs (Ctrl+C to exit)...")
        if since:
            args += ["--since", since]
        args.append(self.name)
        return self.engine.execute(EngineInvocation("logs", tuple(args), passthrough=True)).exit_code

    def inspect(self, fmt: Optional[str] = None) -> Any:
        """Return ``docker inspect`` output: parsed JSON, or the raw text for ``fmt``."""
        self._require_container()

        args = (self.name, "--format", fmt) if fmt else (self.name,)
        result = self.engine.check(
            EngineInvocation("inspect", args, timeout=self.settings.diagnostic_timeout)
        )
        if fmt:
            return result.stdout.strip()
        try:
            return json.loads(result.stdout)
        except ValueError as e:
            raise ManagerError(f"Unexpected inspect output: {e}") from e

    def update_image(self) -> None:
        """Pull the latest image and remove the container so setup can recreate it."""
        state = self._require_container()
        image = self.probe.container_image(self.name) or self.settings.image

        logger.warning("This will pull the latest image and remove the container.")
        logger.warning("Your data directory is preserved.")
        if not self.confirm.confirm(f"Update '{self.name}' to the latest {image}?"):
            raise ConfirmationDeclined("Operation cancelled.")

        logger.info(f"Pulling latest {image}...")
        self.engine.check(EngineInvocation("pull", (image,), mutating=True, passthrough=True))

        if state.running:
            logger.info("Stopping container...")
            self.engine.check(EngineInvocation("stop", (self.name,), mutating=True))
        logger.info("Removing old container...")
        self.engine.check(EngineInvocation("rm", (self.name,), mutating=True))

        logger.info("✓ Image updated. Run 'devbox setup' to recreate the container.")

    def backup(self, output: Optional[str] = None, compress: bool = True,
               include_container: bool = False) -> Optional[Path]:
        """Archive the data directory, optionally snapshotting the container image.

        Args:
            output: Archive path (default: devbox-backup-<date>.tar[.gz])
            compress: gzip the archive
            include_container: Also ``docker commit`` the container

        Returns:
            Path of the archive, or None when there was nothing to archive
        """
        data_dir = Path(self.store.current.data_path).expanduser()
        if output:
            target = Path(output).expanduser()
        else:
            stamp = datetime.fromtimestamp(self.clock()).strftime("%Y-%m-%d")
            target = Path(f"devbox-backup-{stamp}.tar{'.gz' if compress else ''}")

        archived: Optional[Path] = None
        if not data_dir.is_dir():
            logger.warning(f"Data directory not found: {data_dir}")
        elif self.engine.dry_run:
            self.engine.describe_host_action(f"archive {data_dir} to {target}")
        else:
            logger.info(f"Backing up {data_dir} to {target}...")
            mode = "w:gz" if compress else "w"
            try:
                with tarfile.open(target, mode) as archive:
                    archive.add(data_dir, arcname=data_dir.name)
            except OSError as e:
                raise ManagerError(f"Backup failed: {e}", hints=[f"Check that {target.parent} is writable"]) from e
            archived = target
            logger.info(f"✓ Data backed up to {target}")

        if include_container:
            self._snapshot_container()
        return archived

    def _snapshot_container(self) -> None:
        self.daemon.ensure_ready()
        if not self.probe.container_exists(self.name):
            logger.warning(f"Container '{self.name}' does not exist, skipping snapshot")
            return

        snapshot = f"{self.name}-backup:{int(self.clock())}"
        logger.info(f"Creating container snapshot {snapshot}...")
        self.engine.check(EngineInvocation("commit", (self.name, snapshot), mutating=True))
        logger.info(f"✓ Container snapshot saved as image {snapshot}")

    def cleanup(self, all_resources: bool = False, images: bool = False,
                volumes: bool = False) -> List[str]:
        """Prune unused engine resources and return docker's reports."""
        self.daemon.ensure_ready()

        if not self.confirm.confirm("This will remove unused Docker resources. Continue?"):
            raise ConfirmationDeclined("Operation cancelled.")

        invocations = [
            EngineInvocation(
                "system", ("prune", "-f", *(("-a",) if all_resources else ())), mutating=True
            )
        ]
        if images:
            invocations.append(EngineInvocation("image", ("prune", "-a", "-f"), mutating=True))
        if volumes:
            invocations.append(EngineInvocation("volume", ("prune", "-f"), mutating=True))

        reports = []
        for invocation in invocations:
            logger.info(f"Running {self.engine.describe(invocation)}...")
            result = self.engine.check(invocation)
            if result.stdout.strip():
                reports.append(result.stdout.strip())
        logger.info("✓ Cleanup complete")
        return reports

    def list_containers(self) -> List[ContainerSummary]:
        """All containers on the engine; the managed one is flagged."""
        self.daemon.ensure_ready()
        result = self.engine.check(
            EngineInvocation("ps", ("-a", "--format", LIST_FORMAT),
                             timeout=self.settings.diagnostic_timeout)
        )

        summaries = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            parts = line.split("\t") + [""] * 3
            summaries.append(ContainerSummary(
                name=parts[0].strip(),
                status=parts[1].strip(),
                created=parts[2].strip(),
                image=parts[3].strip(),
                managed=parts[0].strip() == self.name,
            ))
        return summaries
