"""Host filesystem helpers: external volumes, directory sizes."""
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from devbox.core.logger import get_logger

logger = get_logger(__name__)

VOLUMES_ROOT = "/Volumes"
# Mounted by macOS itself, never a user drive
SYSTEM_VOLUMES = {"Macintosh HD", "Macintosh HD - Data", "Recovery", "Preboot", "VM", "Update"}


def detect_external_volumes(root: str = VOLUMES_ROOT) -> List[str]:
    """Return mounted external volumes (absolute paths), sorted by name."""
    base = Path(root)
    try:
        entries = sorted(base.iterdir(), key=lambda p: p.name)
    except OSError:
        return []

    volumes = []
    for entry in entries:
        if entry.name.startswith(".") or entry.name in SYSTEM_VOLUMES:
            continue
        if entry.is_dir() and not entry.is_symlink():
            volumes.append(str(entry))
    logger.debug(f"Detected external volumes: {volumes}")
    return volumes


def directory_size(path: Path) -> int:
    """Total size in bytes of regular files under ``path`` (symlinks not followed)."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for filename in filenames:
            try:
                info = os.lstat(os.path.join(dirpath, filename))
            except OSError:
                continue
            if stat.S_ISREG(info.st_mode):
                total += info.st_size
    return total


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M", "G", "T"):
        if value < 1024 or unit == "T":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"


@dataclass
class DataDirectoryInfo:
    path: str
    exists: bool
    size: Optional[str] = None
    permissions: Optional[str] = None


def describe_data_directory(path: str) -> DataDirectoryInfo:
    """Existence, human-readable size and mode string of the data directory."""
    target = Path(path).expanduser()
    if not target.is_dir():
        return DataDirectoryInfo(path=str(target), exists=False)

    try:
        permissions = stat.filemode(target.stat().st_mode)
    except OSError:
        permissions = None
    return DataDirectoryInfo(
        path=str(target),
        exists=True,
        size=format_size(directory_size(target)),
        permissions=permissions,
    )
