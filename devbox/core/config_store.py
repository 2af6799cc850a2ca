"""Persistent devbox configuration (~/.devbox.json).

The file is a sparse overlay: every load starts from built-in defaults
(seeded by environment overrides) and applies whatever valid fields the file
contains, so a missing or partial file always yields a complete config.
"""
import json
import os
import re
import shutil
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from devbox.core.config import DEFAULT_CONTAINER_NAME, RuntimeSettings
from devbox.core.errors import ConfigError, ConfigPersistError
from devbox.core.logger import get_logger

logger = get_logger(__name__)

CONTAINER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
MAX_CONTAINER_NAME = 63

# Python field name -> JSON key
_CONFIG_KEYS = {
    "container_name": "containerName",
    "data_path": "dataPath",
    "auto_start": "autoStart",
    "default_volumes": "defaultVolumes",
    "preferences": "preferences",
}
_PREFERENCE_KEYS = {
    "show_timestamps": "showTimestamps",
    "verbose_logging": "verboseLogging",
    "auto_cleanup": "autoCleanup",
}


@dataclass
class Preferences:
    show_timestamps: bool = True
    verbose_logging: bool = False
    auto_cleanup: bool = False


@dataclass
class ManagerConfig:
    """User configuration persisted across invocations."""

    container_name: str = DEFAULT_CONTAINER_NAME
    data_path: str = "/tmp/ubuntu"
    auto_start: bool = False
    default_volumes: List[str] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)

    @classmethod
    def defaults(cls, settings: Optional[RuntimeSettings] = None,
                 seed_env: bool = True) -> "ManagerConfig":
        """Build the default configuration.

        Args:
            settings: Runtime settings (home directory and env overrides)
            seed_env: Apply CONTAINER_NAME / DATA_PATH / preference overrides

        Returns:
            Fully populated ManagerConfig
        """
        settings = settings or RuntimeSettings()
        config = cls(data_path=settings.default_data_path)
        if not seed_env:
            return config

        return cls(
            container_name=settings.container_name or config.container_name,
            data_path=settings.data_path or config.data_path,
            auto_start=settings.auto_start,
            preferences=Preferences(
                show_timestamps=settings.show_timestamps,
                verbose_logging=settings.debug_logging,
                auto_cleanup=settings.auto_cleanup,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the JSON (camelCase) field names."""
        return {
            "containerName": self.container_name,
            "dataPath": self.data_path,
            "autoStart": self.auto_start,
            "defaultVolumes": list(self.default_volumes),
            "preferences": {
                json_key: getattr(self.preferences, attr)
                for attr, json_key in _PREFERENCE_KEYS.items()
            },
        }

    def copy(self) -> "ManagerConfig":
        return replace(
            self,
            default_volumes=list(self.default_volumes),
            preferences=replace(self.preferences),
        )

    def overlay(self, data: Dict[str, Any]) -> "ManagerConfig":
        """Return a copy with valid fields from ``data`` applied per field.

        Unknown keys and values of the wrong type are ignored.
        """
        merged = self.copy()

        name = data.get("containerName")
        if isinstance(name, str) and name:
            merged.container_name = name

        data_path = data.get("dataPath")
        if isinstance(data_path, str) and data_path:
            merged.data_path = data_path

        auto_start = data.get("autoStart")
        if isinstance(auto_start, bool):
            merged.auto_start = auto_start

        volumes = data.get("defaultVolumes")
        if isinstance(volumes, list):
            unique: List[str] = []
            for volume in volumes:
                if isinstance(volume, str) and volume not in unique:
                    unique.append(volume)
                else:
                    logger.debug(f"Ignoring default volume entry: {volume!r}")
            merged.default_volumes = unique

        preferences = data.get("preferences")
        if isinstance(preferences, dict):
            for attr, json_key in _PREFERENCE_KEYS.items():
                value = preferences.get(json_key)
                if isinstance(value, bool):
                    setattr(merged.preferences, attr, value)

        return merged


def validate_container_name(name: str) -> None:
    """Raise ConfigError unless ``name`` is a valid container name."""
    if not name:
        raise ConfigError("Container name cannot be empty")
    if not CONTAINER_NAME_PATTERN.match(name):
        raise ConfigError(
            "Container name must start with an alphanumeric character and contain "
            "only letters, numbers, underscores, periods, and hyphens"
        )
    if len(name) > MAX_CONTAINER_NAME:
        raise ConfigError(f"Container name cannot exceed {MAX_CONTAINER_NAME} characters")


class ConfigStore:
    """Single owner of the in-memory configuration for one invocation.

    Mutations are read-modify-write of the whole object. The in-memory copy
    only advances after the file was written successfully.

    There is no cross-process locking: concurrent invocations race on the
    file and the last writer wins.
    """

    def __init__(self, settings: RuntimeSettings, path: Optional[Path] = None):
        self.settings = settings
        self.path = Path(path) if path else settings.config_file
        self._config = self.load()

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".backup")

    @property
    def exists(self) -> bool:
        return self.path.exists()

    @property
    def current(self) -> ManagerConfig:
        return self._config.copy()

    def load(self) -> ManagerConfig:
        """Load configuration: defaults <- environment <- file.

        Returns:
            Fully populated ManagerConfig
        """
        config = ManagerConfig.defaults(self.settings)

        try:
            with open(self.path, "r") as f:
                saved = json.load(f)
        except FileNotFoundError:
            logger.debug(f"Config file not found, using defaults: {self.path}")
            saved = None
        except (OSError, ValueError) as e:
            logger.debug(f"Config file unreadable, using defaults: {e}")
            saved = None

        if isinstance(saved, dict):
            config = config.overlay(saved)
        elif saved is not None:
            logger.debug(f"Config file {self.path} is not a JSON object, ignoring")

        self._config = config
        return config.copy()

    def update(self, **changes: Any) -> ManagerConfig:
        """Merge changes into the configuration and persist the whole object.

        Args:
            **changes: ManagerConfig field names; ``preferences`` may be a dict
                of Preferences field names to merge per field

        Returns:
            The new configuration

        Raises:
            ConfigError: Unknown field or invalid value
            ConfigPersistError: The file could not be written (nothing changed)
        """
        valid = {f.name for f in fields(ManagerConfig)}
        unknown = set(changes) - valid
        if unknown:
            raise ConfigError(f"Unknown configuration key: {', '.join(sorted(unknown))}")

        candidate = self._config.copy()
        for key, value in changes.items():
            if key == "preferences" and isinstance(value, dict):
                pref_fields = {f.name for f in fields(Preferences)}
                bad = set(value) - pref_fields
                if bad:
                    raise ConfigError(f"Unknown preference: {', '.join(sorted(bad))}")
                candidate.preferences = replace(candidate.preferences, **value)
            elif key == "default_volumes":
                volumes = list(value)
                if len(set(volumes)) != len(volumes):
                    raise ConfigError("Default volumes must not contain duplicates")
                candidate.default_volumes = volumes
            else:
                setattr(candidate, key, value)

        if "container_name" in changes:
            validate_container_name(candidate.container_name)

        self._write(candidate)
        self._config = candidate
        return candidate.copy()

    def reset(self) -> Optional[Path]:
        """Archive the current file and restore built-in defaults.

        Returns:
            Path of the backup file, or None if there was no file to archive

        Raises:
            ConfigPersistError: The backup or the new file could not be written
        """
        backup = None
        if self.path.exists():
            try:
                shutil.copyfile(self.path, self.backup_path)
            except OSError as e:
                raise ConfigPersistError(
                    f"Failed to back up configuration to {self.backup_path}: {e}",
                    hints=["Configuration was left unchanged"],
                ) from e
            backup = self.backup_path
            logger.info(f"Backup created at {backup}")

        defaults = ManagerConfig.defaults(self.settings, seed_env=False)
        self._write(defaults)
        self._config = defaults
        return backup

    # Convenience mutations

    def set_container_name(self, name: str) -> ManagerConfig:
        validate_container_name(name)
        return self.update(container_name=name)

    def set_data_path(self, path: str) -> ManagerConfig:
        expanded = Path(path).expanduser()
        if not expanded.exists():
            raise ConfigError(f"Path does not exist: {expanded}")
        return self.update(data_path=str(expanded))

    def toggle_auto_start(self) -> ManagerConfig:
        return self.update(auto_start=not self._config.auto_start)

    def add_default_volume(self, volume: str) -> bool:
        """Append a default volume. Returns False (with a warning) if present."""
        if volume in self._config.default_volumes:
            logger.warning(f"Volume already exists: {volume}")
            return False
        self.update(default_volumes=self._config.default_volumes + [volume])
        return True

    def remove_default_volume(self, volume: str) -> bool:
        """Remove a default volume. Returns False (with a warning) if absent."""
        if volume not in self._config.default_volumes:
            logger.warning(f"Volume not found: {volume}")
            return False
        remaining = [v for v in self._config.default_volumes if v != volume]
        self.update(default_volumes=remaining)
        return True

    def _write(self, config: ManagerConfig) -> None:
        """Write atomically (write to temp, then rename)."""
        temp_file = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w") as f:
                json.dump(config.to_dict(), f, indent=2)
                f.write("\n")
            os.replace(temp_file, self.path)
        except OSError as e:
            try:
                temp_file.unlink()
            except OSError:
                pass
            raise ConfigPersistError(f"Failed to save configuration to {self.path}: {e}") from e
        logger.debug(f"Saved configuration to {self.path}")
