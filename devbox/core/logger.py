"""Unified logging for devbox with console and file output."""
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

ROOT_LOGGER = "devbox"

# Log file configuration
LOG_FILE = Path.home() / ".devbox" / "devbox.log"

# Track if file logging has been set up
_file_logging_configured = False
_console_show_time: Optional[bool] = None


def _console_handler() -> Optional[RichHandler]:
    root_logger = logging.getLogger(ROOT_LOGGER)
    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            return handler
    return None


def configure_logging(debug: bool = False, show_timestamps: bool = True) -> None:
    """Apply verbosity and timestamp preferences to console logging.

    Args:
        debug: Enable debug-level logging
        show_timestamps: Show a time column in console output
    """
    global _console_show_time

    root_logger = logging.getLogger(ROOT_LOGGER)
    handler = _console_handler()
    if handler is None or _console_show_time != show_timestamps:
        if handler is not None:
            root_logger.removeHandler(handler)
        handler = RichHandler(console=console, show_path=False, show_time=show_timestamps)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)
        _console_show_time = show_timestamps

    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> Path:
    """Set up file logging for devbox operations.

    Args:
        log_file: Path to log file (defaults to ~/.devbox/devbox.log)
        verbose: Enable debug-level logging

    Returns:
        The path actually used for the log file

    Note:
        Falls back to /tmp if the log directory is not writable.
    """
    global _file_logging_configured

    target_log_file = Path(log_file) if log_file else LOG_FILE
    if _file_logging_configured:
        return target_log_file

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        target_log_file = Path("/tmp/devbox.log")

    root_logger = logging.getLogger(ROOT_LOGGER)
    file_handler = logging.FileHandler(target_log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Detailed format for file logs
    file_formatter = logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    if verbose:
        root_logger.setLevel(logging.DEBUG)

    _file_logging_configured = True
    root_logger.info(f"devbox logging initialized: {target_log_file}")
    return target_log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger that writes through the shared Rich console.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger in the devbox hierarchy

    Note:
        File logging must be enabled separately via setup_file_logging()
    """
    if _console_handler() is None:
        configure_logging()

    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
