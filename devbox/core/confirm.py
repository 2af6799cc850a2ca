"""Confirmation prompts for destructive actions."""
from typing import Protocol

import typer

from devbox.core.config import RuntimeSettings
from devbox.core.logger import get_logger

logger = get_logger(__name__)


class ConfirmationPort(Protocol):
    """Anything that can answer a yes/no question."""

    def confirm(self, question: str) -> bool:
        ...


class ForceConfirmation:
    """Answers yes to everything (--force, FORCE=1, dry-run)."""

    def __init__(self, reason: str = "force mode"):
        self.reason = reason

    def confirm(self, question: str) -> bool:
        logger.info(f"{question} yes (auto-confirmed, {self.reason})")
        return True


class InteractiveConfirmation:
    """Asks the user on the terminal."""

    def confirm(self, question: str) -> bool:
        return typer.confirm(question, default=False)


def confirmation_for(settings: RuntimeSettings, force: bool = False) -> ConfirmationPort:
    """Pick the confirmation implementation for this invocation.

    Args:
        settings: Runtime settings (FORCE / DRY_RUN)
        force: --force flag from the command line

    Returns:
        ForceConfirmation when forced or in dry-run, otherwise interactive
    """
    if force or settings.force:
        return ForceConfirmation()
    if settings.dry_run:
        return ForceConfirmation(reason="dry run")
    return InteractiveConfirmation()
