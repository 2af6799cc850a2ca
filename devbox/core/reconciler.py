"""Map a requested action plus observed container state to a plan.

The decision table is pure: it reads a ContainerState and returns the
ordered engine steps (or the error/notice to surface) without touching the
engine. LifecycleController executes the plan.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from devbox.core.errors import (
    ContainerAlreadyInState,
    ContainerNotFound,
    ContainerNotRunning,
    ManagerError,
)
from devbox.services.engine.probe import ContainerState


class Action(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    DELETE = "delete"
    ATTACH = "attach"
    EXEC = "exec"


class Step(str, Enum):
    START = "start"                    # docker start (detached)
    START_ATTACHED = "start_attached"  # docker start -ai
    STOP = "stop"                      # docker stop --time N
    KILL = "kill"                      # docker kill
    REMOVE = "remove"                  # docker rm
    EXEC = "exec"                      # docker exec [-it]


@dataclass
class ActionOptions:
    """Flags that influence the plan."""

    detach: bool = False
    attach: bool = False
    force: bool = False
    auto_start: bool = False
    stop_timeout: int = 10


@dataclass
class ReconciliationPlan:
    """Ordered steps for one action, or the reason nothing should run."""

    action: Action
    steps: List[Step] = field(default_factory=list)
    requires_confirmation: bool = False
    offer_data_removal: bool = False
    error: Optional[ManagerError] = None
    notice: Optional[ContainerAlreadyInState] = None

    @property
    def is_noop(self) -> bool:
        return not self.steps


def _not_found(name: str, hints: List[str]) -> ContainerNotFound:
    return ContainerNotFound(f"Container '{name}' does not exist.", hints=hints)


SETUP_HINTS = [
    "Run 'devbox setup' to create the container",
    "Check if you meant a different container name (CONTAINER_NAME)",
    "Use 'devbox status' to see the current state",
]


def plan_action(
    action: Action,
    name: str,
    state: ContainerState,
    options: Optional[ActionOptions] = None,
) -> ReconciliationPlan:
    """Build the plan for ``action`` against ``state``.

    Args:
        action: Requested action
        name: Managed container name (for messages)
        state: Observed container state
        options: Action flags

    Returns:
        ReconciliationPlan with steps, or an error / notice and no steps
    """
    options = options or ActionOptions()
    plan = ReconciliationPlan(action=action)

    if action == Action.START:
        if not state.exists:
            plan.error = ContainerNotFound(
                f"Container '{name}' does not exist. Run 'devbox setup' to create it first.",
                hints=["devbox setup"],
            )
        elif not state.running:
            plan.steps = [Step.START if options.detach else Step.START_ATTACHED]
        elif options.attach:
            plan.steps = [Step.EXEC]
        else:
            plan.notice = ContainerAlreadyInState(
                f"Container '{name}' is already running.",
                hints=[
                    "devbox start --attach    # Attach to running container",
                    "devbox attach            # Open new shell in container",
                    "devbox restart           # Restart the container",
                    "devbox status            # Check container status",
                ],
            )

    elif action == Action.STOP:
        if not state.exists:
            plan.notice = ContainerAlreadyInState(f"Container '{name}' does not exist.")
        elif not state.running:
            plan.notice = ContainerAlreadyInState(f"Container '{name}' is not running.")
        else:
            plan.steps = [Step.STOP]
            plan.requires_confirmation = True

    elif action == Action.RESTART:
        if not state.exists:
            plan.error = _not_found(name, SETUP_HINTS[:1])
        elif not state.running:
            plan.steps = [Step.START]
        else:
            plan.steps = [Step.KILL if options.force else Step.STOP, Step.START]

    elif action == Action.DELETE:
        if not state.exists:
            plan.notice = ContainerAlreadyInState(f"Container '{name}' does not exist.")
        else:
            plan.steps = [Step.STOP, Step.REMOVE] if state.running else [Step.REMOVE]
            plan.requires_confirmation = True
            plan.offer_data_removal = True

    elif action in (Action.ATTACH, Action.EXEC):
        if not state.exists:
            plan.error = _not_found(name, SETUP_HINTS)
        elif not state.running:
            if options.auto_start:
                plan.steps = [Step.START, Step.EXEC]
            else:
                plan.error = ContainerNotRunning(
                    f"Container '{name}' is not running.",
                    hints=[
                        "Run 'devbox start --detach' to start the container",
                        "Use 'devbox status' to check container state",
                        "Tip: use '--start' (or AUTO_START=1) to start it automatically",
                    ],
                )
        else:
            plan.steps = [Step.EXEC]

    return plan
