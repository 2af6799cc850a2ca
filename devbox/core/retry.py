"""Retry budget for polling loops.

The budget is a plain value: the loop threads it through the pure
``should_continue`` decision and advances it after each sleep + reprobe step,
so the policy can be tested without real timers.
"""
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class RetryBudget:
    """Elapsed/maximum time for a polling loop.

    Attributes:
        elapsed_seconds: Time spent polling so far
        max_seconds: Ceiling after which polling stops
        poll_interval_ms: Pause between probes
    """

    elapsed_seconds: float = 0.0
    max_seconds: float = 90.0
    poll_interval_ms: int = 1000

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000.0

    def advance(self, elapsed_seconds: float) -> "RetryBudget":
        """Return a budget with the new elapsed time.

        Raises:
            ValueError: If elapsed time does not strictly increase
        """
        if elapsed_seconds <= self.elapsed_seconds:
            raise ValueError(
                f"Elapsed time must increase each poll "
                f"({elapsed_seconds} <= {self.elapsed_seconds})"
            )
        return replace(self, elapsed_seconds=elapsed_seconds)

    @property
    def exhausted(self) -> bool:
        return self.elapsed_seconds >= self.max_seconds


def should_continue(budget: RetryBudget) -> bool:
    """Return True while another poll fits into the budget."""
    return not budget.exhausted


def progress_due(budget: RetryBudget, last_notice: float, every: float) -> bool:
    """Return True when a progress notice is due.

    Args:
        budget: Current budget
        last_notice: Elapsed seconds at the last notice (0 if none yet)
        every: Notice period in seconds
    """
    if every <= 0:
        return False
    return budget.elapsed_seconds - last_notice >= every
