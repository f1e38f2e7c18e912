"""The per-step state machine of the onboarding pipeline.

A step moves pending -> running -> completed | failed. A failed step may be
re-entered (retry), and a running step may be re-entered when a run died before
recording the outcome. Completed is terminal and nothing ever goes back to
pending, so a stale writer cannot reset progress.
"""

from __future__ import annotations

from enum import Enum


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[StepStatus, set[StepStatus]] = {
    StepStatus.PENDING: {StepStatus.RUNNING},
    StepStatus.RUNNING: {StepStatus.RUNNING, StepStatus.COMPLETED, StepStatus.FAILED},
    StepStatus.FAILED: {StepStatus.RUNNING},
    StepStatus.COMPLETED: set(),
}


class IllegalTransitionError(ValueError):
    pass


def check_transition(*, current: StepStatus, to: StepStatus) -> StepStatus:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal step transition: {current.value} -> {to.value}")
    return to


def is_resumable_anomaly(status: StepStatus) -> bool:
    """True for states a resumed run must restart from."""

    return status in {StepStatus.RUNNING, StepStatus.FAILED}
