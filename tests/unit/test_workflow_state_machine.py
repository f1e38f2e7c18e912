"""Unit tests for the per-step state machine.

Illegal transitions fail loudly; completed is terminal.
"""

from __future__ import annotations

import pytest

from onboarding_orchestrator.orchestrator.workflow.state_machine import (
    IllegalTransitionError,
    StepStatus,
    check_transition,
    is_resumable_anomaly,
)


@pytest.mark.parametrize(
    ("current", "to"),
    [
        (StepStatus.PENDING, StepStatus.RUNNING),
        (StepStatus.RUNNING, StepStatus.COMPLETED),
        (StepStatus.RUNNING, StepStatus.FAILED),
        (StepStatus.RUNNING, StepStatus.RUNNING),
        (StepStatus.FAILED, StepStatus.RUNNING),
    ],
)
def test_allowed_transitions(current: StepStatus, to: StepStatus) -> None:
    assert check_transition(current=current, to=to) is to


@pytest.mark.parametrize(
    ("current", "to"),
    [
        (StepStatus.PENDING, StepStatus.COMPLETED),
        (StepStatus.COMPLETED, StepStatus.PENDING),
        (StepStatus.COMPLETED, StepStatus.RUNNING),
        (StepStatus.FAILED, StepStatus.PENDING),
        (StepStatus.RUNNING, StepStatus.PENDING),
    ],
)
def test_transition_rejects_illegal_transitions(current: StepStatus, to: StepStatus) -> None:
    with pytest.raises(IllegalTransitionError):
        check_transition(current=current, to=to)


def test_resumable_anomalies() -> None:
    assert is_resumable_anomaly(StepStatus.RUNNING)
    assert is_resumable_anomaly(StepStatus.FAILED)
    assert not is_resumable_anomaly(StepStatus.PENDING)
    assert not is_resumable_anomaly(StepStatus.COMPLETED)
