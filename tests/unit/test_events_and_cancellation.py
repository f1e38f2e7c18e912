"""Unit tests for progress events and cancellation flags."""

from __future__ import annotations

import pytest

from onboarding_orchestrator.orchestrator.workflow.cancellation import (
    CancellationFlags,
    CancellationScope,
)
from onboarding_orchestrator.orchestrator.workflow.events import (
    CallbackObserver,
    EventScope,
    ProgressEvent,
    ProgressLog,
)


def _event(n: int, scope: EventScope = EventScope.STEP) -> ProgressEvent:
    return ProgressEvent(scope=scope, id=str(n), status="completed", message=f"event {n}")


def test_progress_log_trims_to_half_its_limit() -> None:
    log = ProgressLog(limit=10)
    for n in range(10):
        log.notify(_event(n))
    assert len(log.events()) == 10

    log.notify(_event(10))

    events = log.events()
    assert len(events) == 5
    assert [e.id for e in events] == ["6", "7", "8", "9", "10"]


def test_progress_log_filters_by_scope_and_clears() -> None:
    log = ProgressLog()
    log.notify(_event(1))
    log.notify(_event(2, EventScope.ITEM))
    assert [e.id for e in log.events(scope=EventScope.ITEM)] == ["2"]
    log.clear()
    assert log.events() == []


def test_progress_log_limit_validation() -> None:
    with pytest.raises(ValueError):
        ProgressLog(limit=1)


def test_callback_observer() -> None:
    received: list[ProgressEvent] = []
    CallbackObserver(received.append).notify(_event(1))
    assert [e.id for e in received] == ["1"]


def test_cancellation_scopes_are_independent() -> None:
    flags = CancellationFlags()
    flags.request(CancellationScope.PIPELINE)

    assert flags.is_requested(CancellationScope.PIPELINE)
    assert not flags.is_requested(CancellationScope.QUEUE_RUN)
    assert not flags.is_requested(CancellationScope.ITEM_OPERATIONS)

    flags.request(CancellationScope.QUEUE_RUN)
    flags.reset(CancellationScope.PIPELINE)
    assert flags.snapshot() == {"pipeline": False, "queue_run": True, "item_operations": False}

    flags.request("item_operations")  # type: ignore[arg-type]
    flags.reset_all()
    assert not any(flags.snapshot().values())
