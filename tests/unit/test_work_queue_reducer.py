"""Unit tests for the pure work queue reducer."""

from __future__ import annotations

from datetime import UTC, datetime
from itertools import product

import pytest

from onboarding_orchestrator.orchestrator.work_queue.models import (
    WorkItem,
    WorkItemStatus,
    WorkQueue,
)
from onboarding_orchestrator.orchestrator.work_queue.reducer import (
    MutationOutcome,
    StatusMutation,
    WorkItemNotFound,
    apply_status_mutation,
    compute_aggregate_status,
    compute_progress,
    rebuild_queue,
    summarize_operations,
)

S = WorkItemStatus


def _items(*statuses: WorkItemStatus) -> list[WorkItem]:
    return [
        WorkItem(id=f"q-plugin-{i}", plugin_id=f"p{i}", display_name=f"Plugin {i}", status=s)
        for i, s in enumerate(statuses, start=1)
    ]


@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        ((), S.PENDING),
        ((S.PENDING, S.PENDING), S.PENDING),
        ((S.PENDING, S.IN_PROGRESS, S.COMPLETED), S.IN_PROGRESS),
        ((S.COMPLETED, S.SKIPPED), S.COMPLETED),
        ((S.COMPLETED,), S.COMPLETED),
        ((S.FAILED, S.FAILED), S.FAILED),
        ((S.COMPLETED, S.FAILED), S.IN_PROGRESS),
        ((S.PENDING, S.FAILED), S.IN_PROGRESS),
        ((S.PENDING, S.COMPLETED), S.IN_PROGRESS),
        ((S.SKIPPED, S.PENDING), S.PENDING),
        ((S.FAILED, S.SKIPPED), S.IN_PROGRESS),
    ],
)
def test_aggregate_status_table(
    statuses: tuple[WorkItemStatus, ...], expected: WorkItemStatus
) -> None:
    assert compute_aggregate_status(_items(*statuses)) is expected


def test_progress_categories_always_sum_to_total() -> None:
    for statuses in product(list(WorkItemStatus), repeat=3):
        progress = compute_progress(_items(*statuses))
        assert progress.total == 3
        assert (
            progress.completed + progress.failed + progress.pending + progress.in_progress
            == progress.total
        )


def test_skipped_counts_as_completed() -> None:
    progress = compute_progress(_items(S.SKIPPED, S.COMPLETED, S.FAILED))
    assert progress.completed == 2
    assert progress.failed == 1


def test_mutation_sets_timestamps_and_error() -> None:
    at = datetime(2024, 5, 1, tzinfo=UTC)
    items = _items(S.PENDING)

    started = apply_status_mutation(items, StatusMutation("p1", S.IN_PROGRESS, at=at))
    assert started.outcome is MutationOutcome.APPLIED
    assert started.items[0].started_at == at
    assert items[0].status is S.PENDING  # input untouched

    later = datetime(2024, 5, 2, tzinfo=UTC)
    again = apply_status_mutation(started.items, StatusMutation("p1", S.IN_PROGRESS, at=later))
    assert again.items[0].started_at == at

    done = apply_status_mutation(again.items, StatusMutation("p1", S.COMPLETED, at=later))
    assert done.items[0].completed_at == later
    assert done.items[0].error is None

    failed = apply_status_mutation(_items(S.IN_PROGRESS), StatusMutation("p1", S.FAILED, "boom"))
    assert failed.items[0].status is S.FAILED
    assert failed.items[0].error == "boom"


def test_completed_is_a_latch_against_pending() -> None:
    items = _items(S.COMPLETED)
    result = apply_status_mutation(items, StatusMutation("p1", S.PENDING))
    assert result.outcome is MutationOutcome.ALREADY_COMPLETED
    assert result.items[0].status is S.COMPLETED


def test_completed_yields_other_requests_only_after_a_conflict() -> None:
    items = _items(S.COMPLETED)

    first_try = apply_status_mutation(items, StatusMutation("p1", S.FAILED, "late failure"))
    assert first_try.outcome is MutationOutcome.APPLIED
    assert first_try.items[0].status is S.FAILED

    retry = apply_status_mutation(
        items, StatusMutation("p1", S.FAILED, "late failure"), yield_to_completed=True
    )
    assert retry.outcome is MutationOutcome.ALREADY_COMPLETED
    assert retry.items[0].status is S.COMPLETED

    completed_again = apply_status_mutation(
        items, StatusMutation("p1", S.COMPLETED), yield_to_completed=True
    )
    assert completed_again.outcome is MutationOutcome.APPLIED


def test_unknown_plugin_raises() -> None:
    with pytest.raises(WorkItemNotFound):
        apply_status_mutation(_items(S.PENDING), StatusMutation("nope", S.COMPLETED))


def test_rebuild_queue_recomputes_from_scratch() -> None:
    queue = WorkQueue(id="queue-x-1", name="x", items=_items(S.PENDING, S.PENDING))
    result = apply_status_mutation(queue.items, StatusMutation("p1", S.COMPLETED))
    now = datetime(2024, 1, 1, tzinfo=UTC)

    rebuilt = rebuild_queue(queue, result.items, now=now)

    assert rebuilt.status is S.IN_PROGRESS
    assert rebuilt.progress.completed == 1
    assert rebuilt.progress.pending == 1
    assert rebuilt.updated_at == now
    assert queue.progress.total == 0  # original untouched


def test_summarize_operations() -> None:
    stats = summarize_operations(
        [
            {"operation_type": "rename"},
            {"operationType": "rename"},
            {"operation_type": "qr_code"},
            "opaque",
        ]
    )
    assert stats == {
        "total_operations": 4,
        "operation_type:rename": 2,
        "operation_type:qr_code": 1,
    }
