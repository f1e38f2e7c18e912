"""Pure functions over work queue items.

No I/O here. The manager's read-modify-write loop is a thin wrapper around
`apply_status_mutation` + `rebuild_queue`, which keeps the latch and the
recount rules testable on plain lists.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from onboarding_orchestrator.orchestrator.work_queue.models import (
    QueueProgress,
    WorkItem,
    WorkItemStatus,
    WorkQueue,
)


class WorkItemNotFound(LookupError):
    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Work item not found for plugin: {plugin_id}")
        self.plugin_id = plugin_id


class MutationOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_COMPLETED = "already_completed"


@dataclass(frozen=True, slots=True)
class StatusMutation:
    plugin_id: str
    status: WorkItemStatus
    error: str | None = None
    at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True, slots=True)
class MutationResult:
    items: list[WorkItem]
    outcome: MutationOutcome


def compute_progress(items: Sequence[WorkItem]) -> QueueProgress:
    """Full recount. Skipped items count as completed."""

    counts = Counter(item.status for item in items)
    return QueueProgress(
        total=len(items),
        completed=counts[WorkItemStatus.COMPLETED] + counts[WorkItemStatus.SKIPPED],
        failed=counts[WorkItemStatus.FAILED],
        pending=counts[WorkItemStatus.PENDING],
        in_progress=counts[WorkItemStatus.IN_PROGRESS],
    )


def compute_aggregate_status(items: Sequence[WorkItem]) -> WorkItemStatus:
    """Queue status from item statuses; first matching rule wins.

    Mixed completed/failed sets stay in_progress rather than getting a
    separate terminal status.
    """

    if not items:
        return WorkItemStatus.PENDING

    statuses = [item.status for item in items]
    if WorkItemStatus.IN_PROGRESS in statuses:
        return WorkItemStatus.IN_PROGRESS
    if all(s in {WorkItemStatus.COMPLETED, WorkItemStatus.SKIPPED} for s in statuses):
        return WorkItemStatus.COMPLETED
    if all(s is WorkItemStatus.FAILED for s in statuses):
        return WorkItemStatus.FAILED
    if any(s in {WorkItemStatus.COMPLETED, WorkItemStatus.FAILED} for s in statuses):
        return WorkItemStatus.IN_PROGRESS
    return WorkItemStatus.PENDING


def apply_status_mutation(
    items: Sequence[WorkItem],
    mutation: StatusMutation,
    *,
    yield_to_completed: bool = False,
) -> MutationResult:
    """Return a new item list with one item's status changed.

    A completed item never goes back to pending; the request is reported as
    ALREADY_COMPLETED instead. With `yield_to_completed` (set by the manager
    once it has lost a write race) a completed item also absorbs any other
    non-completed request.

    Raises:
        WorkItemNotFound: If no item has `mutation.plugin_id`.
    """

    position = next(
        (i for i, item in enumerate(items) if item.plugin_id == mutation.plugin_id), None
    )
    if position is None:
        raise WorkItemNotFound(mutation.plugin_id)

    item = items[position]
    if item.status is WorkItemStatus.COMPLETED and (
        mutation.status is WorkItemStatus.PENDING
        or (yield_to_completed and mutation.status is not WorkItemStatus.COMPLETED)
    ):
        return MutationResult(items=list(items), outcome=MutationOutcome.ALREADY_COMPLETED)

    changes: dict[str, Any] = {"status": mutation.status, "error": mutation.error}
    if mutation.status is WorkItemStatus.IN_PROGRESS and item.started_at is None:
        changes["started_at"] = mutation.at
    if mutation.status is WorkItemStatus.COMPLETED and item.status is not WorkItemStatus.COMPLETED:
        changes["completed_at"] = mutation.at

    updated = list(items)
    updated[position] = item.model_copy(update=changes)
    return MutationResult(items=updated, outcome=MutationOutcome.APPLIED)


def rebuild_queue(queue: WorkQueue, items: Sequence[WorkItem], *, now: datetime) -> WorkQueue:
    """Queue with `items`, progress and status recomputed from scratch."""

    return queue.model_copy(
        update={
            "items": list(items),
            "progress": compute_progress(items),
            "status": compute_aggregate_status(items),
            "updated_at": now,
        }
    )


def summarize_operations(operations: Sequence[Any]) -> dict[str, int]:
    """Read-only statistics for an item's operation records."""

    stats: Counter[str] = Counter()
    stats["total_operations"] = len(operations)
    for record in operations:
        if not isinstance(record, Mapping):
            continue
        operation_type = record.get("operation_type") or record.get("operationType")
        if isinstance(operation_type, str) and operation_type:
            stats[f"operation_type:{operation_type}"] += 1
    return dict(stats)
