"""Sequential processing of a work queue's items.

Items run one at a time, in stored order. Every transition goes through the
manager's verified update, and cancellation is only checked between items.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from onboarding_orchestrator.orchestrator.work_queue.manager import WorkQueueManager
from onboarding_orchestrator.orchestrator.work_queue.models import (
    QueueProgress,
    WorkItem,
    WorkItemStatus,
    WorkQueue,
)
from onboarding_orchestrator.orchestrator.workflow.cancellation import (
    CancellationFlags,
    CancellationScope,
)
from onboarding_orchestrator.orchestrator.workflow.events import (
    EventScope,
    ProgressEvent,
    ProgressObserver,
)
from onboarding_orchestrator.orchestrator.workflow.executors import (
    ItemExecutor,
    ItemInputs,
    ItemResult,
)

logger = logging.getLogger(__name__)

_DONE = {WorkItemStatus.COMPLETED, WorkItemStatus.SKIPPED}


class QueueRunOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class QueueRunResult:
    outcome: QueueRunOutcome
    queue_id: str
    status: WorkItemStatus | None = None
    progress: QueueProgress | None = None
    processed: int = 0
    failed_plugin_ids: tuple[str, ...] = ()
    unrecorded_plugin_ids: tuple[str, ...] = ()


class WorkQueueRunner:
    """Feeds a queue's items to an item executor.

    A failed item does not stop the run: items are independent. Failed items
    stay retryable and are picked up again by the next run when
    `retry_failed` is set.
    """

    def __init__(
        self,
        manager: WorkQueueManager,
        executor: ItemExecutor,
        *,
        observer: ProgressObserver | None = None,
        cancellation: CancellationFlags | None = None,
    ) -> None:
        self._manager = manager
        self._executor = executor
        self._observer = observer
        self._cancellation = cancellation or CancellationFlags()

    @property
    def cancellation(self) -> CancellationFlags:
        return self._cancellation

    async def run(self, queue_id: str, *, retry_failed: bool = True) -> QueueRunResult:
        self._cancellation.reset(CancellationScope.QUEUE_RUN, CancellationScope.ITEM_OPERATIONS)

        queue = self._manager.load_queue(queue_id)
        if queue is None:
            logger.warning("Work queue not found", extra={"queue_id": queue_id})
            return QueueRunResult(outcome=QueueRunOutcome.NOT_FOUND, queue_id=queue_id)

        retry = retry_failed and queue.config.allow_retry
        failed: list[str] = []
        unrecorded: list[str] = []
        processed = 0

        for item in queue.items:
            if item.status in _DONE:
                self._notify(
                    EventScope.ITEM, item.plugin_id, item.status.value, _done_message(item)
                )
                continue
            if item.status is WorkItemStatus.FAILED and not retry:
                failed.append(item.plugin_id)
                continue

            if self._cancellation.is_requested(CancellationScope.QUEUE_RUN):
                logger.info(
                    "Work queue run cancelled",
                    extra={"queue_id": queue_id, "plugin_id": item.plugin_id},
                )
                self._notify(
                    EventScope.QUEUE, queue_id, "cancelled", f"Cancelled before {item.display_name}"
                )
                return self._result(
                    QueueRunOutcome.CANCELLED, queue_id, processed, failed, unrecorded
                )

            status, message = await self._process(queue, item)
            processed += 1
            if status is WorkItemStatus.FAILED:
                failed.append(item.plugin_id)
            recorded = await self._manager.update_item_status(
                queue_id,
                item.plugin_id,
                status,
                error=message if status is WorkItemStatus.FAILED else None,
                max_retries=queue.config.default_max_retries,
            )
            if not recorded:
                logger.error(
                    "Work item outcome could not be recorded",
                    extra={"queue_id": queue_id, "plugin_id": item.plugin_id},
                )
                unrecorded.append(item.plugin_id)
            self._notify(EventScope.ITEM, item.plugin_id, status.value, message)

        result = self._result(
            QueueRunOutcome.COMPLETED, queue_id, processed, failed, unrecorded
        )
        status_value = result.status.value if result.status is not None else "unknown"
        self._notify(EventScope.QUEUE, queue_id, status_value, "Work queue run finished")
        return result

    async def _process(self, queue: WorkQueue, item: WorkItem) -> tuple[WorkItemStatus, str]:
        started = await self._manager.update_item_status(
            queue.id,
            item.plugin_id,
            WorkItemStatus.IN_PROGRESS,
            max_retries=queue.config.default_max_retries,
        )
        if not started:
            return WorkItemStatus.FAILED, "Could not mark work item in progress"

        inputs = ItemInputs(
            queue_id=queue.id,
            item=item,
            config=queue.config,
            should_stop=lambda: self._cancellation.is_requested(CancellationScope.ITEM_OPERATIONS),
        )
        try:
            result = await self._executor.execute(inputs)
        except Exception as e:  # noqa: BLE001
            logger.exception(
                "Item executor raised", extra={"queue_id": queue.id, "plugin_id": item.plugin_id}
            )
            result = ItemResult(success=False, message=f"{item.display_name} raised: {e}")

        if result.skipped:
            return WorkItemStatus.SKIPPED, result.message
        if result.success:
            return WorkItemStatus.COMPLETED, result.message
        return WorkItemStatus.FAILED, result.message

    def _result(
        self,
        outcome: QueueRunOutcome,
        queue_id: str,
        processed: int,
        failed: list[str],
        unrecorded: list[str],
    ) -> QueueRunResult:
        queue = self._manager.load_queue(queue_id)
        return QueueRunResult(
            outcome=outcome,
            queue_id=queue_id,
            status=queue.status if queue is not None else None,
            progress=queue.progress if queue is not None else None,
            processed=processed,
            failed_plugin_ids=tuple(failed),
            unrecorded_plugin_ids=tuple(unrecorded),
        )

    def _notify(self, scope: EventScope, event_id: str, status: str, message: str) -> None:
        if self._observer is None:
            return
        try:
            self._observer.notify(
                ProgressEvent(scope=scope, id=event_id, status=status, message=message)
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Progress observer failed", extra={"scope": scope.value, "event_id": event_id}
            )


def _done_message(item: WorkItem) -> str:
    if item.status is WorkItemStatus.SKIPPED:
        return f"{item.display_name} skipped"
    return f"{item.display_name} completed"
