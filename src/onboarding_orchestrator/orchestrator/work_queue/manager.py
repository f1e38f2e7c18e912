"""Bulk work queues, one document per queue.

Queues are built once from collected work (plugin id -> operation records) and
then only mutated through `update_item_status`, which re-reads the document
after every write and retries when a concurrent writer won.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from onboarding_orchestrator.orchestrator.storage import DocumentStore
from onboarding_orchestrator.orchestrator.work_queue.models import (
    QueueConfig,
    WorkItem,
    WorkItemStatus,
    WorkQueue,
)
from onboarding_orchestrator.orchestrator.work_queue.reducer import (
    MutationOutcome,
    StatusMutation,
    WorkItemNotFound,
    apply_status_mutation,
    rebuild_queue,
    summarize_operations,
)

logger = logging.getLogger(__name__)

QUEUE_KEY_PREFIX = "queue-"

DisplayNameResolver = Callable[[str], str | None]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _slugify(text: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", text).strip("-").lower()
    return slug or "all"


def resolve_display_name(
    plugin_id: str,
    metadata: Mapping[str, Any] | None,
    resolver: DisplayNameResolver | None,
) -> str:
    """Remarks first, then the resolver's name, then the bare plugin id."""

    if metadata:
        remarks = metadata.get("remarks")
        if isinstance(remarks, str) and remarks.strip():
            return remarks.strip()
    if resolver is not None:
        name = resolver(plugin_id)
        if name and name.strip():
            return name.strip()
    return plugin_id


class WorkQueueManager:
    def __init__(
        self,
        store: DocumentStore,
        *,
        retry_backoff_seconds: float = 0.1,
        default_max_retries: int = 3,
    ) -> None:
        if retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if default_max_retries < 1:
            raise ValueError("default_max_retries must be >= 1")
        self._store = store
        self._retry_backoff_seconds = retry_backoff_seconds
        self._default_max_retries = default_max_retries

    def _new_queue_id(self, search_keyword: str, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        queue_id = f"{QUEUE_KEY_PREFIX}{_slugify(search_keyword)}-{millis}"
        if self._store.read(queue_id) is not None:
            queue_id = f"{queue_id}-{uuid.uuid4().hex[:6]}"
        return queue_id

    def create_queue(
        self,
        search_keyword: str,
        grouped_work: Mapping[str, Sequence[Any]],
        *,
        display_name_resolver: DisplayNameResolver | None = None,
        plugin_metadata: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> WorkQueue:
        """Build and persist a queue with one pending item per non-empty group."""

        now = _utc_now()
        queue_id = self._new_queue_id(search_keyword, now)
        metadata = plugin_metadata or {}

        items: list[WorkItem] = []
        for plugin_id, operations in grouped_work.items():
            if not operations:
                logger.debug("Skipping empty work group", extra={"plugin_id": plugin_id})
                continue
            remarks = metadata.get(plugin_id, {}).get("remarks")
            items.append(
                WorkItem(
                    id=f"{queue_id}-plugin-{len(items) + 1}",
                    plugin_id=plugin_id,
                    display_name=resolve_display_name(
                        plugin_id, metadata.get(plugin_id), display_name_resolver
                    ),
                    remarks=remarks if isinstance(remarks, str) else None,
                    operations=list(operations),
                    stats=summarize_operations(operations),
                    created_at=now,
                )
            )

        created = now.isoformat(timespec="seconds")
        queue = WorkQueue(
            id=queue_id,
            name=f"Work queue - {search_keyword or 'all'} - {created}",
            created_at=now,
            updated_at=now,
            config=QueueConfig(
                search_keyword=search_keyword, default_max_retries=self._default_max_retries
            ),
        )
        queue = rebuild_queue(queue, items, now=now)
        self._save(queue)
        logger.info(
            "Work queue created",
            extra={"queue_id": queue.id, "items": len(items), "search_keyword": search_keyword},
        )
        return queue

    def _save(self, queue: WorkQueue) -> None:
        self._store.write(queue.id, queue.model_dump(mode="json"))

    def load_queue(self, queue_id: str) -> WorkQueue | None:
        raw = self._store.read(queue_id)
        if raw is None:
            return None
        return WorkQueue.model_validate(raw)

    async def update_item_status(
        self,
        queue_id: str,
        plugin_id: str,
        status: WorkItemStatus,
        error: str | None = None,
        *,
        max_retries: int | None = None,
    ) -> bool:
        """Set one item's status, verifying the write landed.

        Returns False (never raises) for a missing queue or item and when every
        attempt was overwritten by a concurrent writer. Storage errors propagate.
        """

        attempts = max_retries if max_retries is not None else self._default_max_retries
        if attempts < 1:
            raise ValueError("max_retries must be >= 1")

        mutation = StatusMutation(plugin_id=plugin_id, status=WorkItemStatus(status), error=error)
        log_extra = {"queue_id": queue_id, "plugin_id": plugin_id, "status": mutation.status.value}

        for retry_count in range(attempts):
            queue = self.load_queue(queue_id)
            if queue is None:
                logger.warning("Work queue not found", extra=log_extra)
                return False

            try:
                # A retry means someone else wrote in between. If they completed
                # the item, their result stands.
                result = apply_status_mutation(
                    queue.items, mutation, yield_to_completed=retry_count > 0
                )
            except WorkItemNotFound:
                logger.warning("Work item not found", extra=log_extra)
                return False

            if result.outcome is MutationOutcome.ALREADY_COMPLETED:
                logger.info("Work item already completed; update not applied", extra=log_extra)
                return True

            self._save(rebuild_queue(queue, result.items, now=_utc_now()))

            written = self.load_queue(queue_id)
            item = written.find_item(plugin_id) if written is not None else None
            if item is not None and item.status is mutation.status:
                logger.debug("Work item status updated", extra=log_extra)
                return True

            logger.warning(
                "Work item status overwritten by a concurrent writer",
                extra={
                    **log_extra,
                    "retry_count": retry_count + 1,
                    "observed": item.status.value if item is not None else None,
                },
            )
            if retry_count + 1 < attempts:
                await asyncio.sleep(self._retry_backoff_seconds * (retry_count + 1))

        logger.error("Work item status update failed after retries", extra=log_extra)
        return False

    def retryable_items(self, queue_id: str) -> list[WorkItem]:
        queue = self.load_queue(queue_id)
        if queue is None:
            return []
        return [item for item in queue.items if item.status is WorkItemStatus.FAILED]

    def list_queues(self) -> list[WorkQueue]:
        """All stored queues, newest first. Unreadable documents are skipped."""

        queues: list[WorkQueue] = []
        for key in self._store.keys():
            if not key.startswith(QUEUE_KEY_PREFIX):
                continue
            try:
                queue = self.load_queue(key)
            except (OSError, ValueError) as e:
                logger.warning(
                    "Skipping unreadable work queue document", extra={"key": key, "error": str(e)}
                )
                continue
            if queue is not None:
                queues.append(queue)

        queues.sort(key=lambda q: q.created_at, reverse=True)
        return queues

    def delete_queue(self, queue_id: str) -> bool:
        removed = self._store.delete(queue_id)
        if removed:
            logger.info("Work queue deleted", extra={"queue_id": queue_id})
        return removed
