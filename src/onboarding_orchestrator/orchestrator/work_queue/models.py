"""Persisted shapes of a bulk work queue."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class WorkItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkItem(BaseModel):
    """One plugin-scoped job of a queue."""

    id: str
    plugin_id: str
    display_name: str
    remarks: str | None = Field(default=None)
    status: WorkItemStatus = Field(default=WorkItemStatus.PENDING)

    # Handed to the item executor. Informational for the queue itself:
    # neither these records nor `stats` ever drive `status`.
    operations: list[Any] = Field(default_factory=list)
    stats: dict[str, int] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=_utc_now)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    error: str | None = Field(default=None)


class QueueConfig(BaseModel):
    search_keyword: str = Field(
        default="", description="Selection criteria the queue was built from"
    )
    allow_retry: bool = Field(default=True)
    default_max_retries: int = Field(default=3, ge=1)


class QueueProgress(BaseModel):
    """Counts derived from the items; the four categories always sum to `total`."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    in_progress: int = 0


class WorkQueue(BaseModel):
    version: str = Field(default="1.0.0", description="Queue document schema version")
    id: str
    name: str
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    config: QueueConfig = Field(default_factory=QueueConfig)
    items: list[WorkItem] = Field(default_factory=list)
    status: WorkItemStatus = Field(default=WorkItemStatus.PENDING)
    progress: QueueProgress = Field(default_factory=QueueProgress)

    @model_validator(mode="after")
    def _unique_plugin_ids(self) -> WorkQueue:
        seen: set[str] = set()
        for item in self.items:
            if item.plugin_id in seen:
                raise ValueError(f"Duplicate plugin_id in queue {self.id}: {item.plugin_id}")
            seen.add(item.plugin_id)
        return self

    def find_item(self, plugin_id: str) -> WorkItem | None:
        for item in self.items:
            if item.plugin_id == plugin_id:
                return item
        return None
