"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from onboarding_orchestrator.orchestrator.work_queue.models import (
    QueueProgress,
    WorkItemStatus,
    WorkQueue,
)
from onboarding_orchestrator.orchestrator.workflow.events import ProgressEvent


class ApiResumePoint(BaseModel):
    task_id: str
    completed: bool
    step_index: int | None = None


class ApiQueueSummary(BaseModel):
    id: str
    name: str
    status: WorkItemStatus
    progress: QueueProgress
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_queue(cls, queue: WorkQueue) -> ApiQueueSummary:
        return cls(
            id=queue.id,
            name=queue.name,
            status=queue.status,
            progress=queue.progress,
            created_at=queue.created_at,
            updated_at=queue.updated_at,
        )


class ApiProgressEvent(BaseModel):
    scope: str
    id: str
    status: str
    message: str
    timestamp: datetime

    @classmethod
    def from_event(cls, event: ProgressEvent) -> ApiProgressEvent:
        return cls(
            scope=event.scope.value,
            id=event.id,
            status=event.status,
            message=event.message,
            timestamp=event.timestamp,
        )


class ApiCancellationState(BaseModel):
    flags: dict[str, bool] = Field(default_factory=dict)
