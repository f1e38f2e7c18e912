"""Query and control API over the orchestrator services.

All routes are mounted under `/api`.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from onboarding_orchestrator.orchestrator.services import OrchestratorServices
from onboarding_orchestrator.orchestrator.storage import DocumentKeyError
from onboarding_orchestrator.orchestrator.work_queue.models import WorkItem, WorkQueue
from onboarding_orchestrator.orchestrator.workflow.cancellation import CancellationScope
from onboarding_orchestrator.orchestrator.workflow.checkpoint import TaskRecord
from onboarding_orchestrator.orchestrator.workflow.events import EventScope
from onboarding_orchestrator.server.models import (
    ApiCancellationState,
    ApiProgressEvent,
    ApiQueueSummary,
    ApiResumePoint,
)

router = APIRouter()


def _services(request: Request) -> OrchestratorServices:
    services = getattr(request.app.state, "services", None)
    if not isinstance(services, OrchestratorServices):
        raise HTTPException(status_code=500, detail="Orchestrator services not configured")
    return services


def _load_queue(services: OrchestratorServices, queue_id: str) -> WorkQueue:
    try:
        queue = services.work_queues.load_queue(queue_id)
    except DocumentKeyError:
        queue = None
    if queue is None:
        raise HTTPException(status_code=404, detail="Work queue not found")
    return queue


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/task/current", response_model=TaskRecord)
def current_task(request: Request) -> TaskRecord:
    task = _services(request).task_states.load_current()
    if task is None:
        raise HTTPException(status_code=404, detail="No current task")
    return task


@router.get("/task/resume-point", response_model=ApiResumePoint)
def resume_point(request: Request) -> ApiResumePoint:
    task_states = _services(request).task_states
    task = task_states.load_current()
    if task is None:
        raise HTTPException(status_code=404, detail="No current task")
    return ApiResumePoint(
        task_id=task.id, completed=task.completed, step_index=task_states.resume_point()
    )


@router.delete("/task/current")
def clear_task(request: Request) -> dict[str, object]:
    if not _services(request).task_states.clear():
        raise HTTPException(status_code=404, detail="No current task")
    return {"ok": True}


@router.get("/task/history", response_model=list[TaskRecord])
def task_history(request: Request) -> list[TaskRecord]:
    return _services(request).task_states.history()


@router.get("/queues", response_model=list[ApiQueueSummary])
def list_queues(request: Request) -> list[ApiQueueSummary]:
    return [ApiQueueSummary.from_queue(q) for q in _services(request).work_queues.list_queues()]


@router.get("/queues/{queue_id}", response_model=WorkQueue)
def get_queue(request: Request, queue_id: str) -> WorkQueue:
    return _load_queue(_services(request), queue_id)


@router.delete("/queues/{queue_id}")
def delete_queue(request: Request, queue_id: str) -> dict[str, object]:
    services = _services(request)
    _load_queue(services, queue_id)
    services.work_queues.delete_queue(queue_id)
    return {"ok": True}


@router.get("/queues/{queue_id}/retryable", response_model=list[WorkItem])
def retryable_items(request: Request, queue_id: str) -> list[WorkItem]:
    services = _services(request)
    _load_queue(services, queue_id)
    return services.work_queues.retryable_items(queue_id)


@router.get("/events", response_model=list[ApiProgressEvent])
def list_events(
    request: Request,
    scope: EventScope | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
) -> list[ApiProgressEvent]:
    events = _services(request).progress_log.events(scope=scope)
    return [ApiProgressEvent.from_event(e) for e in events[-limit:]]


@router.get("/cancel", response_model=ApiCancellationState)
def cancellation_state(request: Request) -> ApiCancellationState:
    return ApiCancellationState(flags=_services(request).cancellation.snapshot())


# Registered before `/cancel/{scope}` so "reset" is not read as a scope.
@router.post("/cancel/reset", response_model=ApiCancellationState)
def reset_cancellation(request: Request) -> ApiCancellationState:
    cancellation = _services(request).cancellation
    cancellation.reset_all()
    return ApiCancellationState(flags=cancellation.snapshot())


@router.post("/cancel/{scope}", response_model=ApiCancellationState)
def request_cancellation(request: Request, scope: CancellationScope) -> ApiCancellationState:
    cancellation = _services(request).cancellation
    cancellation.request(scope)
    return ApiCancellationState(flags=cancellation.snapshot())
