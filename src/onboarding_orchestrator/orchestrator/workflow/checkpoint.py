"""Checkpointing for the sequential onboarding task.

The current task lives in two documents:

- `current-task`: the resumable slot, overwritten on every save and deleted when
  the workflow finishes or is abandoned;
- `task-<id>`: a permanent copy kept as an audit trail.

Every save is a whole-document overwrite of both.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from onboarding_orchestrator.orchestrator.storage import DocumentStore
from onboarding_orchestrator.orchestrator.workflow.state_machine import (
    StepStatus,
    check_transition,
    is_resumable_anomaly,
)

logger = logging.getLogger(__name__)

CURRENT_TASK_KEY = "current-task"
TASK_KEY_PREFIX = "task-"

ONBOARDING_STEPS: tuple[str, ...] = (
    "Check WeCom login status",
    "Check Weiban login status",
    "Rename WeCom contact",
    "Create WeCom group QR code",
    "Create Weiban live QR code",
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def task_key(task_id: str) -> str:
    return f"{TASK_KEY_PREFIX}{task_id}"


class StepRecord(BaseModel):
    """One fixed stage of the pipeline."""

    index: int = Field(ge=1)
    name: str
    status: StepStatus = Field(default=StepStatus.PENDING)
    message: str = Field(default="Waiting to run")
    timestamp: datetime = Field(default_factory=_utc_now)
    data: Any | None = Field(default=None)


class TaskRecord(BaseModel):
    """The single in-flight sequential task."""

    version: str = Field(default="1.0.0", description="Task document schema version")
    id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    current_step: int = Field(default=1, ge=1)
    steps: list[StepRecord]
    outputs: dict[str, str] = Field(default_factory=dict)
    completed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _check_step_layout(self) -> TaskRecord:
        if not self.steps:
            raise ValueError("A task needs at least one step")
        for position, step in enumerate(self.steps, start=1):
            if step.index != position:
                raise ValueError(f"Step at position {position} has index {step.index}")
        if self.current_step > len(self.steps) + 1:
            raise ValueError(
                f"current_step {self.current_step} exceeds step count + 1 ({len(self.steps) + 1})"
            )
        return self

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def step(self, index: int) -> StepRecord:
        if not 1 <= index <= len(self.steps):
            raise ValueError(f"Step index out of range: {index} (1..{len(self.steps)})")
        return self.steps[index - 1]


class TaskStateManager:
    """Owns the current task's step state machine and its persistence."""

    def __init__(self, store: DocumentStore, *, step_names: Sequence[str] = ONBOARDING_STEPS):
        if not step_names:
            raise ValueError("step_names must not be empty")
        self._store = store
        self._step_names = tuple(step_names)

    @property
    def step_names(self) -> tuple[str, ...]:
        return self._step_names

    def create(
        self,
        payload: Mapping[str, Any] | None = None,
        *,
        step_names: Sequence[str] | None = None,
    ) -> TaskRecord:
        names = tuple(step_names) if step_names is not None else self._step_names
        now = _utc_now()
        task = TaskRecord(
            id=uuid.uuid4().hex,
            payload=dict(payload or {}),
            current_step=1,
            steps=[
                StepRecord(index=i, name=name, timestamp=now)
                for i, name in enumerate(names, start=1)
            ],
            created_at=now,
            updated_at=now,
        )
        saved = self.save(task)
        logger.info("Task created", extra={"task_id": saved.id, "steps": saved.step_count})
        return saved

    def save(self, task: TaskRecord) -> TaskRecord:
        updated = task.model_copy(update={"updated_at": _utc_now()})
        document = updated.model_dump(mode="json")
        self._store.write(CURRENT_TASK_KEY, document)
        self._store.write(task_key(updated.id), document)
        logger.debug("Task saved", extra={"task_id": updated.id})
        return updated

    def load_current(self) -> TaskRecord | None:
        raw = self._store.read(CURRENT_TASK_KEY)
        if raw is None:
            return None
        return TaskRecord.model_validate(raw)

    def get(self, task_id: str) -> TaskRecord | None:
        raw = self._store.read(task_key(task_id))
        if raw is None:
            return None
        return TaskRecord.model_validate(raw)

    def transition_step(
        self,
        index: int,
        status: StepStatus,
        message: str,
        data: Any | None = None,
    ) -> TaskRecord | None:
        """Move one step to `status` and persist.

        Returns the saved task, or None when there is no current task (a caller
        ordering problem, logged rather than raised).

        Raises:
            ValueError: If `index` is out of range.
            IllegalTransitionError: If the step cannot move to `status`.
        """

        status = StepStatus(status)
        task = self.load_current()
        if task is None:
            logger.warning(
                "No current task; step transition ignored",
                extra={"step": index, "status": status.value},
            )
            return None

        step = task.step(index)
        check_transition(current=step.status, to=status)

        changes: dict[str, Any] = {"status": status, "message": message, "timestamp": _utc_now()}
        if data is not None:
            changes["data"] = data
        steps = list(task.steps)
        steps[index - 1] = step.model_copy(update=changes)

        current_step = index + 1 if status is StepStatus.COMPLETED else task.current_step
        completed = all(s.status is StepStatus.COMPLETED for s in steps)

        saved = self.save(
            task.model_copy(
                update={"steps": steps, "current_step": current_step, "completed": completed}
            )
        )
        logger.info(
            "Step status updated",
            extra={
                "task_id": saved.id,
                "step": index,
                "status": status.value,
                "step_message": message,
            },
        )
        return saved

    def set_output(self, name: str, value: str) -> TaskRecord | None:
        task = self.load_current()
        if task is None:
            logger.warning("No current task; output ignored", extra={"output": name})
            return None

        outputs = {**task.outputs, name: value}
        saved = self.save(task.model_copy(update={"outputs": outputs}))
        logger.info("Task output recorded", extra={"task_id": saved.id, "output": name})
        return saved

    def resume_point(self) -> int | None:
        """Index of the step a resumed run should start from.

        The earliest failed or running step wins over `current_step`: a step left
        running by a dead process is where the work actually stopped, even if a
        later step was recorded further on.
        """

        task = self.load_current()
        if task is None or task.completed:
            return None

        for step in task.steps:
            if is_resumable_anomaly(step.status):
                return step.index

        if task.current_step <= task.step_count:
            return task.current_step
        return None

    def has_unfinished_task(self) -> bool:
        task = self.load_current()
        return task is not None and not task.completed

    def clear(self) -> bool:
        """Drop the resumable slot. The permanent copy is kept."""

        removed = self._store.delete(CURRENT_TASK_KEY)
        if removed:
            logger.info("Current task cleared")
        return removed

    def history(self) -> list[TaskRecord]:
        """All permanent task copies, newest first."""

        tasks: list[TaskRecord] = []
        for key in self._store.keys():
            if not key.startswith(TASK_KEY_PREFIX):
                continue
            try:
                raw = self._store.read(key)
                if raw is None:
                    continue
                tasks.append(TaskRecord.model_validate(raw))
            except (OSError, ValueError) as e:
                logger.warning(
                    "Skipping unreadable task document", extra={"key": key, "error": str(e)}
                )

        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks
