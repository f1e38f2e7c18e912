"""The sequential step pipeline.

Walks the fixed steps of the current task in order, executing each one through
its executor and recording every transition through the checkpoint manager
before moving on. Steps already completed are not executed again, but they are
still reported to the observer, so a resumed run emits the same step events as
a fresh one.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from onboarding_orchestrator.orchestrator.workflow.cancellation import (
    CancellationFlags,
    CancellationScope,
)
from onboarding_orchestrator.orchestrator.workflow.checkpoint import TaskRecord, TaskStateManager
from onboarding_orchestrator.orchestrator.workflow.events import (
    EventScope,
    ProgressEvent,
    ProgressObserver,
)
from onboarding_orchestrator.orchestrator.workflow.executors import (
    StepExecutor,
    StepInputs,
    StepResult,
)
from onboarding_orchestrator.orchestrator.workflow.state_machine import StepStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StepDefinition:
    """A step of the pipeline.

    `produces` names outputs read from the result's `data` mapping on success;
    `requires` names outputs that must exist before the step may start.
    """

    name: str
    executor: StepExecutor
    requires: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Skipped:
    prior_message: str


@dataclass(frozen=True, slots=True)
class Executed:
    result: StepResult


StepOutcome = Skipped | Executed


class PipelineOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    MISSING_DEPENDENCY = "missing_dependency"
    NOTHING_TO_RESUME = "nothing_to_resume"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True, slots=True)
class PipelineResult:
    outcome: PipelineOutcome
    message: str
    task_id: str | None = None
    step_index: int | None = None
    missing_outputs: tuple[str, ...] = ()
    outputs: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.outcome is PipelineOutcome.COMPLETED


def extract_outputs(data: Any, names: Sequence[str]) -> dict[str, str]:
    if not isinstance(data, Mapping):
        return {}
    outputs: dict[str, str] = {}
    for name in names:
        value = data.get(name)
        if value is not None:
            outputs[name] = str(value)
    return outputs


class StepPipeline:
    def __init__(
        self,
        task_states: TaskStateManager,
        definitions: Sequence[StepDefinition],
        *,
        observer: ProgressObserver | None = None,
        cancellation: CancellationFlags | None = None,
    ) -> None:
        if not definitions:
            raise ValueError("A pipeline needs at least one step")
        self._task_states = task_states
        self._definitions = tuple(definitions)
        self._observer = observer
        self._cancellation = cancellation or CancellationFlags()

    @property
    def cancellation(self) -> CancellationFlags:
        return self._cancellation

    @property
    def step_names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self._definitions)

    async def start(self, payload: Mapping[str, Any] | None = None) -> PipelineResult:
        """Create a fresh task and run it from step 1."""

        self._cancellation.reset(CancellationScope.PIPELINE)
        task = self._task_states.create(payload, step_names=self.step_names)
        return await self._run(task.id, from_index=1)

    async def resume(self, from_index: int | None = None) -> PipelineResult:
        """Continue the current task from `from_index` or its resume point."""

        self._cancellation.reset(CancellationScope.PIPELINE)
        task = self._task_states.load_current()
        if task is None:
            return PipelineResult(
                outcome=PipelineOutcome.NOTHING_TO_RESUME, message="No task to resume"
            )
        self._check_layout(task)

        if task.completed:
            # Finished but not cleared: the previous run stopped right before clearing.
            return self._finish(task.id)

        index = from_index if from_index is not None else self._task_states.resume_point()
        if index is None:
            return PipelineResult(
                outcome=PipelineOutcome.NOTHING_TO_RESUME,
                message="Task has no step left to run",
                task_id=task.id,
            )
        if not 1 <= index <= task.step_count:
            raise ValueError(f"Step index out of range: {index} (1..{task.step_count})")

        logger.info("Resuming task", extra={"task_id": task.id, "step": index})
        return await self._run(task.id, from_index=index)

    async def run(self, payload: Mapping[str, Any] | None = None) -> PipelineResult:
        """Resume an unfinished task if there is one, otherwise start a new one."""

        if self._task_states.has_unfinished_task():
            return await self.resume()
        return await self.start(payload)

    def _check_layout(self, task: TaskRecord) -> None:
        names = tuple(s.name for s in task.steps)
        if names != self.step_names:
            raise ValueError(
                f"Task {task.id} has steps {list(names)}, pipeline has {list(self.step_names)}"
            )

    async def _run(self, task_id: str, *, from_index: int) -> PipelineResult:
        for index in range(from_index, len(self._definitions) + 1):
            definition = self._definitions[index - 1]
            task = self._task_states.load_current()
            if task is None or task.id != task_id:
                logger.error("Current task changed during run", extra={"task_id": task_id})
                return PipelineResult(
                    outcome=PipelineOutcome.FAILED,
                    message="Current task was cleared or replaced during the run",
                    task_id=task_id,
                    step_index=index,
                )

            step = task.step(index)
            if step.status is StepStatus.COMPLETED:
                self._report_step(index, Skipped(prior_message=step.message))
                continue

            if self._cancellation.is_requested(CancellationScope.PIPELINE):
                logger.info("Pipeline cancelled", extra={"task_id": task_id, "step": index})
                self._notify(
                    EventScope.PIPELINE, task_id, "cancelled", f"Cancelled before step {index}"
                )
                return PipelineResult(
                    outcome=PipelineOutcome.CANCELLED,
                    message=f"Cancelled before step {index}",
                    task_id=task_id,
                    step_index=index,
                )

            missing = tuple(name for name in definition.requires if name not in task.outputs)
            if missing:
                message = f"Missing required output(s): {', '.join(missing)}"
                logger.error(
                    "Step dependency missing",
                    extra={"task_id": task_id, "step": index, "missing": list(missing)},
                )
                self._notify(
                    EventScope.STEP, str(index), PipelineOutcome.MISSING_DEPENDENCY.value, message
                )
                return PipelineResult(
                    outcome=PipelineOutcome.MISSING_DEPENDENCY,
                    message=message,
                    task_id=task_id,
                    step_index=index,
                    missing_outputs=missing,
                )

            self._task_states.transition_step(
                index, StepStatus.RUNNING, f"Running: {definition.name}"
            )
            result = await self._execute(definition, task, index)

            if result.success:
                for name, value in extract_outputs(result.data, definition.produces).items():
                    self._task_states.set_output(name, value)
                self._task_states.transition_step(
                    index, StepStatus.COMPLETED, result.message, result.data
                )
                self._report_step(index, Executed(result=result))
                continue

            self._task_states.transition_step(index, StepStatus.FAILED, result.message, result.data)
            self._report_step(index, Executed(result=result))
            self._notify(
                EventScope.PIPELINE, task_id, "failed", f"Step {index} failed: {result.message}"
            )
            return PipelineResult(
                outcome=PipelineOutcome.FAILED,
                message=result.message,
                task_id=task_id,
                step_index=index,
            )

        task = self._task_states.load_current()
        if task is None or task.id != task_id or not task.completed:
            # Started past an unfinished step; the checkpoint stays for a later resume.
            index = self._task_states.resume_point()
            logger.warning(
                "Run reached the last step with earlier steps unfinished",
                extra={"task_id": task_id, "resume_point": index},
            )
            message = f"Steps before {from_index} are not completed"
            self._notify(EventScope.PIPELINE, task_id, PipelineOutcome.INCOMPLETE.value, message)
            return PipelineResult(
                outcome=PipelineOutcome.INCOMPLETE,
                message=message,
                task_id=task_id,
                step_index=index,
            )
        return self._finish(task_id)

    def _finish(self, task_id: str) -> PipelineResult:
        task = self._task_states.load_current()
        outputs = dict(task.outputs) if task is not None else {}
        self._task_states.clear()
        logger.info("Task completed", extra={"task_id": task_id})
        self._notify(EventScope.PIPELINE, task_id, "completed", "All steps completed")
        return PipelineResult(
            outcome=PipelineOutcome.COMPLETED,
            message="All steps completed",
            task_id=task_id,
            outputs=outputs,
        )

    async def _execute(
        self, definition: StepDefinition, task: TaskRecord, index: int
    ) -> StepResult:
        inputs = StepInputs(
            step_index=index,
            step_name=definition.name,
            payload=dict(task.payload),
            outputs=dict(task.outputs),
        )
        try:
            return await definition.executor.execute(inputs)
        except Exception as e:  # noqa: BLE001
            logger.exception("Step executor raised", extra={"task_id": task.id, "step": index})
            return StepResult(success=False, message=f"{definition.name} raised: {e}")

    def _report_step(self, index: int, outcome: StepOutcome) -> None:
        match outcome:
            case Skipped(prior_message=message):
                status = StepStatus.COMPLETED
            case Executed(result=result):
                status = StepStatus.COMPLETED if result.success else StepStatus.FAILED
                message = result.message
        self._notify(EventScope.STEP, str(index), status.value, message)

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
