"""Explicit wiring of the orchestrator's collaborators.

Everything stateful hangs off one `OrchestratorServices` instance that callers
construct and pass around. Two instances pointed at different state
directories are fully isolated.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from onboarding_orchestrator.orchestrator.config import OrchestratorSettings
from onboarding_orchestrator.orchestrator.storage import DocumentStore, JsonDocumentStore
from onboarding_orchestrator.orchestrator.work_queue.manager import WorkQueueManager
from onboarding_orchestrator.orchestrator.work_queue.runner import WorkQueueRunner
from onboarding_orchestrator.orchestrator.workflow.cancellation import CancellationFlags
from onboarding_orchestrator.orchestrator.workflow.checkpoint import TaskStateManager
from onboarding_orchestrator.orchestrator.workflow.events import ProgressLog
from onboarding_orchestrator.orchestrator.workflow.executors import ItemExecutor
from onboarding_orchestrator.orchestrator.workflow.pipeline import StepDefinition, StepPipeline


@dataclass(slots=True)
class OrchestratorServices:
    task_states: TaskStateManager
    work_queues: WorkQueueManager
    cancellation: CancellationFlags
    progress_log: ProgressLog

    def pipeline(self, definitions: Sequence[StepDefinition]) -> StepPipeline:
        return StepPipeline(
            self.task_states,
            definitions,
            observer=self.progress_log,
            cancellation=self.cancellation,
        )

    def queue_runner(self, executor: ItemExecutor) -> WorkQueueRunner:
        return WorkQueueRunner(
            self.work_queues,
            executor,
            observer=self.progress_log,
            cancellation=self.cancellation,
        )


def build_services(
    settings: OrchestratorSettings,
    *,
    task_store: DocumentStore | None = None,
    queue_store: DocumentStore | None = None,
) -> OrchestratorServices:
    """File-backed services under `settings.agent_state_path` unless stores are given."""

    return OrchestratorServices(
        task_states=TaskStateManager(task_store or JsonDocumentStore(settings.task_state_dir)),
        work_queues=WorkQueueManager(
            queue_store or JsonDocumentStore(settings.work_queue_dir),
            retry_backoff_seconds=settings.queue_retry_backoff_seconds,
            default_max_retries=settings.queue_max_retries,
        ),
        cancellation=CancellationFlags(),
        progress_log=ProgressLog(limit=settings.progress_log_limit),
    )
