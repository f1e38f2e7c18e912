"""Contracts for the external code that does the actual work.

Executors are async: the run loop suspends only while awaiting them. Anything
resembling a timeout belongs inside the executor and comes back as an ordinary
unsuccessful result.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from onboarding_orchestrator.orchestrator.work_queue.models import QueueConfig, WorkItem


@dataclass(frozen=True, slots=True)
class StepInputs:
    step_index: int
    step_name: str
    payload: Mapping[str, Any]
    outputs: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class StepResult:
    success: bool
    message: str
    data: Any | None = None


class StepExecutor(Protocol):
    async def execute(self, inputs: StepInputs) -> StepResult: ...


@dataclass(frozen=True, slots=True)
class ItemInputs:
    """What an item executor gets.

    `should_stop` reads the finer-grained cancellation flag, for executors that
    want to stop between their own sub-operations.
    """

    queue_id: str
    item: WorkItem
    config: QueueConfig
    should_stop: Callable[[], bool] = field(default=lambda: False)


@dataclass(frozen=True, slots=True)
class ItemResult:
    success: bool
    message: str
    skipped: bool = False
    data: Any | None = None


class ItemExecutor(Protocol):
    async def execute(self, inputs: ItemInputs) -> ItemResult: ...
