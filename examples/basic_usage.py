#!/usr/bin/env python3
"""Programmatic onboarding run example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* run the five onboarding steps with stand-in executors
* resume from the checkpoint when a step fails
* process a small work queue

Pass `--fail-step N` to make step N fail once; run again to resume.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from onboarding_orchestrator.orchestrator.config import OrchestratorSettings
from onboarding_orchestrator.orchestrator.logging import configure_logging
from onboarding_orchestrator.orchestrator.services import build_services
from onboarding_orchestrator.orchestrator.workflow.checkpoint import ONBOARDING_STEPS
from onboarding_orchestrator.orchestrator.workflow.executors import (
    ItemInputs,
    ItemResult,
    StepInputs,
    StepResult,
)
from onboarding_orchestrator.orchestrator.workflow.pipeline import StepDefinition


class DemoStep:
    def __init__(self, fail: bool = False, produces: str | None = None) -> None:
        self.fail = fail
        self.produces = produces

    async def execute(self, inputs: StepInputs) -> StepResult:
        if self.fail:
            return StepResult(False, f"{inputs.step_name}: simulated failure")
        data = {self.produces: f"/tmp/{self.produces}.png"} if self.produces else None
        return StepResult(True, f"{inputs.step_name}: done", data)


class DemoItem:
    async def execute(self, inputs: ItemInputs) -> ItemResult:
        return ItemResult(True, f"{len(inputs.item.operations)} operation(s) applied")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the onboarding pipeline (example).")
    parser.add_argument("--fail-step", type=int, default=0, help="Step index to fail (optional)")
    return parser.parse_args(argv)


async def _run(fail_step: int) -> int:
    settings = OrchestratorSettings()
    configure_logging(settings.log_level, settings.log_format)
    services = build_services(settings)

    definitions = [
        StepDefinition(name=name, executor=DemoStep(fail=index == fail_step))
        for index, name in enumerate(ONBOARDING_STEPS, start=1)
    ]
    definitions[3] = StepDefinition(
        name=ONBOARDING_STEPS[3],
        executor=DemoStep(fail=fail_step == 4, produces="group_qr_path"),
        produces=("group_qr_path",),
    )
    definitions[4] = StepDefinition(
        name=ONBOARDING_STEPS[4],
        executor=DemoStep(fail=fail_step == 5),
        requires=("group_qr_path",),
    )

    result = await services.pipeline(definitions).run({"contact": "demo"})
    print(f"Pipeline: {result.outcome.value} ({result.message})")

    queue = services.work_queues.create_queue(
        "demo", {"plugin-a": [{"operation_type": "rename"}], "plugin-b": []}
    )
    run = await services.queue_runner(DemoItem()).run(queue.id)
    status = run.status.value if run.status is not None else "unknown"
    print(f"Queue {queue.id}: {run.outcome.value}, status={status}")

    return 0 if result.succeeded else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    return asyncio.run(_run(args.fail_step))


if __name__ == "__main__":
    raise SystemExit(main())
