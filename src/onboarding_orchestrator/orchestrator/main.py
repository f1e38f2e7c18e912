"""CLI entrypoint for inspecting and managing orchestrator state.

Exit codes:
- 0: success
- 1: unexpected error (logged)
- 2: configuration error
- 4: nothing found / nothing to do

`serve` blocks until the API server stops.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

import uvicorn
from pydantic import ValidationError

from onboarding_orchestrator import __version__
from onboarding_orchestrator.orchestrator.config import OrchestratorSettings
from onboarding_orchestrator.orchestrator.logging import configure_logging
from onboarding_orchestrator.orchestrator.services import OrchestratorServices, build_services
from onboarding_orchestrator.orchestrator.workflow.state_machine import StepStatus
from onboarding_orchestrator.server.app import create_app

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_NOT_FOUND = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onboarding-orchestrator",
        description="Inspect and manage resumable onboarding tasks and bulk work queues",
    )
    parser.add_argument(
        "--version", action="version", version=f"onboarding-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("task-status", help="Show the current task's steps")
    subparsers.add_parser("resume-point", help="Print the step a resumed run would start from")
    subparsers.add_parser(
        "clear-task", help="Abandon the current task (its permanent copy is kept)"
    )
    subparsers.add_parser("task-history", help="List every recorded task, newest first")

    subparsers.add_parser("list-queues", help="List work queues, newest first")

    show_queue = subparsers.add_parser("show-queue", help="Print a work queue as JSON")
    show_queue.add_argument("--queue-id", required=True, help="Work queue id")

    retryable = subparsers.add_parser("retryable", help="List the failed items of a work queue")
    retryable.add_argument("--queue-id", required=True, help="Work queue id")

    delete_queue = subparsers.add_parser("delete-queue", help="Delete a work queue")
    delete_queue.add_argument("--queue-id", required=True, help="Work queue id")

    serve = subparsers.add_parser("serve", help="Run the query and control API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8000, help="Port number")

    return parser


def _task_status(services: OrchestratorServices) -> int:
    task = services.task_states.load_current()
    if task is None:
        print("No current task")
        return EXIT_NOT_FOUND

    state = "completed" if task.completed else f"at step {task.current_step}/{task.step_count}"
    print(f"Task {task.id} ({state})")
    for step in task.steps:
        print(f"  {step.index}. [{step.status.value}] {step.name}: {step.message}")
    for name, value in sorted(task.outputs.items()):
        print(f"  output {name} = {value}")
    return EXIT_OK


def _resume_point(services: OrchestratorServices) -> int:
    index = services.task_states.resume_point()
    if index is None:
        print("Nothing to resume")
        return EXIT_NOT_FOUND
    print(index)
    return EXIT_OK


def _clear_task(services: OrchestratorServices) -> int:
    if not services.task_states.clear():
        print("No current task")
        return EXIT_NOT_FOUND
    print("Current task cleared")
    return EXIT_OK


def _task_history(services: OrchestratorServices) -> int:
    tasks = services.task_states.history()
    if not tasks:
        print("No recorded tasks")
        return EXIT_NOT_FOUND
    for task in tasks:
        done = sum(1 for s in task.steps if s.status is StepStatus.COMPLETED)
        state = "completed" if task.completed else "unfinished"
        print(f"{task.id}  {task.created_at.isoformat()}  {state}  {done}/{task.step_count}")
    return EXIT_OK


def _list_queues(services: OrchestratorServices) -> int:
    queues = services.work_queues.list_queues()
    if not queues:
        print("No work queues")
        return EXIT_NOT_FOUND
    for queue in queues:
        p = queue.progress
        print(
            f"{queue.id}  [{queue.status.value}]  {p.completed}/{p.total} done, "
            f"{p.failed} failed  {queue.name}"
        )
    return EXIT_OK


def _show_queue(services: OrchestratorServices, queue_id: str) -> int:
    queue = services.work_queues.load_queue(queue_id)
    if queue is None:
        print(f"Work queue not found: {queue_id}")
        return EXIT_NOT_FOUND
    print(json.dumps(queue.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return EXIT_OK


def _retryable(services: OrchestratorServices, queue_id: str) -> int:
    if services.work_queues.load_queue(queue_id) is None:
        print(f"Work queue not found: {queue_id}")
        return EXIT_NOT_FOUND
    items = services.work_queues.retryable_items(queue_id)
    if not items:
        print("No failed items")
        return EXIT_OK
    for item in items:
        print(f"{item.plugin_id}  {item.display_name}  {item.error or ''}".rstrip())
    return EXIT_OK


def _delete_queue(services: OrchestratorServices, queue_id: str) -> int:
    if not services.work_queues.delete_queue(queue_id):
        print(f"Work queue not found: {queue_id}")
        return EXIT_NOT_FOUND
    print(f"Deleted work queue {queue_id}")
    return EXIT_OK


def _serve(
    settings: OrchestratorSettings, services: OrchestratorServices, host: str, port: int
) -> int:
    app = create_app(settings, services)
    logger.info("Starting API server", extra={"host": host, "port": port})
    uvicorn.run(app, host=host, port=port, log_config=None)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = OrchestratorSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level, settings.log_format)
    services = build_services(settings)

    try:
        if args.command == "task-status":
            return _task_status(services)
        if args.command == "resume-point":
            return _resume_point(services)
        if args.command == "clear-task":
            return _clear_task(services)
        if args.command == "task-history":
            return _task_history(services)
        if args.command == "list-queues":
            return _list_queues(services)
        if args.command == "show-queue":
            return _show_queue(services, args.queue_id)
        if args.command == "retryable":
            return _retryable(services, args.queue_id)
        if args.command == "delete-queue":
            return _delete_queue(services, args.queue_id)
        if args.command == "serve":
            return _serve(settings, services, args.host, args.port)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except Exception:
        logger.exception("Command failed")
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
