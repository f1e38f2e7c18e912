"""Unit tests for the REST query API."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from onboarding_orchestrator.orchestrator.config import OrchestratorSettings
from onboarding_orchestrator.orchestrator.services import OrchestratorServices
from onboarding_orchestrator.orchestrator.work_queue.models import WorkItemStatus
from onboarding_orchestrator.orchestrator.workflow.events import EventScope, ProgressEvent
from onboarding_orchestrator.orchestrator.workflow.state_machine import StepStatus
from onboarding_orchestrator.server.app import create_app


@pytest.fixture
def client(settings: OrchestratorSettings, services: OrchestratorServices) -> TestClient:
    return TestClient(create_app(settings=settings, services=services))


def test_health_and_docs(client: TestClient) -> None:
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/openapi.json").status_code == 200


def test_create_app_builds_services_from_environment(
    clean_env: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("AGENT_STATE_PATH", str(clean_env / "state"))
    app = create_app()
    assert app.state.settings.agent_state_path == clean_env / "state"
    assert TestClient(app).get("/api/queues").json() == []


def test_task_endpoints(client: TestClient, services: OrchestratorServices) -> None:
    assert client.get("/api/task/current").status_code == 404
    assert client.get("/api/task/resume-point").status_code == 404
    assert client.delete("/api/task/current").status_code == 404

    task = services.task_states.create({"contact": "Alice"})
    services.task_states.transition_step(1, StepStatus.RUNNING, "running")

    current = client.get("/api/task/current").json()
    assert current["id"] == task.id
    assert current["steps"][0]["status"] == "running"

    assert client.get("/api/task/resume-point").json() == {
        "task_id": task.id,
        "completed": False,
        "step_index": 1,
    }

    assert client.delete("/api/task/current").json() == {"ok": True}
    assert client.get("/api/task/current").status_code == 404
    history = client.get("/api/task/history").json()
    assert [t["id"] for t in history] == [task.id]


def test_queue_endpoints(client: TestClient, services: OrchestratorServices) -> None:
    manager = services.work_queues
    queue = manager.create_queue(
        "kw", {"a": [{}], "b": [{}]}, plugin_metadata={"a": {"remarks": "A"}}
    )
    asyncio.run(manager.update_item_status(queue.id, "b", WorkItemStatus.FAILED, "boom"))

    summaries = client.get("/api/queues").json()
    assert [s["id"] for s in summaries] == [queue.id]
    assert summaries[0]["progress"]["failed"] == 1
    assert summaries[0]["status"] == "in_progress"

    detail = client.get(f"/api/queues/{queue.id}").json()
    assert detail["items"][0]["display_name"] == "A"

    retryable = client.get(f"/api/queues/{queue.id}/retryable").json()
    assert [i["plugin_id"] for i in retryable] == ["b"]

    assert client.delete(f"/api/queues/{queue.id}").json() == {"ok": True}
    assert client.get(f"/api/queues/{queue.id}").status_code == 404
    assert client.get(f"/api/queues/{queue.id}/retryable").status_code == 404
    assert client.delete(f"/api/queues/{queue.id}").status_code == 404
    assert client.get("/api/queues/bad..key").status_code == 404


def test_events_endpoint(client: TestClient, services: OrchestratorServices) -> None:
    log = services.progress_log
    log.notify(ProgressEvent(scope=EventScope.STEP, id="1", status="completed", message="ok"))
    log.notify(ProgressEvent(scope=EventScope.ITEM, id="a", status="failed", message="boom"))

    events = client.get("/api/events").json()
    assert [(e["scope"], e["id"]) for e in events] == [("step", "1"), ("item", "a")]

    items = client.get("/api/events", params={"scope": "item"}).json()
    assert [e["status"] for e in items] == ["failed"]

    latest = client.get("/api/events", params={"limit": 1}).json()
    assert [e["id"] for e in latest] == ["a"]


def test_cancellation_endpoints(client: TestClient, services: OrchestratorServices) -> None:
    state = client.post("/api/cancel/pipeline").json()
    assert state["flags"]["pipeline"] is True
    assert services.cancellation.is_requested("pipeline")  # type: ignore[arg-type]

    assert client.get("/api/cancel").json()["flags"]["pipeline"] is True
    assert client.post("/api/cancel/unknown").status_code == 422

    state = client.post("/api/cancel/reset").json()
    assert not any(state["flags"].values())
