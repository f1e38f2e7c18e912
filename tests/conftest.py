"""Test configuration and fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from onboarding_orchestrator.orchestrator.config import OrchestratorSettings
from onboarding_orchestrator.orchestrator.services import OrchestratorServices, build_services
from onboarding_orchestrator.orchestrator.storage import InMemoryDocumentStore, JsonDocumentStore
from onboarding_orchestrator.orchestrator.work_queue.manager import WorkQueueManager
from onboarding_orchestrator.orchestrator.workflow.checkpoint import TaskStateManager

_SETTINGS_ENV_VARS = (
    "LOG_LEVEL",
    "LOG_FORMAT",
    "AGENT_STATE_PATH",
    "ORCHESTRATOR_QUEUE_RETRY_BACKOFF_SECONDS",
    "ORCHESTRATOR_QUEUE_MAX_RETRIES",
    "ORCHESTRATOR_PROGRESS_LOG_LIMIT",
    "ORCHESTRATOR_CORS_ORIGINS",
)


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty directory with no orchestrator env vars set."""
    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Provide a temporary agent state directory (not created yet)."""
    return tmp_path / "agent_state"


@pytest.fixture
def task_states(state_dir: Path) -> TaskStateManager:
    return TaskStateManager(JsonDocumentStore(state_dir / "task-states"))


@pytest.fixture
def queue_manager(state_dir: Path) -> WorkQueueManager:
    return WorkQueueManager(JsonDocumentStore(state_dir / "work-queues"), retry_backoff_seconds=0)


@pytest.fixture
def memory_queue_manager() -> WorkQueueManager:
    return WorkQueueManager(InMemoryDocumentStore(), retry_backoff_seconds=0)


@pytest.fixture
def settings(clean_env: Path) -> OrchestratorSettings:
    return OrchestratorSettings(
        AGENT_STATE_PATH=str(clean_env / "agent_state"),
        ORCHESTRATOR_QUEUE_RETRY_BACKOFF_SECONDS=0,
    )


@pytest.fixture
def services(settings: OrchestratorSettings) -> OrchestratorServices:
    return build_services(settings)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """`configure_logging` replaces root handlers; undo that after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
