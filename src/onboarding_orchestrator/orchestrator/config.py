"""Configuration for the onboarding orchestrator.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing is required: every setting has a working local default.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrchestratorSettings(BaseSettings):
    """Settings for the orchestrator, its CLI and its query API.

    Environment variables:
    - LOG_LEVEL                                 (optional)
    - LOG_FORMAT                                (optional, json | text)
    - AGENT_STATE_PATH                          (optional)
    - ORCHESTRATOR_QUEUE_RETRY_BACKOFF_SECONDS  (optional)
    - ORCHESTRATOR_QUEUE_MAX_RETRIES            (optional)
    - ORCHESTRATOR_PROGRESS_LOG_LIMIT           (optional)
    - ORCHESTRATOR_CORS_ORIGINS                 (optional, comma-separated)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `OrchestratorSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    log_format: str = Field(
        default="json",
        validation_alias="LOG_FORMAT",
        description="Log line format: 'json' or 'text'",
    )

    agent_state_path: Path = Field(
        default=Path("agent_state"),
        validation_alias="AGENT_STATE_PATH",
        description="Directory where task checkpoints and work queues are persisted",
    )

    queue_retry_backoff_seconds: float = Field(
        default=0.1,
        ge=0,
        validation_alias="ORCHESTRATOR_QUEUE_RETRY_BACKOFF_SECONDS",
        description="Base delay between verified-write retries; multiplied by the retry count",
    )
    queue_max_retries: int = Field(
        default=3,
        ge=1,
        validation_alias="ORCHESTRATOR_QUEUE_MAX_RETRIES",
        description="Attempts per work item status update before giving up",
    )

    progress_log_limit: int = Field(
        default=1000,
        ge=2,
        validation_alias="ORCHESTRATOR_PROGRESS_LOG_LIMIT",
        description="Progress events kept in memory; the older half is dropped past this",
    )

    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="ORCHESTRATOR_CORS_ORIGINS",
        description="Comma-separated origins allowed to call the query API from a browser",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"json", "text"}:
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return normalized

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def task_state_dir(self) -> Path:
        """Directory holding `current-task.json` and the `task-<id>.json` copies."""

        return self.agent_state_path / "task-states"

    @property
    def work_queue_dir(self) -> Path:
        """Directory holding one `<queue-id>.json` per work queue."""

        return self.agent_state_path / "work-queues"
