"""Onboarding Orchestrator.

Resumable execution of a fixed onboarding step sequence, plus bulk work queues
of independent plugin-scoped jobs:
- configuration loaded from `.env`
- structured logging
- JSON document persistence for checkpoints and queues
"""

__version__ = "0.1.0"

from onboarding_orchestrator.orchestrator.config import OrchestratorSettings

__all__ = ["__version__", "OrchestratorSettings"]
