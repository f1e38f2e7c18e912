"""FastAPI server adapter for onboarding-orchestrator.

This module exposes a read-mostly REST API over the orchestrator services.

Design intent:
- Keep business logic in `onboarding_orchestrator.orchestrator.*`
- Keep server-specific concerns (routing, CORS, response shapes) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from onboarding_orchestrator.server.app import create_app
