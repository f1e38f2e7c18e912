"""FastAPI app factory.

Endpoints are thin wrappers over the orchestrator services.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from onboarding_orchestrator import __version__
from onboarding_orchestrator.orchestrator.config import OrchestratorSettings
from onboarding_orchestrator.orchestrator.services import OrchestratorServices, build_services
from onboarding_orchestrator.server.router import router

logger = logging.getLogger(__name__)


def create_app(
    settings: OrchestratorSettings | None = None,
    services: OrchestratorServices | None = None,
) -> FastAPI:
    settings = settings or OrchestratorSettings()
    services = services or build_services(settings)

    app = FastAPI(
        title="Onboarding Orchestrator",
        version=__version__,
        description="REST API over onboarding task checkpoints and work queues.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Request handlers read these through `request.app.state`.
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    logger.info("API created", extra={"state_path": str(settings.agent_state_path)})
    return app
