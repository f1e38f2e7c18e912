"""Console entrypoint.

The CLI itself lives in `onboarding_orchestrator.orchestrator.main`.
"""

from __future__ import annotations

from onboarding_orchestrator.orchestrator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
