"""Core orchestrator components.

- Settings loaded from .env
- Structured logging
- Document storage shared by the checkpoint and work queue managers
- Explicit service wiring
"""
