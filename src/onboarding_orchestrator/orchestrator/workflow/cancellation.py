"""Cooperative cancellation flags.

A flag is only ever read between units of work. Setting one never interrupts a
step or item already in flight.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

logger = logging.getLogger(__name__)


class CancellationScope(str, Enum):
    PIPELINE = "pipeline"
    QUEUE_RUN = "queue_run"
    ITEM_OPERATIONS = "item_operations"


class CancellationFlags:
    """One independently settable flag per scope, safe to set from another thread."""

    def __init__(self) -> None:
        self._flags: dict[CancellationScope, threading.Event] = {
            scope: threading.Event() for scope in CancellationScope
        }

    def request(self, scope: CancellationScope) -> None:
        scope = CancellationScope(scope)
        self._flags[scope].set()
        logger.info("Cancellation requested", extra={"scope": scope.value})

    def is_requested(self, scope: CancellationScope) -> bool:
        return self._flags[CancellationScope(scope)].is_set()

    def reset(self, *scopes: CancellationScope) -> None:
        for scope in scopes:
            self._flags[CancellationScope(scope)].clear()

    def reset_all(self) -> None:
        self.reset(*CancellationScope)

    def snapshot(self) -> dict[str, bool]:
        return {scope.value: event.is_set() for scope, event in self._flags.items()}
