from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class EventScope(str, Enum):
    STEP = "step"
    ITEM = "item"
    PIPELINE = "pipeline"
    QUEUE = "queue"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """A one-way progress notification.

    `id` is the step index (as a string) for step events, the plugin id for item
    events, and the task or queue id for run-level events.
    """

    scope: EventScope
    id: str
    status: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class ProgressObserver(Protocol):
    def notify(self, event: ProgressEvent) -> None: ...


class ProgressLog:
    """In-memory observer keeping the most recent events.

    When `limit` is exceeded the oldest half is dropped in one go.
    """

    def __init__(self, limit: int = 1000) -> None:
        if limit < 2:
            raise ValueError("limit must be >= 2")
        self._limit = limit
        self._events: list[ProgressEvent] = []
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def notify(self, event: ProgressEvent) -> None:
        with self._lock:
            self._events.append(event)
            if len(self._events) > self._limit:
                self._events = self._events[-(self._limit // 2) :]

    def events(self, *, scope: EventScope | None = None) -> list[ProgressEvent]:
        with self._lock:
            snapshot = list(self._events)
        if scope is None:
            return snapshot
        return [e for e in snapshot if e.scope is scope]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class CallbackObserver:
    """Adapts a plain callable to the observer protocol."""

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self._callback = callback

    def notify(self, event: ProgressEvent) -> None:
        self._callback(event)
