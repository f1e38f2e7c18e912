"""Bulk work queues of independent plugin-scoped items."""

__all__: list[str] = []
