"""Key-addressable document storage.

Every document is a JSON object stored under a flat key. The file-backed store
writes each document as a whole-file replace (temp file + rename), so readers
only ever see a complete previous or next version of a document.

There is no locking here. Callers that need to detect lost
updates re-read after writing (see the work queue manager).
"""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class DocumentKeyError(ValueError):
    """Raised for keys that cannot be mapped safely to a single document."""


def validate_key(key: str) -> str:
    if not _SAFE_KEY.match(key) or ".." in key:
        raise DocumentKeyError(f"Invalid document key: {key!r}")
    return key


class DocumentStore(Protocol):
    """Read, write and delete JSON documents by key."""

    def read(self, key: str) -> dict[str, Any] | None: ...

    def write(self, key: str, document: dict[str, Any]) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


class JsonDocumentStore:
    """One `<key>.json` file per document inside a directory.

    The directory is created on first write, not on construction.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{validate_key(key)}.json"

    def read(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.exists():
            return None
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"Document {key!r} is not a JSON object: {path}")
        return raw

    def write(self, key: str, document: dict[str, Any]) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Unique temp name per write: concurrent writers must not share it.
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            temp_path.write_text(
                json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
            )
            os.replace(temp_path, path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

        logger.debug("Document written", extra={"key": key, "path": str(path)})

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        logger.debug("Document deleted", extra={"key": key, "path": str(path)})
        return True

    def keys(self) -> list[str]:
        if not self._directory.exists():
            return []
        return sorted(
            p.stem
            for p in self._directory.iterdir()
            if p.is_file() and p.suffix == ".json" and not p.name.startswith(".")
        )


class InMemoryDocumentStore:
    """Dictionary-backed store for tests and ephemeral runs.

    Documents are round-tripped through JSON so callers cannot share mutable
    state with the store, matching the file-backed behaviour.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def read(self, key: str) -> dict[str, Any] | None:
        raw = self._documents.get(validate_key(key))
        if raw is None:
            return None
        loaded: dict[str, Any] = json.loads(raw)
        return loaded

    def write(self, key: str, document: dict[str, Any]) -> None:
        self._documents[validate_key(key)] = json.dumps(document)

    def delete(self, key: str) -> bool:
        return self._documents.pop(validate_key(key), None) is not None

    def keys(self) -> list[str]:
        return sorted(self._documents)
