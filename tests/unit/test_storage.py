"""Unit tests for JSON document storage."""

from __future__ import annotations

from pathlib import Path

import pytest

from onboarding_orchestrator.orchestrator.storage import (
    DocumentKeyError,
    InMemoryDocumentStore,
    JsonDocumentStore,
    validate_key,
)


def test_json_store_creates_directory_on_first_write(tmp_path: Path) -> None:
    directory = tmp_path / "nested" / "docs"
    store = JsonDocumentStore(directory)
    assert not directory.exists()
    assert store.read("missing") is None
    assert store.keys() == []

    store.write("doc-1", {"a": 1})

    assert (directory / "doc-1.json").exists()
    assert store.read("doc-1") == {"a": 1}


def test_json_store_overwrites_whole_document_and_leaves_no_temp_files(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path)
    store.write("doc", {"a": 1, "b": 2})
    store.write("doc", {"c": 3})

    assert store.read("doc") == {"c": 3}
    assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]


def test_json_store_keys_and_delete(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path)
    store.write("task-b", {})
    store.write("task-a", {})
    (tmp_path / ".task-c.json.abc.tmp").write_text("{}", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    assert store.keys() == ["task-a", "task-b"]
    assert store.delete("task-a") is True
    assert store.delete("task-a") is False
    assert store.keys() == ["task-b"]


def test_json_store_rejects_non_object_documents(tmp_path: Path) -> None:
    (tmp_path / "doc.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonDocumentStore(tmp_path).read("doc")


def test_json_store_propagates_invalid_json(tmp_path: Path) -> None:
    (tmp_path / "doc.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonDocumentStore(tmp_path).read("doc")


@pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden", "a..b"])
def test_unsafe_keys_are_rejected(key: str) -> None:
    with pytest.raises(DocumentKeyError):
        validate_key(key)


def test_in_memory_store_does_not_share_mutable_state() -> None:
    store = InMemoryDocumentStore()
    document = {"items": [1]}
    store.write("doc", document)
    document["items"].append(2)

    loaded = store.read("doc")
    assert loaded == {"items": [1]}
    assert loaded is not None
    loaded["items"].append(3)
    assert store.read("doc") == {"items": [1]}
    assert store.delete("doc") is True
    assert store.keys() == []
