"""Tests for the persisted retrieval result."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import MemoryStateStore, make_result
from secondbrain.errors import StateWriteError
from secondbrain.models import RetrievalResult
from secondbrain.rag.results import RetrievalResultStore
from secondbrain.state import FileStateStore


class TestRetrievalResultStore:
    """Test RetrievalResultStore save/load."""

    def test_save_format(self, memory_store: MemoryStateStore) -> None:
        """Should write a compact JSON array with camelCase document ids."""
        store = RetrievalResultStore(memory_store)

        assert store.save(make_result(("doc", [("text", 0.75)]))) is True

        assert memory_store.content == (
            '[{"documentId":"doc","partitions":[{"text":"text","relevance":0.75}]}]'
        )

    def test_load_roundtrip(self, memory_store: MemoryStateStore) -> None:
        result = make_result(("a", [("one", 0.9), ("two", 0.4)]), ("b", [("three", 0.5)]))
        store = RetrievalResultStore(memory_store)
        store.save(result)

        assert store.load() == result

    def test_overwrites_previous(self, memory_store: MemoryStateStore) -> None:
        store = RetrievalResultStore(memory_store)
        store.save(make_result(("a", [("one", 0.9)])))
        store.save(make_result(("b", [("two", 0.8)])))

        assert store.load().document_ids() == ["b"]

    def test_empty_result_saved(self, memory_store: MemoryStateStore) -> None:
        """An empty result is stored as [] and loads as an empty result."""
        store = RetrievalResultStore(memory_store)
        store.save(RetrievalResult())

        assert memory_store.content == "[]"
        assert store.load() == RetrievalResult()
        assert store.load().is_empty

    @pytest.mark.parametrize("content", [None, "", "not json", '{"documentId": 1}'])
    def test_load_unusable(self, content, memory_store: MemoryStateStore) -> None:
        """Missing, empty or corrupt content should load as None."""
        memory_store.content = content

        assert RetrievalResultStore(memory_store).load() is None

    def test_missing_document_id(self, memory_store: MemoryStateStore) -> None:
        memory_store.content = json.dumps([{"partitions": [{"text": "t", "relevance": 0.5}]}])

        result = RetrievalResultStore(memory_store).load()

        assert result.document_ids() == ["Unknown"]

    def test_read_error(self, memory_store: MemoryStateStore) -> None:
        memory_store.read_error = OSError("gone")

        assert RetrievalResultStore(memory_store).load() is None

    def test_write_errors(self, memory_store: MemoryStateStore) -> None:
        """Transient errors return False; permission errors raise."""
        store = RetrievalResultStore(memory_store)
        memory_store.write_error = OSError("disk full")
        assert store.save(RetrievalResult()) is False

        memory_store.write_error = PermissionError("denied")
        with pytest.raises(StateWriteError):
            store.save(RetrievalResult())

    def test_file_store(self, tmp_path: Path) -> None:
        path = tmp_path / "data" / "rag-results.json"
        store = RetrievalResultStore(FileStateStore(path))

        store.save(make_result(("doc", [("t", 0.5)])))

        assert json.loads(path.read_text(encoding="utf-8"))[0]["documentId"] == "doc"
        assert store.load().document_ids() == ["doc"]

    def test_file_not_utf8(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """A result file that cannot be decoded should load as None."""
        path = tmp_path / "rag-results.json"
        path.write_bytes(b"\xff\xfe[]")

        assert RetrievalResultStore(FileStateStore(path)).load() is None
        assert "Error loading retrieval results" in caplog.text
