"""Tests for the local knowledge base."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from secondbrain.errors import KnowledgeBaseError
from secondbrain.kb.local import LocalKnowledgeBase
from secondbrain.kb.storage import SQLiteVectorStore

VOCABULARY = ("apple", "banana", "cherry")


class KeywordEmbedder:
    """Embeds text as normalised keyword counts over a tiny vocabulary."""

    dimension = len(VOCABULARY) + 1

    def embed(self, texts):
        rows = []
        for text in texts:
            lowered = text.lower()
            vector = np.array([lowered.count(word) for word in VOCABULARY] + [0.01], dtype="float32")
            rows.append(vector / np.linalg.norm(vector))
        return np.stack(rows)

    def embed_query(self, text):
        return self.embed([text])[0]


@pytest.fixture
def kb(tmp_path: Path):
    store = SQLiteVectorStore(tmp_path / "kb.db", dimension=KeywordEmbedder.dimension)
    knowledge_base = LocalKnowledgeBase(KeywordEmbedder(), store, chunk_chars=40, overlap=0)
    yield knowledge_base
    knowledge_base.close()


class TestLocalKnowledgeBase:
    """Test import and search."""

    def test_search_groups_by_document(self, kb: LocalKnowledgeBase) -> None:
        """Relevant chunks should be grouped per document, best document first."""
        kb.import_text("apple apple apple", "fruit", {"filename": "fruit.txt"}, index="default")
        kb.import_text("banana split", "dessert", {"filename": "dessert.txt"}, index="default")

        result = kb.search("apple", index="default", limit=5, min_relevance=0.3)

        assert result.document_ids() == ["fruit"]
        assert result.citations[0].partitions[0].text == "apple apple apple"
        assert result.citations[0].partitions[0].relevance > 0.9

    def test_min_relevance_zero_returns_all(self, kb: LocalKnowledgeBase) -> None:
        kb.import_text("apple", "a", {}, index="default")
        kb.import_text("banana", "b", {}, index="default")

        result = kb.search("apple", index="default", limit=5, min_relevance=0.0)

        assert result.document_ids() == ["a", "b"]

    def test_limit(self, kb: LocalKnowledgeBase) -> None:
        for name in ("a", "b", "c"):
            kb.import_text("cherry pie", name, {}, index="default")

        result = kb.search("cherry", index="default", limit=2, min_relevance=0.1)

        assert len(result.citations) == 2

    def test_multiple_chunks_per_document(self, kb: LocalKnowledgeBase) -> None:
        text = "apple " * 10 + "cherry " * 10
        kb.import_text(text, "mixed", {}, index="default")

        result = kb.search("apple", index="default", limit=5, min_relevance=0.0)

        partitions = result.citations[0].partitions
        assert len(partitions) > 1
        relevances = [p.relevance for p in partitions]
        assert relevances == sorted(relevances, reverse=True)

    def test_reimport_replaces(self, kb: LocalKnowledgeBase) -> None:
        kb.import_text("apple", "doc", {}, index="default")
        kb.import_text("banana", "doc", {}, index="default")

        result = kb.search("apple", index="default", limit=5, min_relevance=0.5)

        assert result.is_empty
        assert kb.store.count_chunks("default") == 1

    def test_empty_text_rejected(self, kb: LocalKnowledgeBase) -> None:
        with pytest.raises(KnowledgeBaseError):
            kb.import_text("   \n ", "blank", {}, index="default")

    def test_import_file_extracts(self, kb: LocalKnowledgeBase, tmp_path: Path) -> None:
        with patch("secondbrain.kb.local.extract_text", return_value="cherry tart") as extract:
            kb.import_file(tmp_path / "tart.pdf", "tart", {}, index="default")

        extract.assert_called_once_with(tmp_path / "tart.pdf")
        assert kb.search("cherry", index="default", limit=1, min_relevance=0.5).document_ids() == ["tart"]

    def test_embedding_failure_wrapped(self, tmp_path: Path) -> None:
        embedder = MagicMock()
        embedder.embed.side_effect = RuntimeError("model crashed")
        knowledge_base = LocalKnowledgeBase(embedder, MagicMock())

        with pytest.raises(KnowledgeBaseError, match="model crashed"):
            knowledge_base.import_text("text", "doc", {}, index="default")

    def test_search_failure_wrapped(self) -> None:
        store = MagicMock()
        store.search.side_effect = RuntimeError("db locked")
        knowledge_base = LocalKnowledgeBase(MagicMock(), store)

        with pytest.raises(KnowledgeBaseError, match="db locked"):
            knowledge_base.search("q", index="default", limit=1, min_relevance=0.0)
