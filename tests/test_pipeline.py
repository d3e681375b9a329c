"""Tests for the query pipeline."""

from __future__ import annotations

from typing import List, Optional

import pytest

from conftest import FakeKnowledgeBase, MemoryStateStore, make_result, utc
from secondbrain.errors import ProviderError
from secondbrain.rag.generation import UNABLE_TO_ANSWER, GenerationRouter, ProviderReply
from secondbrain.rag.history import make_turn
from secondbrain.rag.pipeline import QueryPipeline
from secondbrain.rag.results import RetrievalResultStore
from secondbrain.rag.retrieval import NOTHING_FOUND, RetrievalClient


class StubProvider:
    """Provider returning canned replies and recording prompts."""

    name = "local"

    def __init__(self, *replies: str, error: Optional[Exception] = None) -> None:
        self.replies = list(replies) or ["answer"]
        self.error = error
        self.prompts: List[str] = []
        self.models: List[str] = []

    def resolve_model(self, override: Optional[str] = None) -> str:
        return override or "default-model"

    def complete(self, prompt: str, model: str) -> ProviderReply:
        self.prompts.append(prompt)
        self.models.append(model)
        if self.error is not None:
            raise self.error
        return ProviderReply(text=self.replies.pop(0))


def _pipeline(kb: FakeKnowledgeBase, provider: StubProvider, store: MemoryStateStore | None = None):
    return QueryPipeline(
        RetrievalClient(kb, index="default"),
        GenerationRouter(provider),
        result_store=RetrievalResultStore(store) if store is not None else None,
    )


class TestQueryPipeline:
    """Test QueryPipeline.answer."""

    def test_answer_with_context(self) -> None:
        """Retrieved partitions should reach the prompt."""
        kb = FakeKnowledgeBase(make_result(("doc", [("Paris is in France.", 0.9)])))
        provider = StubProvider("Paris.")

        result = _pipeline(kb, provider).answer("Where is Paris?")

        assert result.answer == "Paris."
        assert "Paris is in France." in provider.prompts[0]
        assert "User Question: Where is Paris?" in result.prompt
        assert result.retrieval.document_ids() == ["doc"]
        assert result.history is None

    def test_no_results_still_generates(self) -> None:
        """An empty search should send the fallback context to the provider."""
        provider = StubProvider("I don't know.")

        result = _pipeline(FakeKnowledgeBase(), provider).answer("Anything?")

        assert NOTHING_FOUND in provider.prompts[0]
        assert result.answer == "I don't know."

    def test_saves_result(self) -> None:
        store = MemoryStateStore()
        kb = FakeKnowledgeBase(make_result(("doc", [("x", 0.5)])))

        _pipeline(kb, StubProvider(), store).answer("q")

        assert '"documentId":"doc"' in store.content

    def test_reuses_given_retrieval(self) -> None:
        """A passed-in result should skip the search."""
        kb = FakeKnowledgeBase()
        provider = StubProvider()

        _pipeline(kb, provider).answer("q", retrieval=make_result(("pre", [("cached", 0.8)])))

        assert kb.searches == []
        assert "cached" in provider.prompts[0]

    def test_history_grows_without_mutation(self) -> None:
        """The returned history should add the question and the answer."""
        provider = StubProvider("first", "second")
        pipeline = _pipeline(FakeKnowledgeBase(), provider)

        first = pipeline.answer("q1", ())
        second = pipeline.answer("q2", first.history)

        assert [(t.role, t.content) for t in first.history] == [("user", "q1"), ("assistant", "first")]
        assert len(first.history) == 2
        assert [t.content for t in second.history] == ["q1", "first", "q2", "second"]
        assert "<conversation_history>" not in provider.prompts[0]
        assert "User: q1\nAssistant: first" in provider.prompts[1]
        assert "User: q2" not in provider.prompts[1]

    def test_window_size(self) -> None:
        history = tuple(make_turn("user", f"old{i}", utc(2024, 1, 1)) for i in range(4))
        provider = StubProvider()

        _pipeline(FakeKnowledgeBase(), provider).answer("new", history, 2)

        assert "User: old3" in provider.prompts[0]
        assert "old2" not in provider.prompts[0]

    def test_empty_answer_recorded_as_fallback(self) -> None:
        provider = StubProvider("")

        result = _pipeline(FakeKnowledgeBase(), provider).answer("q", ())

        assert result.answer == UNABLE_TO_ANSWER
        assert result.history[-1].content == UNABLE_TO_ANSWER

    def test_model_hint(self) -> None:
        provider = StubProvider()

        result = _pipeline(FakeKnowledgeBase(), provider).answer("q", model="gemma3:4b")

        assert provider.models == ["gemma3:4b"]
        assert result.generation.model == "gemma3:4b"

    def test_provider_error_propagates(self) -> None:
        provider = StubProvider(error=ProviderError("down", status_code=503))

        with pytest.raises(ProviderError):
            _pipeline(FakeKnowledgeBase(), provider).answer("q")
