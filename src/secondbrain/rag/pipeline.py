"""One question/answer turn: retrieve, build the prompt, generate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from secondbrain.models import GenerationResponse, RetrievalResult
from secondbrain.rag.generation import GenerationRouter
from secondbrain.rag.history import DEFAULT_WINDOW, History, build_context, make_turn
from secondbrain.rag.prompt import build_prompt
from secondbrain.rag.results import RetrievalResultStore
from secondbrain.rag.retrieval import RetrievalClient

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineAnswer:
    answer: str
    retrieval: RetrievalResult
    prompt: str
    generation: GenerationResponse
    history: Optional[History] = None


class QueryPipeline:
    """Stateless composition of retrieval, prompt assembly and generation.

    Conversation history is owned by the caller: `answer` receives it and
    returns the extended history without mutating anything.
    """

    def __init__(
        self,
        retrieval: RetrievalClient,
        router: GenerationRouter,
        *,
        result_store: Optional[RetrievalResultStore] = None,
    ) -> None:
        self.retrieval = retrieval
        self.router = router
        self.result_store = result_store

    def retrieve(self, question: str, *, limit: Optional[int] = None) -> RetrievalResult:
        result = self.retrieval.retrieve(question, limit=limit)
        if self.result_store is not None:
            self.result_store.save(result)
        return result

    def answer(
        self,
        question: str,
        session_history: Optional[History] = None,
        window_size: int = DEFAULT_WINDOW,
        *,
        model: Optional[str] = None,
        limit: Optional[int] = None,
        retrieval: Optional[RetrievalResult] = None,
    ) -> PipelineAnswer:
        """Answer `question` from the knowledge base.

        With `session_history` (history enabled) the question is appended as a
        user turn, the prompt gets the windowed history, and the returned
        `history` also holds the assistant's answer. Pass `retrieval` to reuse
        a result that was already fetched.
        """
        if retrieval is None:
            retrieval = self.retrieve(question, limit=limit)
        context = self.retrieval.assemble_context(retrieval)

        history: Optional[History] = None
        window: History = ()
        if session_history is not None:
            history = tuple(session_history) + (make_turn("user", question),)
            window = build_context(history, window_size, current_input=question)

        prompt = build_prompt(question, context, window)
        generation = self.router.generate(prompt, model)

        if history is not None and generation.text:
            history = history + (make_turn("assistant", generation.text),)
        return PipelineAnswer(
            answer=generation.text,
            retrieval=retrieval,
            prompt=prompt,
            generation=generation,
            history=history,
        )
