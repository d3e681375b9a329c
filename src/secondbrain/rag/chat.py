"""Interactive question loops for knowledge-base and direct model chat."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from secondbrain.errors import KnowledgeBaseError, ProviderError
from secondbrain.models import GenerationResponse
from secondbrain.rag.generation import GenerationRouter
from secondbrain.rag.history import DEFAULT_WINDOW, History, build_context, make_turn
from secondbrain.rag.pipeline import PipelineAnswer, QueryPipeline
from secondbrain.rag.prompt import build_direct_prompt

LOGGER = logging.getLogger(__name__)

EXIT_COMMAND = "exit"

# Returns the next line, or None at end of input.
ReadInput = Callable[[], Optional[str]]


def _is_exit(line: Optional[str]) -> bool:
    return line is None or not line.strip() or line.strip().lower() == EXIT_COMMAND


def run_rag_chat(
    pipeline: QueryPipeline,
    read_input: ReadInput,
    show_answer: Callable[[PipelineAnswer], None],
    *,
    history_enabled: bool = False,
    window_size: int = DEFAULT_WINDOW,
    model: Optional[str] = None,
) -> History:
    """Answer questions until `exit` or end of input. Returns the session history.

    Provider and knowledge base failures are logged and the loop asks again.
    """
    history: History = ()
    while True:
        line = read_input()
        if _is_exit(line):
            LOGGER.info("Goodbye!")
            return history
        question = line.strip()
        try:
            result = pipeline.answer(
                question,
                history if history_enabled else None,
                window_size,
                model=model,
            )
        except (ProviderError, KnowledgeBaseError) as exc:
            LOGGER.error("Error processing query: %s", exc)
            continue
        if result.history is not None:
            history = result.history
        show_answer(result)


def run_llm_chat(
    router: GenerationRouter,
    read_input: ReadInput,
    show_answer: Callable[[GenerationResponse], None],
    *,
    history_enabled: bool = False,
    window_size: int = DEFAULT_WINDOW,
    model: Optional[str] = None,
) -> History:
    """Chat with the generation provider directly, without retrieval."""
    history: History = ()
    while True:
        line = read_input()
        if _is_exit(line):
            LOGGER.info("Goodbye!")
            return history
        question = line.strip()

        turns: History = history + (make_turn("user", question),) if history_enabled else ()
        window = build_context(turns, window_size, current_input=question)
        try:
            response = router.generate(build_direct_prompt(question, window), model)
        except ProviderError as exc:
            LOGGER.error("Error processing query: %s", exc)
            continue
        if history_enabled:
            history = turns + (make_turn("assistant", response.text),)
        show_answer(response)
