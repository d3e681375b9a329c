"""Knowledge base search and assembly of the prompt context."""

from __future__ import annotations

import logging

from secondbrain.kb.base import KnowledgeBase
from secondbrain.models import RetrievalResult

LOGGER = logging.getLogger(__name__)

NOTHING_FOUND = "No relevant information found in the knowledge base."
PARTITIONS_PER_DOCUMENT = 3


def assemble_context(result: RetrievalResult) -> str:
    """Join the first partitions of each document, separated by blank lines.

    Falls back to `NOTHING_FOUND` so the prompt always has a context to reason
    about.
    """
    texts = [
        partition.text.strip()
        for citation in result.citations
        for partition in citation.partitions[:PARTITIONS_PER_DOCUMENT]
        if partition.text.strip()
    ]
    if not texts:
        return NOTHING_FOUND
    return "\n\n".join(texts)


class RetrievalClient:
    """Queries the knowledge base with the configured index and thresholds."""

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        *,
        index: str,
        limit: int = 5,
        min_relevance: float = 0.3,
    ) -> None:
        self.knowledge_base = knowledge_base
        self.index = index
        self.limit = limit
        self.min_relevance = min_relevance

    def retrieve(
        self,
        question: str,
        *,
        index: str | None = None,
        limit: int | None = None,
        min_relevance: float | None = None,
    ) -> RetrievalResult:
        result = self.knowledge_base.search(
            question,
            index=index or self.index,
            limit=limit or self.limit,
            min_relevance=self.min_relevance if min_relevance is None else min_relevance,
        )
        LOGGER.info("Found %d relevant source(s)", len(result.citations))
        if result.citations:
            LOGGER.debug("Sources: %s", ", ".join(result.document_ids()))
        return result

    def assemble_context(self, result: RetrievalResult) -> str:
        return assemble_context(result)
