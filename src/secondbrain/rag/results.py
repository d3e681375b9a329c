"""Last retrieval result, persisted for display by a later command."""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from secondbrain.models import Citation, Partition, RetrievalResult
from secondbrain.state import StateStore, write_state

LOGGER = logging.getLogger(__name__)


class StoredPartition(BaseModel):
    text: str
    relevance: float


class StoredCitation(BaseModel):
    document_id: Optional[str] = Field(default=None, alias="documentId")
    partitions: List[StoredPartition] = []


_ADAPTER = TypeAdapter(List[StoredCitation])


def to_stored(result: RetrievalResult) -> List[StoredCitation]:
    return [
        StoredCitation(
            documentId=citation.document_id,
            partitions=[
                StoredPartition(text=p.text, relevance=p.relevance) for p in citation.partitions
            ],
        )
        for citation in result.citations
    ]


def from_stored(citations: List[StoredCitation]) -> RetrievalResult:
    return RetrievalResult(
        citations=[
            Citation(
                document_id=citation.document_id or "Unknown",
                partitions=[Partition(text=p.text, relevance=p.relevance) for p in citation.partitions],
            )
            for citation in citations
        ]
    )


class RetrievalResultStore:
    """Overwrites the stored result on every query."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    def save(self, result: RetrievalResult) -> bool:
        payload = [c.model_dump(by_alias=True) for c in to_stored(result)]
        content = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        saved = write_state(self.store, content, what="retrieval results")
        if saved:
            LOGGER.debug("Stored retrieval results to %s", self.store.location)
        return saved

    def load(self) -> Optional[RetrievalResult]:
        """The stored result, or None when nothing usable was stored."""
        try:
            content = self.store.read()
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.error("Error loading retrieval results from %s: %s", self.store.location, exc)
            return None
        if content is None or not content.strip():
            return None
        try:
            return from_stored(_ADAPTER.validate_json(content))
        except ValidationError as exc:
            LOGGER.error("Corrupt retrieval results in %s: %s", self.store.location, exc)
            return None
