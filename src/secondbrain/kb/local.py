"""Knowledge base backed by sentence-transformers embeddings and SQLite."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping

from secondbrain.errors import KnowledgeBaseError
from secondbrain.kb.encoder import EmbeddingModel
from secondbrain.kb.extract import extract_text
from secondbrain.kb.storage import SQLiteVectorStore
from secondbrain.models import ChunkRecord, Citation, Partition, RetrievalResult
from secondbrain.utils.text import chunk_text

LOGGER = logging.getLogger(__name__)

# Chunks fetched per requested document before grouping by document.
_CANDIDATES_PER_DOCUMENT = 8


class LocalKnowledgeBase:
    """Imports documents into a local vector store and searches it."""

    def __init__(
        self,
        embedder: EmbeddingModel,
        store: SQLiteVectorStore,
        *,
        chunk_chars: int = 1200,
        overlap: int = 200,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.chunk_chars = chunk_chars
        self.overlap = overlap

    def close(self) -> None:
        self.store.close()

    def import_file(
        self, path: Path, document_id: str, tags: Mapping[str, str], *, index: str
    ) -> None:
        self.import_text(extract_text(Path(path)), document_id, tags, index=index)

    def import_text(
        self, text: str, document_id: str, tags: Mapping[str, str], *, index: str
    ) -> None:
        chunks = [
            ChunkRecord(
                document_id=document_id,
                index=idx,
                text=chunk,
                metadata={"filename": tags.get("filename", document_id)},
            )
            for idx, chunk in enumerate(
                chunk_text(text, max_chars=self.chunk_chars, overlap=self.overlap)
            )
        ]
        if not chunks:
            raise KnowledgeBaseError(f"Document {document_id} has no text to import")

        LOGGER.debug("Embedding %d chunk(s) for %s", len(chunks), document_id)
        try:
            embeddings = self.embedder.embed(chunk.text for chunk in chunks)
            status = self.store.replace_document(index, document_id, tags, chunks, embeddings)
        except KnowledgeBaseError:
            raise
        except Exception as exc:
            raise KnowledgeBaseError(f"Failed to store {document_id}: {exc}") from exc
        LOGGER.debug("Document %s %s with %d chunk(s)", document_id, status, len(chunks))

    def search(
        self, query: str, *, index: str, limit: int, min_relevance: float
    ) -> RetrievalResult:
        """Chunks above `min_relevance`, grouped per document, best document first."""
        try:
            rows = self.store.search(
                self.embedder.embed_query(query),
                index_name=index,
                top_k=max(limit, 1) * _CANDIDATES_PER_DOCUMENT,
            )
        except Exception as exc:
            raise KnowledgeBaseError(f"Search failed: {exc}") from exc

        grouped: Dict[str, List[Partition]] = {}
        for row in rows:
            if row["score"] < min_relevance:
                continue
            partitions = grouped.setdefault(row["document_id"], [])
            partitions.append(Partition(text=row["text"], relevance=row["score"]))

        # Rows arrive best first, so insertion order ranks documents by best chunk.
        citations = [
            Citation(document_id=document_id, partitions=partitions)
            for document_id, partitions in list(grouped.items())[:limit]
        ]
        return RetrievalResult(citations=citations)
