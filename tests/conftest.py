"""Shared fixtures and fakes."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pytest

from secondbrain.models import Citation, DocumentCandidate, Partition, RetrievalResult


class MemoryStateStore:
    """In-memory `StateStore` with switchable failures."""

    def __init__(self, content: Optional[str] = None) -> None:
        self.content = content
        self.writes: List[str] = []
        self.read_error: Exception | None = None
        self.write_error: Exception | None = None

    @property
    def location(self) -> str:
        return "memory://state"

    def exists(self) -> bool:
        return self.content is not None

    def read(self) -> Optional[str]:
        if self.read_error is not None:
            raise self.read_error
        return self.content

    def write(self, content: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.content = content
        self.writes.append(content)


class FakeKnowledgeBase:
    """Records imports and returns a canned search result."""

    def __init__(self, result: RetrievalResult | None = None) -> None:
        self.result = result or RetrievalResult()
        self.files: List[tuple] = []
        self.texts: List[tuple] = []
        self.searches: List[Dict[str, object]] = []
        self.fail_on: Dict[str, Exception] = {}
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def _maybe_fail(self, document_id: str) -> None:
        if document_id in self.fail_on:
            raise self.fail_on[document_id]

    def import_file(self, path: Path, document_id: str, tags: Mapping[str, str], *, index: str) -> None:
        self._maybe_fail(document_id)
        self.files.append((path, document_id, dict(tags), index))

    def import_text(self, text: str, document_id: str, tags: Mapping[str, str], *, index: str) -> None:
        self._maybe_fail(document_id)
        self.texts.append((text, document_id, dict(tags), index))

    def search(self, query: str, *, index: str, limit: int, min_relevance: float) -> RetrievalResult:
        self.searches.append(
            {"query": query, "index": index, "limit": limit, "min_relevance": min_relevance}
        )
        return self.result


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_candidate(
    name: str,
    modified: datetime | None = None,
    *,
    folder: Path = Path("/docs"),
    size: int = 100,
) -> DocumentCandidate:
    path = folder / name
    return DocumentCandidate(
        path=path,
        name=name,
        extension=path.suffix.lower(),
        size_bytes=size,
        effective_modified_at=modified or utc(2024, 1, 1),
    )


def make_result(*documents: tuple) -> RetrievalResult:
    """Build a result from `(document_id, [(text, relevance), ...])` pairs."""
    return RetrievalResult(
        citations=[
            Citation(
                document_id=document_id,
                partitions=[Partition(text=text, relevance=score) for text, score in partitions],
            )
            for document_id, partitions in documents
        ]
    )


@pytest.fixture
def memory_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def fake_kb() -> FakeKnowledgeBase:
    return FakeKnowledgeBase()
