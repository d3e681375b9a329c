"""Contract between SecondBrain and the knowledge base it feeds and searches."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Protocol

from secondbrain.models import RetrievalResult


class KnowledgeBase(Protocol):
    def import_file(
        self, path: Path, document_id: str, tags: Mapping[str, str], *, index: str
    ) -> None: ...

    def import_text(
        self, text: str, document_id: str, tags: Mapping[str, str], *, index: str
    ) -> None: ...

    def search(
        self, query: str, *, index: str, limit: int, min_relevance: float
    ) -> RetrievalResult: ...
