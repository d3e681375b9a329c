"""Core SecondBrain data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

Role = Literal["user", "assistant"]


@dataclass(slots=True, frozen=True)
class DocumentCandidate:
    """A file found in the watched folder that may need importing."""

    path: Path
    name: str
    extension: str
    size_bytes: int
    effective_modified_at: datetime


@dataclass(slots=True)
class ImportOutcome:
    candidate: DocumentCandidate
    succeeded: bool
    duration_ms: float
    error: Optional[str] = None


@dataclass(slots=True)
class BatchSummary:
    """Aggregated result of one sync batch."""

    succeeded_count: int = 0
    failed_count: int = 0
    total_duration_ms: float = 0.0
    outcomes: List[ImportOutcome] = field(default_factory=list)
    planned: List[DocumentCandidate] = field(default_factory=list)
    cursor_advanced: bool = False

    def record(self, outcome: ImportOutcome) -> None:
        if outcome.succeeded:
            self.succeeded_count += 1
        else:
            self.failed_count += 1
        self.outcomes.append(outcome)


@dataclass(slots=True, frozen=True)
class ConversationTurn:
    role: Role
    content: str
    created_at: datetime


@dataclass(slots=True, frozen=True)
class Partition:
    """Chunk of a retrieved document with its relevance score."""

    text: str
    relevance: float


@dataclass(slots=True, frozen=True)
class Citation:
    document_id: str
    partitions: List[Partition]


@dataclass(slots=True)
class RetrievalResult:
    citations: List[Citation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.citations

    def document_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for citation in self.citations:
            seen.setdefault(citation.document_id, None)
        return list(seen)


@dataclass(slots=True)
class GenerationResponse:
    text: str
    elapsed_ms: float
    model: str
    token_count: Optional[int] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def tokens_per_second(self) -> Optional[float]:
        if not self.token_count or self.elapsed_ms <= 0:
            return None
        return self.token_count / (self.elapsed_ms / 1000.0)


@dataclass(slots=True)
class ChunkRecord:
    """Chunk of document text paired with metadata."""

    document_id: str
    index: int
    text: str
    metadata: Dict[str, Any]
