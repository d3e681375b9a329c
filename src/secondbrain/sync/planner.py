"""Selection of the documents a sync run has to import."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Sequence

from secondbrain.models import DocumentCandidate
from secondbrain.sync.cursor import to_utc


@dataclass(slots=True)
class SyncPlan:
    items: List[DocumentCandidate] = field(default_factory=list)
    cursor: datetime | None = None
    force: bool = False
    dry_run: bool = False
    scanned: int = 0

    def __len__(self) -> int:
        return len(self.items)

    @property
    def total_bytes(self) -> int:
        return sum(item.size_bytes for item in self.items)


def is_pending(candidate: DocumentCandidate, cursor: datetime) -> bool:
    """A file changed at exactly the cursor instant is still pending."""
    return to_utc(candidate.effective_modified_at) >= to_utc(cursor)


def plan_sync(
    candidates: Sequence[DocumentCandidate],
    cursor: datetime,
    *,
    force: bool = False,
    dry_run: bool = False,
) -> SyncPlan:
    """Pick the candidates to import, preserving scan order. Performs no I/O.

    With `force` every candidate is selected and the cursor is kept only for
    display.
    """
    if force:
        items = list(candidates)
    else:
        items = [candidate for candidate in candidates if is_pending(candidate, cursor)]
    return SyncPlan(
        items=items, cursor=cursor, force=force, dry_run=dry_run, scanned=len(candidates)
    )
