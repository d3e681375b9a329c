"""Drives scan, plan and import over one sync batch."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from secondbrain.models import BatchSummary, DocumentCandidate, ImportOutcome
from secondbrain.sync.cursor import SyncCursor, format_timestamp
from secondbrain.sync.importer import DocumentImporter
from secondbrain.sync.planner import SyncPlan, plan_sync
from secondbrain.sync.scanner import scan_folder

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """Keeps the knowledge base in step with a document folder."""

    def __init__(
        self,
        importer: DocumentImporter,
        cursor: SyncCursor,
        *,
        clock: Callable[[], datetime] = _utc_now,
        import_workers: int = 1,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.importer = importer
        self.cursor = cursor
        self.clock = clock
        self.import_workers = max(1, import_workers)
        self.timer = timer

    def run(
        self,
        folder: Path,
        *,
        force: bool = False,
        since: Optional[datetime] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchSummary:
        """Import every pending document in `folder`.

        The watermark is captured once, before scanning, and written only when a
        non-forced batch imported at least one document. Per-document failures
        are recorded in the summary and never stop the batch.
        """
        batch_started_at = self.clock()
        candidates = scan_folder(folder)
        if not candidates:
            LOGGER.info("No documents found in %s", folder)
            return BatchSummary()

        cursor = since if since is not None else self.cursor.get()
        plan = plan_sync(candidates, cursor, force=force)
        if force:
            LOGGER.info("Force mode: all %d document(s) selected", len(plan))
        else:
            LOGGER.info(
                "Filtered %d file(s) modified since %s from %d total file(s)",
                len(plan),
                format_timestamp(cursor),
                plan.scanned,
            )

        summary = BatchSummary(planned=list(plan.items))
        if not plan.items:
            return summary

        started = self.timer()
        if self.import_workers > 1 and len(plan) > 1:
            self._import_parallel(plan, summary, on_progress)
        else:
            self._import_sequential(plan, summary, on_progress)
        summary.total_duration_ms = (self.timer() - started) * 1000

        LOGGER.info(
            "Import summary: %d succeeded, %d failed, total time: %.1fs",
            summary.succeeded_count,
            summary.failed_count,
            summary.total_duration_ms / 1000,
        )

        if not force and summary.succeeded_count > 0:
            summary.cursor_advanced = self.cursor.set(batch_started_at)
        return summary

    def _import_one(self, candidate: DocumentCandidate) -> ImportOutcome:
        started = self.timer()
        try:
            return self.importer.import_document(candidate)
        except Exception as exc:
            return ImportOutcome(
                candidate=candidate,
                succeeded=False,
                duration_ms=(self.timer() - started) * 1000,
                error=f"{type(exc).__name__}: {exc}",
            )

    def _import_sequential(
        self, plan: SyncPlan, summary: BatchSummary, on_progress: Optional[ProgressCallback]
    ) -> None:
        total = len(plan)
        for index, candidate in enumerate(plan.items):
            if on_progress:
                on_progress(index, total, candidate.name)
            outcome = self._import_one(candidate)
            summary.record(outcome)
            if not outcome.succeeded:
                LOGGER.error(
                    "Failed to import document %d/%d: %s", index + 1, total, candidate.name
                )
            if on_progress:
                on_progress(index + 1, total, candidate.name)

    def _import_parallel(
        self, plan: SyncPlan, summary: BatchSummary, on_progress: Optional[ProgressCallback]
    ) -> None:
        total = len(plan)
        with ThreadPoolExecutor(max_workers=self.import_workers) as pool:
            futures: Dict[Future[ImportOutcome], DocumentCandidate] = {}
            for index, candidate in enumerate(plan.items):
                if on_progress:
                    on_progress(index, total, candidate.name)
                futures[pool.submit(self._import_one, candidate)] = candidate

            completed = 0
            for future in as_completed(futures):
                candidate = futures[future]
                outcome = future.result()
                summary.record(outcome)
                completed += 1
                if not outcome.succeeded:
                    LOGGER.error("Failed to import document: %s", candidate.name)
                if on_progress:
                    on_progress(completed, total, candidate.name)
