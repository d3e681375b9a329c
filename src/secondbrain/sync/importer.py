"""Import of a single document into the knowledge base."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict

from secondbrain.errors import DocumentImportError, KnowledgeBaseError
from secondbrain.kb.base import KnowledgeBase
from secondbrain.models import DocumentCandidate, ImportOutcome
from secondbrain.sync.cursor import format_timestamp
from secondbrain.utils.files import (
    STRUCTURED_EXTENSIONS,
    TEXT_EXTENSIONS,
    format_size,
    sanitize_document_id,
)

LOGGER = logging.getLogger(__name__)

# Failures that belong to one document; anything else is unexpected and re-raised.
EXPECTED_ERRORS = (OSError, UnicodeDecodeError, KnowledgeBaseError, DocumentImportError)


def build_tags(candidate: DocumentCandidate, imported_at: datetime) -> Dict[str, str]:
    return {
        "filename": candidate.name,
        "filepath": str(candidate.path),
        "extension": candidate.extension,
        "imported": format_timestamp(imported_at),
    }


class DocumentImporter:
    """Hands one candidate to the knowledge base and reports the outcome."""

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        *,
        index: str,
        clock: Callable[[], datetime] | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.knowledge_base = knowledge_base
        self.index = index
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.timer = timer

    def import_document(self, candidate: DocumentCandidate) -> ImportOutcome:
        """Import `candidate`, converting per-document failures into a failed outcome.

        Unexpected exceptions are logged and re-raised so the caller decides
        what to do with the rest of the batch.
        """
        started = self.timer()
        document_id = sanitize_document_id(candidate.path.stem)
        tags = build_tags(candidate, self.clock())
        LOGGER.info(
            "Starting import: %s (%s, %s) as %s",
            candidate.name,
            format_size(candidate.size_bytes),
            candidate.extension.upper().lstrip(".") or "?",
            document_id,
        )

        try:
            if candidate.extension in STRUCTURED_EXTENSIONS:
                self.knowledge_base.import_file(
                    candidate.path, document_id, tags, index=self.index
                )
            elif candidate.extension in TEXT_EXTENSIONS:
                content = candidate.path.read_text(encoding="utf-8")
                LOGGER.debug("Read %d characters from %s", len(content), candidate.name)
                self.knowledge_base.import_text(content, document_id, tags, index=self.index)
            else:
                raise DocumentImportError(
                    f"Unsupported document type: {candidate.extension or '(none)'}"
                )
        except EXPECTED_ERRORS as exc:
            duration_ms = (self.timer() - started) * 1000
            LOGGER.error(
                "Error importing %s after %.1fs: %s", candidate.path, duration_ms / 1000, exc
            )
            return ImportOutcome(
                candidate=candidate, succeeded=False, duration_ms=duration_ms, error=str(exc)
            )
        except Exception:
            LOGGER.exception("Unexpected error importing %s", candidate.path)
            raise

        duration_ms = (self.timer() - started) * 1000
        LOGGER.info("Imported %s in %.1fs", candidate.name, duration_ms / 1000)
        return ImportOutcome(candidate=candidate, succeeded=True, duration_ms=duration_ms)
