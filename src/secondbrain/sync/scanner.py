"""Discovery of candidate documents in the watched folder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from secondbrain.errors import NotFoundError
from secondbrain.models import DocumentCandidate
from secondbrain.utils.files import effective_modified_at, iter_document_paths

LOGGER = logging.getLogger(__name__)


def build_candidate(path: Path) -> DocumentCandidate:
    return DocumentCandidate(
        path=path,
        name=path.name,
        extension=path.suffix.lower(),
        size_bytes=path.stat().st_size,
        effective_modified_at=effective_modified_at(path),
    )


def scan_folder(folder: Path) -> List[DocumentCandidate]:
    """List supported documents directly inside `folder` (non-recursive)."""
    folder = Path(folder).expanduser()
    if not folder.is_dir():
        raise NotFoundError(f"Folder not found: {folder}")

    LOGGER.info("Scanning folder for documents: %s", folder)
    candidates = [build_candidate(path) for path in iter_document_paths(folder)]
    LOGGER.debug("Found %d supported document(s) in %s", len(candidates), folder)
    return candidates
