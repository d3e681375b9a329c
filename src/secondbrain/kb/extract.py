"""Text extraction for structured document formats.

PDF text comes from PyMuPDF (fitz), Word documents from python-docx.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import fitz  # PyMuPDF
from docx import Document

from secondbrain.errors import KnowledgeBaseError
from secondbrain.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)


def iter_pdf_pages(path: Path) -> Iterator[str]:
    """Yield normalised text page by page."""
    try:
        doc = fitz.open(path)
    except Exception as exc:
        raise KnowledgeBaseError(f"Failed to open PDF {path}: {exc}") from exc

    try:
        for index in range(len(doc)):
            try:
                text = doc[index].get_text() or ""
            except Exception as exc:  # pragma: no cover - damaged page
                LOGGER.warning("Failed to read page %s in %s: %s", index, path, exc)
                continue
            normalized = normalize_whitespace(text.splitlines())
            if normalized:
                yield normalized
    finally:
        doc.close()


def extract_pdf_text(path: Path) -> str:
    return "\n\n".join(iter_pdf_pages(path))


def extract_docx_text(path: Path) -> str:
    """Paragraph text followed by table rows rendered as `a | b | c`."""
    try:
        doc = Document(str(path))
    except Exception as exc:
        raise KnowledgeBaseError(f"Failed to open Word document {path}: {exc}") from exc

    parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n\n".join(parts)


def extract_text(path: Path) -> str:
    """Extract the text of a structured document, failing when there is none."""
    suffix = path.suffix.lower()
    if suffix == ".pdf":
        text = extract_pdf_text(path)
    elif suffix == ".docx":
        text = extract_docx_text(path)
    else:
        raise KnowledgeBaseError(f"Unsupported document format: {suffix or path.name}")

    if not text.strip():
        raise KnowledgeBaseError(f"No text extracted from {path}")
    return text
