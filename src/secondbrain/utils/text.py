"""Text helpers including simple character chunking."""

from __future__ import annotations

from typing import Iterable, Iterator


def chunk_text(text: str, *, max_chars: int = 1200, overlap: int = 200) -> Iterator[str]:
    """Split text into overlapping character chunks.

    This coarse chunker keeps things simple while preserving context overlap.
    """
    if not text:
        return iter(())
    return _iter_chunks(text, max_chars=max_chars, overlap=overlap)


def _iter_chunks(text: str, *, max_chars: int, overlap: int) -> Iterator[str]:
    step = max(max_chars - overlap, 1)
    for start in range(0, len(text), step):
        chunk = text[start : start + max_chars]
        if chunk.strip():
            yield chunk
        if start + max_chars >= len(text):
            break


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Strip each line and drop blank ones."""
    return "\n".join(line.strip() for line in lines if line.strip())


def preview(text: str, width: int) -> str:
    """Single-line preview truncated to `width` characters with an ellipsis."""
    flat = " ".join(text.split())
    return flat if len(flat) <= width else flat[:width] + "..."
