"""SQLite vector store for document chunks and their embeddings."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Mapping, Sequence

import numpy as np

from secondbrain.models import ChunkRecord


class SQLiteVectorStore:
    """Persistence layer for documents, chunks and chunk embeddings."""

    def __init__(self, db_path: Path, *, dimension: int) -> None:
        self.db_path = Path(db_path)
        self.dimension = dimension
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        # Imports may run on a worker pool; one writer at a time.
        self._lock = threading.RLock()
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    index_name TEXT NOT NULL,
                    document_id TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(index_name, document_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY,
                    document_id INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    metadata TEXT,
                    embedding BLOB NOT NULL,
                    FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                    ON chunks(document_id)
                """
            )

    def replace_document(
        self,
        index_name: str,
        document_id: str,
        tags: Mapping[str, str],
        chunks: Sequence[ChunkRecord],
        embeddings: np.ndarray,
    ) -> str:
        """Store a document, replacing any previous import with the same id.

        Returns 'inserted' or 'updated'.
        """
        if embeddings.shape[0] != len(chunks):
            raise ValueError("Embeddings and chunks length mismatch")

        with self.transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM documents WHERE index_name = ? AND document_id = ?",
                (index_name, document_id),
            ).fetchone()
            if existing:
                conn.execute("DELETE FROM chunks WHERE document_id = ?", (existing["id"],))
                conn.execute("DELETE FROM documents WHERE id = ?", (existing["id"],))

            row_id = conn.execute(
                "INSERT INTO documents(index_name, document_id, tags) VALUES (?, ?, ?)",
                (index_name, document_id, json.dumps(dict(tags), ensure_ascii=True)),
            ).lastrowid

            for chunk, vector in zip(chunks, embeddings):
                conn.execute(
                    """
                    INSERT INTO chunks(document_id, chunk_index, text, metadata, embedding)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        row_id,
                        chunk.index,
                        chunk.text,
                        json.dumps(chunk.metadata, ensure_ascii=True),
                        sqlite3.Binary(np.asarray(vector, dtype="float32").tobytes()),
                    ),
                )
        return "updated" if existing else "inserted"

    def search(self, embedding: np.ndarray, *, index_name: str, top_k: int = 10) -> List[dict]:
        """Return the `top_k` chunks of an index by dot-product score, best first."""
        query = np.asarray(embedding, dtype="float32")
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT
                    d.document_id AS document_id,
                    c.chunk_index AS chunk_index,
                    c.text AS text,
                    c.embedding AS embedding
                FROM chunks c
                JOIN documents d ON d.id = c.document_id
                WHERE d.index_name = ?
                """,
                (index_name,),
            ).fetchall()

        if not rows or top_k <= 0:
            return []

        embeddings = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in rows])
        scores = embeddings @ query

        if top_k < len(scores):
            top_indices = np.argpartition(scores, -top_k)[-top_k:]
            top_indices = top_indices[np.argsort(scores[top_indices])[::-1]]
        else:
            top_indices = np.argsort(scores)[::-1]

        return [
            {
                "document_id": rows[idx]["document_id"],
                "chunk_index": rows[idx]["chunk_index"],
                "text": rows[idx]["text"],
                "score": float(scores[idx]),
            }
            for idx in top_indices
        ]

    def count_chunks(self, index_name: str) -> int:
        row = self._conn.execute(
            """
            SELECT COUNT(*) AS n FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE d.index_name = ?
            """,
            (index_name,),
        ).fetchone()
        return int(row["n"])
