"""Local knowledge base: extraction, embeddings and SQLite vector storage."""
