"""Retrieval-augmented question answering."""
