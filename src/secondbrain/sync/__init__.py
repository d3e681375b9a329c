"""Incremental folder synchronisation into the knowledge base."""
