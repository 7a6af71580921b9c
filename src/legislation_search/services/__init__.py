"""Retrieval core services."""
