"""Semantic search over legislative documents."""

__version__ = "0.1.0"
