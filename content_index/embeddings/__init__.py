"""Embedding client module."""

from content_index.embeddings.models import EmbeddingResult
from content_index.embeddings.service import EmbeddingService, HTTPEmbeddingService

__all__ = [
    "EmbeddingResult",
    "EmbeddingService",
    "HTTPEmbeddingService",
]
