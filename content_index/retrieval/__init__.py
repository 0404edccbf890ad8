"""Retrieval module."""

from content_index.retrieval.models import SearchResult, SearchScope
from content_index.retrieval.retriever import RetrievalService

__all__ = [
    "RetrievalService",
    "SearchResult",
    "SearchScope",
]
