"""Observability module for metrics and monitoring."""

from content_index.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
    track_embedding_request,
    track_hook_failure,
    track_index_operation,
    track_retrieval_fallback,
    track_retrieval_request,
    track_stale_write,
    track_vectorstore_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "get_metrics_content_type",
    "track_embedding_request",
    "track_hook_failure",
    "track_index_operation",
    "track_retrieval_fallback",
    "track_retrieval_request",
    "track_stale_write",
    "track_vectorstore_operation",
]
