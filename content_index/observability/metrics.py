"""Prometheus metrics for the content index.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Embedding request latency
- Vector store operation latency
- Indexing operations and isolated hook failures
- Retrieval metrics (results, scores)
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_BATCH_SIZE = Histogram(
    "embedding_batch_size",
    "Embedding batch size",
    ["model"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500],
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["backend", "operation", "status"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

VECTORSTORE_STALE_WRITES = Counter(
    "vectorstore_stale_writes_total",
    "Upserts ignored because a newer version was already stored",
    ["backend"],
)

# Indexing Metrics
INDEX_OPERATIONS_TOTAL = Counter(
    "index_operations_total",
    "Index manager operations",
    ["operation", "entity_type", "status"],
)

INDEX_HOOK_FAILURES_TOTAL = Counter(
    "index_hook_failures_total",
    "Indexing failures isolated from the content write",
    ["hook", "entity_type"],
)

# Retrieval Metrics
RETRIEVAL_RESULTS_RETURNED = Histogram(
    "retrieval_results_returned",
    "Number of results returned per search",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)

RETRIEVAL_TOP_SCORE = Histogram(
    "retrieval_top_score",
    "Top similarity score per search",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

RETRIEVAL_FALLBACKS_TOTAL = Counter(
    "retrieval_fallbacks_total",
    "Searches that degraded to an empty context",
    ["error_code"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality.

        Entity ids in ``/api/v1/index/...`` paths collapse to the route root.
        """
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/api/v1/"):
            parts = path.split("/")
            if len(parts) >= 4:
                return f"/api/v1/{parts[3]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_embedding_request(
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        batch_size: Number of texts in the batch.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()
    EMBEDDING_BATCH_SIZE.labels(model=model).observe(batch_size)


def track_vectorstore_operation(
    backend: str,
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a single vector store call."""
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(
        backend=backend, operation=operation, status=status
    ).observe(duration)


def track_stale_write(backend: str) -> None:
    """Count an upsert rejected by the version check."""
    VECTORSTORE_STALE_WRITES.labels(backend=backend).inc()


def track_index_operation(
    operation: str,
    entity_type: str,
    success: bool = True,
) -> None:
    """Track an index manager operation.

    Args:
        operation: One of index, update, delete, index_many.
        entity_type: Entity type label, or "any" for untyped deletes.
        success: Whether the operation completed.
    """
    status = "success" if success else "error"
    INDEX_OPERATIONS_TOTAL.labels(
        operation=operation, entity_type=entity_type, status=status
    ).inc()


def track_hook_failure(hook: str, entity_type: str) -> None:
    """Count an indexing failure swallowed by a content-mutation hook."""
    INDEX_HOOK_FAILURES_TOTAL.labels(hook=hook, entity_type=entity_type).inc()


def track_retrieval_request(
    results_returned: int,
    top_score: float,
) -> None:
    """Track retrieval request metrics.

    Args:
        results_returned: Number of results returned.
        top_score: Highest similarity score.
    """
    RETRIEVAL_RESULTS_RETURNED.observe(results_returned)
    if top_score > 0:
        RETRIEVAL_TOP_SCORE.observe(top_score)


def track_retrieval_fallback(error_code: str) -> None:
    """Count a search that degraded to an empty result."""
    RETRIEVAL_FALLBACKS_TOTAL.labels(error_code=error_code).inc()
