"""Index lifecycle module."""

from content_index.indexing.hooks import (
    ContentIndexHooks,
    lesson_metadata,
    resource_metadata,
)
from content_index.indexing.manager import IndexManager, IndexRequest

__all__ = [
    "ContentIndexHooks",
    "IndexManager",
    "IndexRequest",
    "lesson_metadata",
    "resource_metadata",
]
