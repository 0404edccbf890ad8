"""Vector record store module."""

from content_index.vectorstore.factory import create_vector_store
from content_index.vectorstore.memory import InMemoryVectorRecordStore
from content_index.vectorstore.models import (
    EntityType,
    IndexedEntity,
    ScoredRecord,
    make_composite_key,
)
from content_index.vectorstore.service import QdrantVectorRecordStore, VectorRecordStore

__all__ = [
    "EntityType",
    "InMemoryVectorRecordStore",
    "IndexedEntity",
    "QdrantVectorRecordStore",
    "ScoredRecord",
    "VectorRecordStore",
    "create_vector_store",
    "make_composite_key",
]
