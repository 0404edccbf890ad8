"""Vector record store selection."""

from content_index.config import Settings, VectorStoreBackend, get_settings
from content_index.exceptions import ConfigurationError
from content_index.logging_config import get_logger
from content_index.vectorstore.memory import InMemoryVectorRecordStore
from content_index.vectorstore.service import QdrantVectorRecordStore, VectorRecordStore

logger = get_logger(__name__)


def create_vector_store(settings: Settings | None = None) -> VectorRecordStore:
    """Build the record store named by ``VECTOR_STORE_BACKEND``."""
    settings = settings or get_settings()

    if settings.vector_store_backend == VectorStoreBackend.MEMORY:
        store: VectorRecordStore = InMemoryVectorRecordStore(
            dimensions=settings.embedding.dimensions,
        )
    else:
        if not settings.qdrant.location and not settings.qdrant.url.strip():
            raise ConfigurationError(
                "Qdrant backend needs QDRANT_URL or QDRANT_LOCATION",
                details={"backend": settings.vector_store_backend.value},
            )
        store = QdrantVectorRecordStore(settings=settings.qdrant)

    logger.info(
        "Vector record store configured",
        extra={"backend": settings.vector_store_backend.value},
    )
    return store
