"""Process-wide wiring of the content index services.

Built once at startup and handed to whoever needs it; nothing below
reaches for a module-level client.
"""

from dataclasses import dataclass

from content_index.config import Settings, get_settings
from content_index.embeddings.service import EmbeddingService, HTTPEmbeddingService
from content_index.indexing.hooks import ContentIndexHooks
from content_index.indexing.manager import IndexManager
from content_index.logging_config import get_logger
from content_index.retrieval.retriever import RetrievalService
from content_index.vectorstore.factory import create_vector_store
from content_index.vectorstore.service import VectorRecordStore

logger = get_logger(__name__)


@dataclass
class ContentIndexServices:
    """The index's collaborators, sharing one embedding client and store."""

    embedding_service: EmbeddingService
    vector_store: VectorRecordStore
    index_manager: IndexManager
    retrieval: RetrievalService
    hooks: ContentIndexHooks

    @classmethod
    def create(
        cls,
        embedding_service: EmbeddingService,
        vector_store: VectorRecordStore,
        settings: Settings | None = None,
    ) -> "ContentIndexServices":
        """Wire services around an embedding client and a record store."""
        settings = settings or get_settings()
        index_manager = IndexManager(
            embedding_service=embedding_service,
            vector_store=vector_store,
            display_content_max_length=settings.index.display_content_max_length,
        )
        return cls(
            embedding_service=embedding_service,
            vector_store=vector_store,
            index_manager=index_manager,
            retrieval=RetrievalService(embedding_service, vector_store),
            hooks=ContentIndexHooks(index_manager),
        )

    async def close(self) -> None:
        """Close the embedding client and the store."""
        await self.embedding_service.close()
        await self.vector_store.close()


def build_services(settings: Settings | None = None) -> ContentIndexServices:
    """Build services from configuration."""
    settings = settings or get_settings()
    services = ContentIndexServices.create(
        embedding_service=HTTPEmbeddingService(settings=settings.embedding),
        vector_store=create_vector_store(settings),
        settings=settings,
    )
    logger.info(
        "Content index services ready",
        extra={
            "embedding_model": settings.embedding.model,
            "vector_store_backend": settings.vector_store_backend.value,
        },
    )
    return services
