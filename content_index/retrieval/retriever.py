"""Scoped semantic search over the content index."""

from content_index.embeddings.service import EmbeddingService, ensure_text
from content_index.exceptions import ContentIndexError, InvalidInputError, RetrievalError
from content_index.logging_config import get_logger
from content_index.observability.metrics import (
    track_retrieval_fallback,
    track_retrieval_request,
)
from content_index.retrieval.models import SearchResult, SearchScope
from content_index.vectorstore.service import VectorRecordStore, validate_top_k

logger = get_logger(__name__)

DEFAULT_TOP_K = 5


class RetrievalService:
    """Embeds a query and returns the nearest records within a scope.

    This is the only read path of the index.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorRecordStore,
        score_threshold: float = 0.0,
    ) -> None:
        """Initialize the retrieval service.

        Args:
            embedding_service: Service for generating embeddings.
            vector_store: Record store to query.
            score_threshold: Minimum score to include in results.
        """
        self._embedding_service = embedding_service
        self._vector_store = vector_store
        self._score_threshold = score_threshold

    async def search(
        self,
        query_text: str,
        scope: SearchScope,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[SearchResult]:
        """Find the indexed content most similar to a query.

        Args:
            query_text: Natural-language query.
            scope: Tenant scope, optionally narrowed by course or type.
            top_k: Maximum number of results.

        Returns:
            Results ordered by descending score; empty if nothing in scope.

        Raises:
            InvalidInputError: If the query is empty or top_k is not positive.
            EmbeddingProviderError: If embedding the query fails.
            VectorStoreQueryError: If the store query fails.
        """
        ensure_text(query_text, field="query")
        validate_top_k(top_k)

        try:
            embedding_result = await self._embedding_service.embed(query_text)
            neighbors = await self._vector_store.nearest_neighbors(
                vector=embedding_result.embedding,
                filters=scope.to_filters(),
                top_k=top_k,
            )
        except ContentIndexError:
            raise
        except Exception as e:
            logger.error(f"Retrieval failed: {e}")
            raise RetrievalError(
                f"Failed to search content index: {e}",
                details={"query": query_text[:100], "error": str(e)},
            ) from e

        results = [
            SearchResult(
                entity_id=n.record.entity_id,
                entity_type=n.record.entity_type,
                score=n.score,
                display_content=n.record.display_content,
                metadata=n.record.metadata,
            )
            for n in neighbors
            if n.score >= self._score_threshold
        ]

        track_retrieval_request(
            results_returned=len(results),
            top_score=results[0].score if results else 0.0,
        )
        logger.debug(
            f"Retrieved {len(results)} results for query",
            extra={
                "query_length": len(query_text),
                "top_k": top_k,
                "organization_id": scope.organization_id,
                "results_count": len(results),
            },
        )

        return results

    async def search_context(
        self,
        query_text: str,
        scope: SearchScope,
        top_k: int = DEFAULT_TOP_K,
    ) -> list[SearchResult]:
        """Search for grounding context, degrading to no context on failure.

        For generation features that can proceed ungrounded. Invalid input
        and cancellation still propagate.
        """
        try:
            return await self.search(query_text, scope, top_k)
        except InvalidInputError:
            raise
        except ContentIndexError as e:
            track_retrieval_fallback(e.code.value)
            logger.warning(
                f"Grounding search failed, continuing without context: {e.message}",
                extra={
                    "error_code": e.code.value,
                    "organization_id": scope.organization_id,
                },
            )
            return []
