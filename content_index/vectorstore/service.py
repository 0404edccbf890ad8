"""Vector record store interface and Qdrant implementation."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import NAMESPACE_URL, uuid5

import httpx
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from content_index.config import QdrantSettings, get_settings
from content_index.exceptions import (
    ErrorCode,
    InvalidInputError,
    VectorStoreError,
    VectorStoreQueryError,
    VectorStoreWriteError,
)
from content_index.logging_config import get_logger
from content_index.observability.metrics import (
    track_stale_write,
    track_vectorstore_operation,
)
from content_index.vectorstore.models import (
    ENTITY_TYPE_FILTER_KEY,
    IndexedEntity,
    ScoredRecord,
    rank,
)

logger = get_logger(__name__)

# Page size when collecting points tied at the top_k cut-off.
TIE_PAGE_SIZE = 100


def validate_top_k(top_k: int) -> None:
    """Reject non-positive result counts."""
    if top_k <= 0:
        raise InvalidInputError(
            f"top_k must be positive, got {top_k}",
            details={"top_k": top_k},
        )


def clamp_score(similarity: float) -> float:
    """Map cosine similarity onto [0, 1]; opposite directions score 0."""
    return min(1.0, max(0.0, similarity))


def _raw_score(point: Any) -> float:
    return point.score if point.score is not None else 0.0


def _failure_code(error: Exception, default: ErrorCode) -> ErrorCode:
    """Map connection-level failures to ``VECTOR_STORE_UNAVAILABLE``."""
    if isinstance(error, (ResponseHandlingException, httpx.TransportError, ConnectionError)):
        return ErrorCode.VECTOR_STORE_UNAVAILABLE
    return default


class VectorRecordStore(ABC):
    """Abstract base class for vector record stores.

    One record per composite key. Every method is atomic with respect to
    itself; there are no multi-call transactions.
    """

    backend_name = "abstract"

    @abstractmethod
    async def upsert(self, record: IndexedEntity) -> bool:
        """Insert or fully replace the record at its composite key.

        Writes carrying a lower version than the stored record are ignored.

        Args:
            record: Record to store.

        Returns:
            True if the record was written, False if it was stale.

        Raises:
            VectorStoreWriteError: If the write fails or the vector
                dimension does not match the stored records.
        """
        ...

    @abstractmethod
    async def delete(self, composite_key: str) -> bool:
        """Delete the record at a composite key.

        Args:
            composite_key: Record identity.

        Returns:
            True if a record was removed, False if none existed.

        Raises:
            VectorStoreWriteError: If deletion fails.
        """
        ...

    @abstractmethod
    async def delete_by_entity(self, entity_id: str) -> int:
        """Delete every record for an entity id, whatever its type.

        Returns:
            Number of records removed.

        Raises:
            VectorStoreWriteError: If deletion fails.
        """
        ...

    @abstractmethod
    async def get(self, composite_key: str) -> IndexedEntity | None:
        """Fetch a record by composite key, or None."""
        ...

    @abstractmethod
    async def count(self, filters: dict[str, Any] | None = None) -> int:
        """Count records matching the filters."""
        ...

    @abstractmethod
    async def nearest_neighbors(
        self,
        vector: list[float],
        filters: dict[str, Any] | None,
        top_k: int,
    ) -> list[ScoredRecord]:
        """Find the records most similar to a vector.

        Filters are an exact-match conjunction applied before ranking.
        Results are ordered by descending score; equal scores put the most
        recently indexed record first.

        Args:
            vector: Query vector.
            filters: Metadata constraints, e.g. {"organizationId": "org-1"}.
            top_k: Maximum results; must be positive.

        Returns:
            At most top_k scored records.

        Raises:
            InvalidInputError: If top_k is not positive.
            VectorStoreQueryError: If the query fails.
        """
        ...

    async def ping(self) -> bool:
        """Check that the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None

    def _track(self, operation: str, start: float, success: bool) -> None:
        track_vectorstore_operation(
            backend=self.backend_name,
            operation=operation,
            duration=time.perf_counter() - start,
            success=success,
        )


class _KeyLock:
    """Lock for one composite key plus the number of tasks using it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


def point_id(composite_key: str) -> str:
    """Deterministic Qdrant point id for a composite key."""
    return str(uuid5(NAMESPACE_URL, f"content-index:{composite_key}"))


class QdrantVectorRecordStore(VectorRecordStore):
    """Qdrant-backed record store.

    All records live in one cosine-distance collection created on the first
    write. The version check and upsert for a key run under a per-key lock,
    so compare-and-set holds for writers sharing this process.
    """

    backend_name = "qdrant"

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant record store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._collection = self._settings.collection_name
        self._dimensions: int | None = None
        self._collection_lock = asyncio.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            if self._settings.location:
                self._client = AsyncQdrantClient(location=self._settings.location)
            else:
                api_key = None
                if self._settings.api_key:
                    api_key = self._settings.api_key.get_secret_value()
                self._client = AsyncQdrantClient(
                    url=self._settings.url,
                    api_key=api_key,
                )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def ping(self) -> bool:
        """Check that Qdrant answers."""
        client = await self._get_client()
        try:
            await client.get_collections()
        except Exception as e:
            logger.warning(f"Qdrant ping failed: {e}")
            return False
        return True

    async def _load_dimensions(self, client: AsyncQdrantClient) -> int | None:
        """Read the collection vector size, or None if it does not exist."""
        if self._dimensions is not None:
            return self._dimensions
        if not await client.collection_exists(self._collection):
            return None
        info = await client.get_collection(self._collection)
        self._dimensions = info.config.params.vectors.size  # type: ignore[union-attr]
        return self._dimensions

    async def _ensure_collection(
        self,
        client: AsyncQdrantClient,
        dimensions: int,
    ) -> None:
        """Create the collection for this dimension, or verify it matches."""
        async with self._collection_lock:
            existing = await self._load_dimensions(client)
            if existing is None:
                await client.create_collection(
                    collection_name=self._collection,
                    vectors_config=VectorParams(
                        size=dimensions,
                        distance=Distance.COSINE,
                    ),
                )
                self._dimensions = dimensions
                logger.info(
                    f"Created collection: {self._collection}",
                    extra={"dimensions": dimensions},
                )
                return

        if existing != dimensions:
            raise VectorStoreWriteError(
                f"Vector has {dimensions} dimensions, collection expects {existing}",
                code=ErrorCode.VECTOR_DIMENSION_MISMATCH,
                details={
                    "collection": self._collection,
                    "expected": existing,
                    "received": dimensions,
                },
            )

    @asynccontextmanager
    async def _lock_for(self, composite_key: str) -> AsyncIterator[None]:
        """Hold the key's lock; the entry is dropped once no task holds or awaits it."""
        entry = self._key_locks.get(composite_key)
        if entry is None:
            entry = self._key_locks[composite_key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._key_locks[composite_key]

    @staticmethod
    def _to_payload(record: IndexedEntity) -> dict[str, Any]:
        return {
            "composite_key": record.composite_key,
            "entity_type": record.entity_type.value,
            "entity_id": record.entity_id,
            "display_content": record.display_content,
            "metadata": record.metadata,
            "indexed_at": record.indexed_at.isoformat(),
            "version": record.version,
        }

    @staticmethod
    def _from_point(point: Any) -> IndexedEntity:
        payload = dict(point.payload or {})
        vector = point.vector if isinstance(point.vector, list) else [0.0]
        return IndexedEntity(
            entity_type=payload["entity_type"],
            entity_id=payload["entity_id"],
            embedding=vector or [0.0],
            display_content=payload.get("display_content", ""),
            metadata=payload.get("metadata") or {},
            indexed_at=payload["indexed_at"],
            version=payload.get("version", 0),
        )

    @staticmethod
    def _build_filter(filters: dict[str, Any] | None) -> Filter | None:
        if not filters:
            return None
        conditions = []
        for key, value in filters.items():
            if key == ENTITY_TYPE_FILTER_KEY:
                field = "entity_type"
                value = getattr(value, "value", value)
            else:
                field = f"metadata.{key}"
            conditions.append(FieldCondition(key=field, match=MatchValue(value=value)))
        return Filter(must=conditions)  # type: ignore[arg-type]

    async def upsert(self, record: IndexedEntity) -> bool:
        """Compare-and-set upsert of one record."""
        client = await self._get_client()
        key = record.composite_key
        pid = point_id(key)
        start = time.perf_counter()

        try:
            await self._ensure_collection(client, record.dimensions)

            async with self._lock_for(key):
                existing = await client.retrieve(
                    collection_name=self._collection,
                    ids=[pid],
                    with_payload=["version"],
                    with_vectors=False,
                )
                if existing:
                    stored_version = (existing[0].payload or {}).get("version", 0)
                    if stored_version > record.version:
                        track_stale_write(self.backend_name)
                        logger.info(
                            "Ignoring stale upsert",
                            extra={
                                "composite_key": key,
                                "stored_version": stored_version,
                                "version": record.version,
                            },
                        )
                        self._track("upsert", start, success=True)
                        return False

                await client.upsert(
                    collection_name=self._collection,
                    points=[
                        PointStruct(
                            id=pid,
                            vector=record.embedding,
                            payload=self._to_payload(record),
                        )
                    ],
                    wait=True,
                )

        except VectorStoreError:
            self._track("upsert", start, success=False)
            raise
        except Exception as e:
            self._track("upsert", start, success=False)
            raise VectorStoreWriteError(
                f"Failed to upsert record: {e}",
                code=_failure_code(e, ErrorCode.VECTOR_STORE_WRITE_ERROR),
                details={"collection": self._collection, "composite_key": key},
            ) from e

        self._track("upsert", start, success=True)
        logger.debug("Upserted record", extra={"composite_key": key})
        return True

    async def delete(self, composite_key: str) -> bool:
        """Delete one point by composite key; missing keys are a no-op."""
        client = await self._get_client()
        pid = point_id(composite_key)
        start = time.perf_counter()

        try:
            if await self._load_dimensions(client) is None:
                self._track("delete", start, success=True)
                return False

            async with self._lock_for(composite_key):
                existing = await client.retrieve(
                    collection_name=self._collection,
                    ids=[pid],
                    with_payload=False,
                    with_vectors=False,
                )
                if not existing:
                    self._track("delete", start, success=True)
                    return False

                await client.delete(
                    collection_name=self._collection,
                    points_selector=PointIdsList(points=[pid]),
                    wait=True,
                )
        except Exception as e:
            self._track("delete", start, success=False)
            raise VectorStoreWriteError(
                f"Failed to delete record: {e}",
                code=_failure_code(e, ErrorCode.VECTOR_STORE_WRITE_ERROR),
                details={"collection": self._collection, "composite_key": composite_key},
            ) from e

        self._track("delete", start, success=True)
        logger.debug("Deleted record", extra={"composite_key": composite_key})
        return True

    async def delete_by_entity(self, entity_id: str) -> int:
        """Delete points of any entity type carrying this entity id."""
        client = await self._get_client()
        start = time.perf_counter()
        entity_filter = Filter(
            must=[FieldCondition(key="entity_id", match=MatchValue(value=entity_id))]
        )

        try:
            if await self._load_dimensions(client) is None:
                self._track("delete_by_entity", start, success=True)
                return 0

            result = await client.count(
                collection_name=self._collection,
                count_filter=entity_filter,
                exact=True,
            )
            if result.count:
                await client.delete(
                    collection_name=self._collection,
                    points_selector=FilterSelector(filter=entity_filter),
                    wait=True,
                )
        except Exception as e:
            self._track("delete_by_entity", start, success=False)
            raise VectorStoreWriteError(
                f"Failed to delete records for entity: {e}",
                code=_failure_code(e, ErrorCode.VECTOR_STORE_WRITE_ERROR),
                details={"collection": self._collection, "entity_id": entity_id},
            ) from e

        self._track("delete_by_entity", start, success=True)
        logger.debug(
            f"Deleted {result.count} records",
            extra={"entity_id": entity_id},
        )
        return result.count

    async def get(self, composite_key: str) -> IndexedEntity | None:
        """Fetch one record with its vector."""
        client = await self._get_client()
        try:
            if await self._load_dimensions(client) is None:
                return None
            points = await client.retrieve(
                collection_name=self._collection,
                ids=[point_id(composite_key)],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise VectorStoreQueryError(
                f"Failed to fetch record: {e}",
                code=_failure_code(e, ErrorCode.VECTOR_STORE_QUERY_ERROR),
                details={"collection": self._collection, "composite_key": composite_key},
            ) from e
        return self._from_point(points[0]) if points else None

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        """Exact count of matching points."""
        client = await self._get_client()
        try:
            if await self._load_dimensions(client) is None:
                return 0
            result = await client.count(
                collection_name=self._collection,
                count_filter=self._build_filter(filters),
                exact=True,
            )
        except Exception as e:
            raise VectorStoreQueryError(
                f"Failed to count records: {e}",
                code=_failure_code(e, ErrorCode.VECTOR_STORE_QUERY_ERROR),
                details={"collection": self._collection},
            ) from e
        return result.count

    async def _boundary_ties(
        self,
        client: AsyncQdrantClient,
        vector: list[float],
        query_filter: Filter | None,
        boundary: float,
        offset: int,
    ) -> list[Any]:
        """Page through the points after ``offset`` that still score ``boundary``.

        Results are sorted by score, so anything past the cut-off that meets
        the threshold is tied with the k-th point.
        """
        ties: list[Any] = []
        while True:
            response = await client.query_points(
                collection_name=self._collection,
                query=vector,
                query_filter=query_filter,
                score_threshold=boundary,
                limit=TIE_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=True,
            )
            ties.extend(response.points)
            if len(response.points) < TIE_PAGE_SIZE:
                return ties
            offset += TIE_PAGE_SIZE

    async def nearest_neighbors(
        self,
        vector: list[float],
        filters: dict[str, Any] | None,
        top_k: int,
    ) -> list[ScoredRecord]:
        """Filtered cosine search, re-ranked for the recency tie-break."""
        validate_top_k(top_k)
        client = await self._get_client()
        start = time.perf_counter()

        try:
            dimensions = await self._load_dimensions(client)
            if dimensions is None:
                self._track("query", start, success=True)
                return []
            if len(vector) != dimensions:
                raise VectorStoreQueryError(
                    f"Query vector has {len(vector)} dimensions, "
                    f"collection expects {dimensions}",
                    code=ErrorCode.VECTOR_DIMENSION_MISMATCH,
                    details={"expected": dimensions, "received": len(vector)},
                )

            query_filter = self._build_filter(filters)
            # One point past the cut-off shows whether the k-th score is tied.
            response = await client.query_points(
                collection_name=self._collection,
                query=vector,
                limit=top_k + 1,
                query_filter=query_filter,
                with_payload=True,
                with_vectors=True,
            )
            points = list(response.points)
            if len(points) > top_k:
                boundary = _raw_score(points[top_k - 1])
                if _raw_score(points[top_k]) >= boundary:
                    points.extend(
                        await self._boundary_ties(
                            client, vector, query_filter, boundary, offset=top_k + 1
                        )
                    )
            candidates = [
                ScoredRecord(
                    record=self._from_point(point),
                    score=clamp_score(_raw_score(point)),
                )
                for point in points
            ]
        except VectorStoreError:
            self._track("query", start, success=False)
            raise
        except Exception as e:
            self._track("query", start, success=False)
            raise VectorStoreQueryError(
                f"Failed to search: {e}",
                code=_failure_code(e, ErrorCode.VECTOR_STORE_QUERY_ERROR),
                details={"collection": self._collection, "error": str(e)},
            ) from e

        self._track("query", start, success=True)
        return rank(candidates, top_k)
