"""Index lifecycle orchestration."""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from content_index.embeddings.service import EmbeddingService, ensure_text
from content_index.exceptions import InvalidInputError
from content_index.logging_config import get_logger
from content_index.observability.metrics import track_index_operation
from content_index.vectorstore.models import (
    EntityType,
    IndexedEntity,
    make_composite_key,
    next_version,
)
from content_index.vectorstore.service import VectorRecordStore

logger = get_logger(__name__)

DEFAULT_DISPLAY_CONTENT_MAX_LENGTH = 1000


class IndexRequest(BaseModel):
    """One entity to index in a bulk call.

    Attributes:
        entity_type: Lesson or resource.
        entity_id: Source record identifier.
        content: Full text to embed.
        metadata: Scoping and descriptive metadata.
        version: Optional caller-supplied write token.
    """

    entity_type: EntityType = Field(description="Entity type")
    entity_id: str = Field(min_length=1, description="Source record identifier")
    content: str = Field(description="Text to embed")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Metadata")
    version: int | None = Field(default=None, ge=0, description="Write token")


class IndexManager:
    """Keeps the record store in line with the latest call for each entity.

    Errors are never swallowed here; callers that must not fail on indexing
    wrap these calls (see ContentIndexHooks).
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorRecordStore,
        display_content_max_length: int = DEFAULT_DISPLAY_CONTENT_MAX_LENGTH,
    ) -> None:
        """Initialize the index manager.

        Args:
            embedding_service: Service for generating embeddings.
            vector_store: Record store to write to.
            display_content_max_length: Characters kept for previews.
        """
        self._embedding_service = embedding_service
        self._vector_store = vector_store
        self._display_content_max_length = display_content_max_length

    async def index(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        version: int | None = None,
    ) -> IndexedEntity | None:
        """Embed content and store it as the entity's record.

        Nothing is written if embedding fails.

        Args:
            entity_type: Lesson or resource.
            entity_id: Source record identifier.
            content: Full text to embed.
            metadata: Scoping and descriptive metadata.
            version: Write token; defaults to the current time in nanoseconds.

        Returns:
            The stored record, or None if a newer version was already stored.

        Raises:
            InvalidInputError: If content or ids are empty.
            EmbeddingProviderError: If embedding fails.
            VectorStoreWriteError: If the write fails.
        """
        return await self._write("index", entity_type, entity_id, content, metadata, version)

    async def update(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        version: int | None = None,
    ) -> IndexedEntity | None:
        """Replace the entity's record with one built from new content.

        The new vector is computed before anything is written and lands in
        a single upsert, so the entity stays searchable throughout and keeps
        its previous record if embedding fails.
        """
        return await self._write("update", entity_type, entity_id, content, metadata, version)

    async def delete(
        self,
        entity_id: str,
        entity_type: EntityType | str | None = None,
    ) -> int:
        """Remove the entity's record(s).

        With an entity type only that composite key is removed; without
        one, records of every type with this id go. Missing records are
        not an error.

        Returns:
            Number of records removed.
        """
        _ensure_id(entity_id)
        if entity_type is not None:
            entity_type = _ensure_entity_type(entity_type)
        type_label = entity_type.value if entity_type is not None else "any"

        try:
            if entity_type is not None:
                key = make_composite_key(entity_type, entity_id)
                removed = int(await self._vector_store.delete(key))
            else:
                removed = await self._vector_store.delete_by_entity(entity_id)
        except Exception:
            track_index_operation("delete", type_label, success=False)
            raise

        track_index_operation("delete", type_label, success=True)
        logger.info(
            f"Deleted {entity_id} from index",
            extra={"entity_id": entity_id, "entity_type": type_label, "removed": removed},
        )
        return removed

    async def index_many(self, items: Sequence[IndexRequest]) -> list[IndexedEntity]:
        """Index several entities with batched embedding calls.

        Used to backfill a course or organization. Embedding happens before
        any write, so a provider failure leaves the store untouched.

        Returns:
            Records that were written (stale writes are skipped).
        """
        if not items:
            return []

        for item in items:
            ensure_text(item.content, field="content")
        versions = [
            item.version if item.version is not None else next_version() for item in items
        ]

        try:
            embeddings = await self._embedding_service.embed_batch(
                [item.content for item in items]
            )
            written: list[IndexedEntity] = []
            for item, embedding, version in zip(items, embeddings, versions, strict=True):
                record = self._build_record(
                    item.entity_type,
                    item.entity_id,
                    item.content,
                    embedding.embedding,
                    item.metadata,
                    version,
                )
                if await self._vector_store.upsert(record):
                    written.append(record)
        except Exception:
            track_index_operation("index_many", "any", success=False)
            raise

        track_index_operation("index_many", "any", success=True)
        logger.info(
            f"Indexed {len(written)} of {len(items)} entities",
            extra={"requested": len(items), "written": len(written)},
        )
        return written

    async def _write(
        self,
        operation: str,
        entity_type: EntityType | str,
        entity_id: str,
        content: str,
        metadata: dict[str, Any] | None,
        version: int | None,
    ) -> IndexedEntity | None:
        entity_type = _ensure_entity_type(entity_type)
        _ensure_id(entity_id)
        ensure_text(content, field="content")
        # Stamped before embedding so call order, not embedding latency, decides.
        if version is None:
            version = next_version()

        try:
            embedding = await self._embedding_service.embed(content)
            record = self._build_record(
                entity_type, entity_id, content, embedding.embedding, metadata, version
            )
            written = await self._vector_store.upsert(record)
        except Exception:
            track_index_operation(operation, entity_type.value, success=False)
            logger.warning(
                f"Failed to {operation} {entity_type.value} {entity_id}",
                extra={"entity_id": entity_id, "entity_type": entity_type.value},
            )
            raise

        track_index_operation(operation, entity_type.value, success=True)
        if not written:
            return None

        logger.info(
            f"Indexed {entity_type.value} {entity_id}",
            extra={"composite_key": record.composite_key, "version": record.version},
        )
        return record

    def _build_record(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        content: str,
        embedding: list[float],
        metadata: dict[str, Any] | None,
        version: int,
    ) -> IndexedEntity:
        return IndexedEntity(
            entity_type=entity_type,
            entity_id=entity_id,
            embedding=embedding,
            display_content=content[: self._display_content_max_length],
            metadata=dict(metadata or {}),
            indexed_at=datetime.now(UTC),
            version=version,
        )


def _ensure_id(entity_id: str) -> None:
    if not isinstance(entity_id, str) or not entity_id.strip():
        raise InvalidInputError(
            "entity_id must be a non-empty string",
            details={"field": "entity_id"},
        )


def _ensure_entity_type(entity_type: EntityType | str) -> EntityType:
    try:
        return EntityType(entity_type)
    except ValueError as e:
        raise InvalidInputError(
            f"Unknown entity type: {entity_type}",
            details={"field": "entity_type", "allowed": [t.value for t in EntityType]},
        ) from e
