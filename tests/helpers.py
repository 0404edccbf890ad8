"""Test doubles and record builders shared across test modules."""

import hashlib
import re
from datetime import UTC, datetime, timedelta

from content_index.embeddings.models import EmbeddingResult
from content_index.embeddings.service import EmbeddingService, ensure_text
from content_index.vectorstore.models import EntityType, IndexedEntity

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


class KeywordEmbeddingService(EmbeddingService):
    """Deterministic bag-of-words embedder for tests.

    Each lowercase word is hashed into one of ``dimensions`` buckets, so
    texts sharing words point in similar directions.
    """

    def __init__(self, dimensions: int = 512) -> None:
        self._dimensions = dimensions
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    @property
    def model_name(self) -> str:
        return "keyword-hash"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            digest = hashlib.md5(token.encode()).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimensions] += 1.0
        return vector

    async def embed(self, text: str) -> EmbeddingResult:
        ensure_text(text)
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(text)
        embedding = self.vector(text)
        return EmbeddingResult(
            text=text,
            embedding=embedding,
            model=self.model_name,
            dimensions=len(embedding),
        )

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        return [await self.embed(text) for text in texts]


def minutes(n: int) -> datetime:
    """Timestamp n minutes after a fixed base."""
    return BASE_TIME + timedelta(minutes=n)


def make_record(
    entity_id: str,
    embedding: list[float],
    organization_id: str = "org-1",
    entity_type: EntityType = EntityType.LESSON,
    indexed_at: datetime | None = None,
    version: int = 1,
    **metadata: object,
) -> IndexedEntity:
    """Build a record with an explicit vector and timestamp."""
    return IndexedEntity(
        entity_type=entity_type,
        entity_id=entity_id,
        embedding=embedding,
        display_content=f"content of {entity_id}",
        metadata={"organizationId": organization_id, **metadata},
        indexed_at=indexed_at or BASE_TIME,
        version=version,
    )
