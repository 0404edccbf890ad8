"""Vector store data models."""

import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Filter key that matches a record's entity type instead of a metadata field.
ENTITY_TYPE_FILTER_KEY = "entityType"


class EntityType(str, Enum):
    """Kinds of content that can be indexed."""

    LESSON = "lesson"
    RESOURCE = "resource"


def make_composite_key(entity_type: EntityType | str, entity_id: str) -> str:
    """Build the unique record identity for an entity."""
    return f"{EntityType(entity_type).value}-{entity_id}"


_last_version = 0


def next_version() -> int:
    """Write token used when the caller does not supply one.

    Wall-clock nanoseconds, strictly increasing within the process.
    """
    global _last_version
    _last_version = max(time.time_ns(), _last_version + 1)
    return _last_version


class IndexedEntity(BaseModel):
    """One indexed lesson or resource.

    Records are immutable; an update replaces the whole record.

    Attributes:
        entity_type: Lesson or resource.
        entity_id: Identifier of the source record in the content store.
        embedding: Embedding vector of the source text.
        display_content: Truncated copy of the source text for previews.
        metadata: Scoping and descriptive fields (organizationId, courseId, ...).
        indexed_at: When this version of the record was written.
        version: Write token; stores keep the highest version they have seen.
    """

    model_config = ConfigDict(frozen=True)

    entity_type: EntityType = Field(description="Entity type")
    entity_id: str = Field(min_length=1, description="Source record identifier")
    embedding: list[float] = Field(min_length=1, description="Embedding vector")
    display_content: str = Field(default="", description="Preview text")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Scoping and descriptive metadata",
    )
    indexed_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Last-indexed-at timestamp",
    )
    version: int = Field(default_factory=next_version, ge=0, description="Write token")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def composite_key(self) -> str:
        """Unique identity of the record in the store."""
        return make_composite_key(self.entity_type, self.entity_id)

    @property
    def dimensions(self) -> int:
        """Vector length."""
        return len(self.embedding)

    def matches(self, filters: dict[str, Any] | None) -> bool:
        """Check an exact-match conjunction of filters against this record."""
        if not filters:
            return True
        for key, value in filters.items():
            if key == ENTITY_TYPE_FILTER_KEY:
                if self.entity_type.value != getattr(value, "value", value):
                    return False
            elif key not in self.metadata or self.metadata[key] != value:
                return False
        return True


class ScoredRecord(BaseModel):
    """A stored record paired with its similarity to a query.

    Attributes:
        record: The matching record.
        score: Cosine similarity clamped to [0, 1].
    """

    record: IndexedEntity = Field(description="Matching record")
    score: float = Field(ge=0.0, le=1.0, description="Similarity score")


def rank(candidates: list[ScoredRecord], top_k: int) -> list[ScoredRecord]:
    """Order by score, most recently indexed first on ties, and cut to top_k."""
    ordered = sorted(
        candidates,
        key=lambda c: (c.score, c.record.indexed_at),
        reverse=True,
    )
    return ordered[:top_k]
