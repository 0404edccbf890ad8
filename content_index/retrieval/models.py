"""Retrieval data models."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from content_index.vectorstore.models import ENTITY_TYPE_FILTER_KEY, EntityType


class SearchScope(BaseModel):
    """Exact-match constraints applied before ranking.

    An organization is always required so a search can never cross tenants.

    Attributes:
        organization_id: Tenant whose content may be returned.
        course_id: Optional narrower course scope.
        entity_type: Optional restriction to lessons or resources.
        extra: Further exact-match metadata constraints.
    """

    organization_id: str = Field(min_length=1, description="Tenant scope")
    course_id: str | None = Field(default=None, description="Course scope")
    entity_type: EntityType | None = Field(default=None, description="Entity type")
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional metadata constraints",
    )

    @field_validator("organization_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("organization_id must not be blank")
        return value

    def to_filters(self) -> dict[str, Any]:
        """Flatten into the store's filter mapping."""
        filters: dict[str, Any] = dict(self.extra)
        filters["organizationId"] = self.organization_id
        if self.course_id is not None:
            filters["courseId"] = self.course_id
        if self.entity_type is not None:
            filters[ENTITY_TYPE_FILTER_KEY] = self.entity_type.value
        return filters


class SearchResult(BaseModel):
    """Result from a scoped similarity search.

    Attributes:
        entity_id: Source record identifier.
        entity_type: Lesson or resource.
        score: Cosine similarity in [0, 1] (higher is more similar).
        display_content: Stored preview text.
        metadata: Stored metadata.
    """

    entity_id: str = Field(description="Source record identifier")
    entity_type: EntityType = Field(description="Entity type")
    score: float = Field(ge=0.0, le=1.0, description="Similarity score")
    display_content: str = Field(default="", description="Preview text")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional metadata",
    )
