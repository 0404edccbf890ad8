"""API routes for indexing and search."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from content_index.config import get_settings
from content_index.container import ContentIndexServices
from content_index.exceptions import InvalidInputError
from content_index.logging_config import get_logger
from content_index.retrieval.models import SearchResult, SearchScope
from content_index.vectorstore.models import EntityType, IndexedEntity, make_composite_key

logger = get_logger(__name__)


router = APIRouter(prefix="/api/v1", tags=["Content Index"])


class IndexBody(BaseModel):
    """Request body for indexing a new entity."""

    entity_type: EntityType = Field(description="Lesson or resource")
    entity_id: str = Field(min_length=1, description="Source record identifier")
    content: str = Field(description="Full text to embed")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Scoping metadata (organizationId, courseId, ...)",
    )
    version: int | None = Field(default=None, ge=0, description="Write token")


class UpdateBody(BaseModel):
    """Request body for re-indexing an entity."""

    content: str = Field(description="Full text to embed")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Metadata")
    version: int | None = Field(default=None, ge=0, description="Write token")


class IndexResponse(BaseModel):
    """Outcome of an index or update call."""

    indexed: bool = Field(description="False when a newer version was already stored")
    composite_key: str = Field(description="Record identity")
    version: int | None = Field(default=None, description="Stored write token")


class DeleteResponse(BaseModel):
    """Outcome of a delete call."""

    removed: int = Field(description="Records removed")


class SearchBody(BaseModel):
    """Request body for scoped search."""

    query: str = Field(description="Search query")
    organization_id: str = Field(min_length=1, description="Tenant scope")
    course_id: str | None = Field(default=None, description="Course scope")
    entity_type: EntityType | None = Field(default=None, description="Entity type")
    top_k: int | None = Field(default=None, ge=1, description="Number of results")

    @field_validator("organization_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("organization_id must not be blank")
        return value


class SearchResponse(BaseModel):
    """Response from scoped search."""

    query: str = Field(description="Search query")
    results: list[SearchResult] = Field(description="Ranked results")
    count: int = Field(description="Number of results")


def get_services(request: Request) -> ContentIndexServices:
    """Resolve the services wired at startup."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.warning("Content index services not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "Content index not configured",
                "message": "Indexing and search require the embedding service and vector store",
            },
        )
    return services


def _index_response(
    entity_type: EntityType,
    entity_id: str,
    record: IndexedEntity | None,
) -> IndexResponse:
    return IndexResponse(
        indexed=record is not None,
        composite_key=make_composite_key(entity_type, entity_id),
        version=record.version if record is not None else None,
    )


@router.post("/index", response_model=IndexResponse, status_code=status.HTTP_201_CREATED)
async def index_endpoint(
    body: IndexBody,
    services: ContentIndexServices = Depends(get_services),
) -> IndexResponse:
    """Index a lesson or resource."""
    record = await services.index_manager.index(
        body.entity_type,
        body.entity_id,
        body.content,
        body.metadata,
        version=body.version,
    )
    return _index_response(body.entity_type, body.entity_id, record)


@router.put("/index/{entity_type}/{entity_id}", response_model=IndexResponse)
async def update_endpoint(
    entity_type: EntityType,
    entity_id: str,
    body: UpdateBody,
    services: ContentIndexServices = Depends(get_services),
) -> IndexResponse:
    """Replace the indexed content of a lesson or resource."""
    record = await services.index_manager.update(
        entity_type,
        entity_id,
        body.content,
        body.metadata,
        version=body.version,
    )
    return _index_response(entity_type, entity_id, record)


@router.delete("/index/{entity_id}", response_model=DeleteResponse)
async def delete_endpoint(
    entity_id: str,
    entity_type: EntityType | None = None,
    services: ContentIndexServices = Depends(get_services),
) -> DeleteResponse:
    """Remove an entity from the index; unknown ids remove nothing."""
    removed = await services.index_manager.delete(entity_id, entity_type)
    return DeleteResponse(removed=removed)


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(
    body: SearchBody,
    services: ContentIndexServices = Depends(get_services),
) -> SearchResponse:
    """Scoped similarity search."""
    index_settings = get_settings().index
    top_k = body.top_k or index_settings.default_top_k
    if top_k > index_settings.max_top_k:
        raise InvalidInputError(
            f"top_k must be at most {index_settings.max_top_k}",
            details={"top_k": top_k, "max_top_k": index_settings.max_top_k},
        )

    scope = SearchScope(
        organization_id=body.organization_id,
        course_id=body.course_id,
        entity_type=body.entity_type,
    )
    results = await services.retrieval.search(body.query, scope, top_k)
    return SearchResponse(query=body.query, results=results, count=len(results))
