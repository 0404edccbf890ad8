"""Best-effort indexing hooks for content-mutation handlers.

Lesson and resource handlers call these after their own write has
succeeded. Indexing is a secondary write: any failure is logged and
counted, never raised back into the handler's response path.
"""

from typing import Any

from content_index.indexing.manager import IndexManager
from content_index.logging_config import get_logger
from content_index.observability.metrics import track_hook_failure
from content_index.vectorstore.models import EntityType

logger = get_logger(__name__)


def lesson_metadata(
    lesson_id: str,
    course_id: str,
    organization_id: str,
    lesson_title: str | None = None,
    course_name: str | None = None,
) -> dict[str, Any]:
    """Metadata stored alongside an indexed lesson."""
    metadata: dict[str, Any] = {
        "lessonId": lesson_id,
        "courseId": course_id,
        "organizationId": organization_id,
        "type": EntityType.LESSON.value,
    }
    if lesson_title is not None:
        metadata["lessonTitle"] = lesson_title
    if course_name is not None:
        metadata["courseName"] = course_name
    return metadata


def resource_metadata(
    resource_id: str,
    organization_id: str,
    title: str | None = None,
    course_id: str | None = None,
    resource_type: str | None = None,
) -> dict[str, Any]:
    """Metadata stored alongside an indexed resource."""
    metadata: dict[str, Any] = {
        "resourceId": resource_id,
        "organizationId": organization_id,
        "type": EntityType.RESOURCE.value,
    }
    if course_id is not None:
        metadata["courseId"] = course_id
    if title is not None:
        metadata["title"] = title
    if resource_type is not None:
        metadata["resourceType"] = resource_type
    return metadata


class ContentIndexHooks:
    """Failure-isolating wrappers around the index manager.

    Every hook returns True when indexing succeeded and False when it
    failed; the failure itself only reaches the logs and metrics.
    """

    def __init__(self, index_manager: IndexManager) -> None:
        self._index_manager = index_manager

    async def on_create(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        version: int | None = None,
    ) -> bool:
        """Index a newly created lesson or resource.

        Pass the content write's own edit timestamp as ``version`` when the
        handler has one; otherwise the call time is used.
        """
        try:
            await self._index_manager.index(
                entity_type, entity_id, content, metadata, version=version
            )
        except Exception:
            self._record_failure("on_create", entity_type, entity_id)
            return False
        return True

    async def on_update(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        version: int | None = None,
    ) -> bool:
        """Re-index an edited lesson or resource."""
        try:
            await self._index_manager.update(
                entity_type, entity_id, content, metadata, version=version
            )
        except Exception:
            self._record_failure("on_update", entity_type, entity_id)
            return False
        return True

    async def on_delete(
        self,
        entity_id: str,
        entity_type: EntityType | str | None = None,
    ) -> bool:
        """Drop a deleted lesson or resource from the index."""
        try:
            await self._index_manager.delete(entity_id, entity_type)
        except Exception:
            self._record_failure("on_delete", entity_type, entity_id)
            return False
        return True

    @staticmethod
    def _record_failure(
        hook: str,
        entity_type: EntityType | str | None,
        entity_id: str,
    ) -> None:
        type_label = getattr(entity_type, "value", entity_type) or "any"
        track_hook_failure(hook, str(type_label))
        logger.exception(
            f"Indexing hook {hook} failed; content write is unaffected",
            extra={"entity_id": entity_id, "entity_type": type_label},
        )
