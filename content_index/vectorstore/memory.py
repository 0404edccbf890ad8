"""In-process vector record store.

Exact brute-force cosine search over every record that passes the filters.
Suited to tests, local development and small single-node deployments.
"""

import asyncio
import math
import time
from typing import Any

from content_index.exceptions import ErrorCode, VectorStoreQueryError, VectorStoreWriteError
from content_index.logging_config import get_logger
from content_index.observability.metrics import track_stale_write
from content_index.vectorstore.models import IndexedEntity, ScoredRecord, rank
from content_index.vectorstore.service import VectorRecordStore, clamp_score, validate_top_k

logger = get_logger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between two equal-length vectors.

    Zero vectors have no direction and score 0 against everything.
    """
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorRecordStore(VectorRecordStore):
    """Dictionary-backed record store.

    Writers serialize on one lock. Records are immutable and the mapping is
    swapped entry by entry, so a reader sees either the old or the new
    record for a key, never a mix.
    """

    backend_name = "memory"

    def __init__(self, dimensions: int | None = None) -> None:
        """Initialize an empty store.

        Args:
            dimensions: Fixed vector length. Learned from the first write
                when not given.
        """
        self._records: dict[str, IndexedEntity] = {}
        self._dimensions = dimensions
        self._lock = asyncio.Lock()

    @property
    def dimensions(self) -> int | None:
        """Vector length enforced for every record."""
        return self._dimensions

    async def upsert(self, record: IndexedEntity) -> bool:
        start = time.perf_counter()
        key = record.composite_key

        async with self._lock:
            if self._dimensions is None:
                self._dimensions = record.dimensions
            elif record.dimensions != self._dimensions:
                self._track("upsert", start, success=False)
                raise VectorStoreWriteError(
                    f"Vector has {record.dimensions} dimensions, "
                    f"store expects {self._dimensions}",
                    code=ErrorCode.VECTOR_DIMENSION_MISMATCH,
                    details={
                        "composite_key": key,
                        "expected": self._dimensions,
                        "received": record.dimensions,
                    },
                )

            current = self._records.get(key)
            if current is not None and current.version > record.version:
                track_stale_write(self.backend_name)
                logger.info(
                    "Ignoring stale upsert",
                    extra={
                        "composite_key": key,
                        "stored_version": current.version,
                        "version": record.version,
                    },
                )
                self._track("upsert", start, success=True)
                return False

            self._records[key] = record

        self._track("upsert", start, success=True)
        return True

    async def delete(self, composite_key: str) -> bool:
        start = time.perf_counter()
        async with self._lock:
            removed = self._records.pop(composite_key, None) is not None
        self._track("delete", start, success=True)
        return removed

    async def delete_by_entity(self, entity_id: str) -> int:
        start = time.perf_counter()
        async with self._lock:
            keys = [k for k, r in self._records.items() if r.entity_id == entity_id]
            for key in keys:
                del self._records[key]
        self._track("delete_by_entity", start, success=True)
        return len(keys)

    async def get(self, composite_key: str) -> IndexedEntity | None:
        return self._records.get(composite_key)

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        return sum(1 for r in list(self._records.values()) if r.matches(filters))

    async def nearest_neighbors(
        self,
        vector: list[float],
        filters: dict[str, Any] | None,
        top_k: int,
    ) -> list[ScoredRecord]:
        validate_top_k(top_k)
        start = time.perf_counter()

        if self._dimensions is not None and len(vector) != self._dimensions:
            self._track("query", start, success=False)
            raise VectorStoreQueryError(
                f"Query vector has {len(vector)} dimensions, "
                f"store expects {self._dimensions}",
                code=ErrorCode.VECTOR_DIMENSION_MISMATCH,
                details={"expected": self._dimensions, "received": len(vector)},
            )

        snapshot = list(self._records.values())
        candidates = [
            ScoredRecord(
                record=record,
                score=clamp_score(cosine_similarity(vector, record.embedding)),
            )
            for record in snapshot
            if record.matches(filters)
        ]

        self._track("query", start, success=True)
        return rank(candidates, top_k)
