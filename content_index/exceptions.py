"""Content index exception hierarchy.

All custom exceptions inherit from ContentIndexError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "IDX-1000"
    CONFIGURATION_ERROR = "IDX-1001"
    INVALID_INPUT = "IDX-1002"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "IDX-3000"
    EMBEDDING_DIMENSION_MISMATCH = "IDX-3001"
    EMBEDDING_TIMEOUT = "IDX-3002"

    # Vector store errors (4xxx)
    VECTOR_STORE_WRITE_ERROR = "IDX-4000"
    VECTOR_STORE_QUERY_ERROR = "IDX-4001"
    VECTOR_DIMENSION_MISMATCH = "IDX-4002"
    VECTOR_STORE_UNAVAILABLE = "IDX-4003"

    # Retrieval errors (6xxx)
    RETRIEVAL_ERROR = "IDX-6000"


class ContentIndexError(Exception):
    """Base exception for all content index errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(ContentIndexError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class InvalidInputError(ContentIndexError):
    """Caller supplied empty content, an empty query or a non-positive top_k."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class EmbeddingProviderError(ContentIndexError):
    """Embedding provider failed or returned an unusable response."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreError(ContentIndexError):
    """Base class for storage-layer failures."""


class VectorStoreWriteError(VectorStoreError):
    """Upsert or delete against the vector store failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_WRITE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreQueryError(VectorStoreError):
    """Nearest-neighbor query against the vector store failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_QUERY_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class RetrievalError(ContentIndexError):
    """Unexpected failure inside the retrieval path."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RETRIEVAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
