"""Tests for content index exceptions."""

import pytest

from content_index.exceptions import (
    ConfigurationError,
    ContentIndexError,
    EmbeddingProviderError,
    ErrorCode,
    InvalidInputError,
    RetrievalError,
    VectorStoreError,
    VectorStoreQueryError,
    VectorStoreWriteError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow IDX-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("IDX-")
            assert len(code.value) == 8

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestContentIndexError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        error = ContentIndexError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}
        assert str(error) == "Something went wrong"

    def test_to_dict(self) -> None:
        """Exception converts to API response dict."""
        error = ContentIndexError(
            "Something went wrong",
            details={"trace_id": "abc123"},
        )
        assert error.to_dict() == {
            "error": {
                "code": "IDX-1000",
                "message": "Something went wrong",
                "details": {"trace_id": "abc123"},
            }
        }


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (ConfigurationError("missing"), ErrorCode.CONFIGURATION_ERROR),
        (InvalidInputError("empty"), ErrorCode.INVALID_INPUT),
        (EmbeddingProviderError("down"), ErrorCode.EMBEDDING_SERVICE_ERROR),
        (VectorStoreWriteError("write"), ErrorCode.VECTOR_STORE_WRITE_ERROR),
        (VectorStoreQueryError("query"), ErrorCode.VECTOR_STORE_QUERY_ERROR),
        (RetrievalError("boom"), ErrorCode.RETRIEVAL_ERROR),
    ],
)
def test_default_codes(error: ContentIndexError, code: ErrorCode) -> None:
    """Each exception carries its own default code."""
    assert error.code == code
    assert isinstance(error, ContentIndexError)


class TestVectorStoreErrors:
    """Tests for storage-layer exceptions."""

    def test_share_base_class(self) -> None:
        """Write and query errors can be caught together."""
        assert isinstance(VectorStoreWriteError("x"), VectorStoreError)
        assert isinstance(VectorStoreQueryError("x"), VectorStoreError)

    def test_custom_code(self) -> None:
        error = VectorStoreWriteError(
            "wrong size",
            code=ErrorCode.VECTOR_DIMENSION_MISMATCH,
        )
        assert error.code == ErrorCode.VECTOR_DIMENSION_MISMATCH


def test_embedding_timeout_code() -> None:
    """EmbeddingProviderError can indicate timeout."""
    error = EmbeddingProviderError("timed out", code=ErrorCode.EMBEDDING_TIMEOUT)
    assert error.code == ErrorCode.EMBEDDING_TIMEOUT
