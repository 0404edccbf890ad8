"""Tests for embedding service."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from content_index.config import EmbeddingSettings
from content_index.embeddings.models import EmbeddingResult
from content_index.embeddings.service import HTTPEmbeddingService
from content_index.exceptions import EmbeddingProviderError, ErrorCode, InvalidInputError


def _response(data: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = data
    response.raise_for_status = MagicMock()
    return response


def _client(response: MagicMock) -> AsyncMock:
    client = AsyncMock(spec=httpx.AsyncClient)
    client.post.return_value = response
    return client


class TestEmbeddingResult:
    """Tests for EmbeddingResult model."""

    def test_valid_result(self) -> None:
        result = EmbeddingResult(
            text="test",
            embedding=[0.1, 0.2, 0.3],
            model="test-model",
            dimensions=3,
        )
        assert result.dimensions == 3

    def test_dimensions_mismatch(self) -> None:
        """Mismatched dimensions raise error."""
        with pytest.raises(ValueError, match="dimensions"):
            EmbeddingResult(
                text="test",
                embedding=[0.1, 0.2, 0.3],
                model="test-model",
                dimensions=5,
            )


class TestHTTPEmbeddingService:
    """Tests for HTTPEmbeddingService."""

    def test_model_name(self) -> None:
        settings = EmbeddingSettings(model="test-model")
        service = HTTPEmbeddingService(settings=settings)
        assert service.model_name == "test-model"

    def test_known_model_dimensions(self) -> None:
        settings = EmbeddingSettings(model="text-embedding-004")
        assert HTTPEmbeddingService(settings=settings).dimensions == 768

    def test_configured_dimensions_win(self) -> None:
        settings = EmbeddingSettings(model="text-embedding-004", dimensions=256)
        assert HTTPEmbeddingService(settings=settings).dimensions == 256

    def test_unknown_model_dimensions(self) -> None:
        """Unknown models report no dimension until one is seen."""
        settings = EmbeddingSettings(model="unknown-model")
        assert HTTPEmbeddingService(settings=settings).dimensions is None

    async def test_embed_single(self) -> None:
        """Single text embedding posts to /embeddings."""
        settings = EmbeddingSettings(base_url="http://test:8080/", model="test-model")
        mock_client = _client(_response({"data": [{"embedding": [0.1, 0.2, 0.3]}]}))

        service = HTTPEmbeddingService(settings=settings, client=mock_client)
        result = await service.embed("test text")

        assert result.text == "test text"
        assert result.embedding == [0.1, 0.2, 0.3]
        assert result.model == "test-model"
        mock_client.post.assert_called_once_with(
            "http://test:8080/embeddings",
            json={"input": ["test text"], "model": "test-model"},
        )

    async def test_learns_dimensions(self) -> None:
        settings = EmbeddingSettings(model="unknown-model")
        mock_client = _client(_response({"data": [{"embedding": [0.1, 0.2]}]}))
        service = HTTPEmbeddingService(settings=settings, client=mock_client)

        await service.embed("hello")

        assert service.dimensions == 2

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_embed_rejects_blank_text(self, text: str) -> None:
        """Blank text is a caller error and never reaches the provider."""
        mock_client = _client(_response({"data": []}))
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(InvalidInputError):
            await service.embed(text)

        mock_client.post.assert_not_called()

    async def test_embed_batch_restores_index_order(self) -> None:
        mock_client = _client(
            _response(
                {
                    "data": [
                        {"index": 1, "embedding": [0.3, 0.4]},
                        {"index": 0, "embedding": [0.1, 0.2]},
                    ]
                }
            )
        )
        service = HTTPEmbeddingService(
            settings=EmbeddingSettings(batch_size=10),
            client=mock_client,
        )

        results = await service.embed_batch(["text1", "text2"])

        assert [r.text for r in results] == ["text1", "text2"]
        assert results[0].embedding == [0.1, 0.2]

    async def test_embed_empty_list(self) -> None:
        service = HTTPEmbeddingService(settings=EmbeddingSettings())
        assert await service.embed_batch([]) == []

    async def test_embed_http_error(self) -> None:
        """HTTP error raises EmbeddingProviderError."""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error",
            request=MagicMock(),
            response=mock_response,
        )
        service = HTTPEmbeddingService(
            settings=EmbeddingSettings(),
            client=_client(mock_response),
        )

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await service.embed("test")

        assert exc_info.value.details["status_code"] == 500

    async def test_embed_connection_error(self) -> None:
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.ConnectError("Connection failed")
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await service.embed("test")

        assert exc_info.value.code == ErrorCode.EMBEDDING_SERVICE_ERROR

    async def test_embed_timeout(self) -> None:
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.ReadTimeout("too slow")
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await service.embed("test")

        assert exc_info.value.code == ErrorCode.EMBEDDING_TIMEOUT

    async def test_no_retry_on_failure(self) -> None:
        """A failed call is made exactly once."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.ConnectError("down")
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        with pytest.raises(EmbeddingProviderError):
            await service.embed("test")

        assert mock_client.post.call_count == 1

    async def test_malformed_response(self) -> None:
        service = HTTPEmbeddingService(
            settings=EmbeddingSettings(),
            client=_client(_response({"unexpected": True})),
        )

        with pytest.raises(EmbeddingProviderError):
            await service.embed("test")

    async def test_count_mismatch(self) -> None:
        service = HTTPEmbeddingService(
            settings=EmbeddingSettings(),
            client=_client(_response({"data": []})),
        )

        with pytest.raises(EmbeddingProviderError, match="0 vectors for 1 inputs"):
            await service.embed("test")

    async def test_dimension_mismatch(self) -> None:
        """Vectors of the wrong configured length are rejected."""
        service = HTTPEmbeddingService(
            settings=EmbeddingSettings(dimensions=3),
            client=_client(_response({"data": [{"embedding": [0.1, 0.2]}]})),
        )

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await service.embed("test")

        assert exc_info.value.code == ErrorCode.EMBEDDING_DIMENSION_MISMATCH

    async def test_no_caching(self) -> None:
        """Identical text is embedded again on every call."""
        mock_client = _client(_response({"data": [{"embedding": [0.1]}]}))
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        await service.embed("same")
        await service.embed("same")

        assert mock_client.post.call_count == 2

    async def test_batch_chunking(self) -> None:
        """Large batches are chunked correctly."""
        settings = EmbeddingSettings(model="test-model", batch_size=2)

        def make_response(*_args: object, **_kwargs: object) -> MagicMock:
            return _response({"data": [{"embedding": [0.1]}, {"embedding": [0.2]}]})

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = make_response

        service = HTTPEmbeddingService(settings=settings, client=mock_client)
        results = await service.embed_batch(["t1", "t2", "t3", "t4"])

        assert len(results) == 4
        assert mock_client.post.call_count == 2

    async def test_close(self) -> None:
        """Service closes owned client."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)
        service._owns_client = True

        await service.close()
        mock_client.aclose.assert_called_once()

    async def test_close_leaves_injected_client(self) -> None:
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        service = HTTPEmbeddingService(settings=EmbeddingSettings(), client=mock_client)

        await service.close()
        mock_client.aclose.assert_not_called()
