"""Embedding service interface and HTTP implementation."""

import time
from abc import ABC, abstractmethod

import httpx

from content_index.config import EmbeddingSettings, get_settings
from content_index.embeddings.models import EmbeddingResult
from content_index.exceptions import EmbeddingProviderError, ErrorCode, InvalidInputError
from content_index.logging_config import get_logger
from content_index.observability.metrics import track_embedding_request

logger = get_logger(__name__)


def ensure_text(text: str, field: str = "text") -> None:
    """Reject empty or whitespace-only text.

    Raises:
        InvalidInputError: If the text has no non-whitespace characters.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError(
            f"{field} must be a non-empty string",
            details={"field": field},
        )


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Implementations map text to a fixed-length vector. They hold no state
    that affects results: identical text is re-embedded on every call.
    """

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed. Must not be empty or whitespace.

        Returns:
            EmbeddingResult with vector.

        Raises:
            InvalidInputError: If text is empty.
            EmbeddingProviderError: If the provider fails.
        """
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.

        Returns:
            List of EmbeddingResult objects, in input order.

        Raises:
            InvalidInputError: If any text is empty.
            EmbeddingProviderError: If the provider fails.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int | None:
        """Get the embedding dimensions, if known."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using an OpenAI-compatible HTTP API.

    Works with hosted providers and text-embeddings-inference (TEI)
    servers. No retries are performed; failures surface as
    EmbeddingProviderError and retry policy belongs to the caller.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-004": 768,
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None
        self._learned_dimensions: int | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self._settings.api_key is not None:
                headers["Authorization"] = (
                    f"Bearer {self._settings.api_key.get_secret_value()}"
                )
            self._client = httpx.AsyncClient(
                timeout=self._settings.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def dimensions(self) -> int | None:
        """Get embedding dimensions.

        Configured value first, then what the provider has returned,
        then the known-model table.
        """
        if self._settings.dimensions is not None:
            return self._settings.dimensions
        if self._learned_dimensions is not None:
            return self._learned_dimensions
        return self.MODEL_DIMENSIONS.get(self._settings.model)

    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        results = await self.embed_batch([text])
        return results[0]

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts, chunked by batch size."""
        if not texts:
            return []

        for text in texts:
            ensure_text(text)

        client = await self._get_client()
        url = f"{self._settings.base_url.rstrip('/')}/embeddings"

        all_results: list[EmbeddingResult] = []
        batch_size = self._settings.batch_size

        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            batch_results = await self._embed_batch_request(client, url, batch)
            all_results.extend(batch_results)

        return all_results

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        texts: list[str],
    ) -> list[EmbeddingResult]:
        """Make embedding request for a batch.

        Raises:
            EmbeddingProviderError: If the request or response is unusable.
        """
        payload = {
            "input": texts,
            "model": self._settings.model,
        }

        start = time.perf_counter()
        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            self._track(start, len(texts), success=False)
            logger.error(
                "Embedding request timed out",
                extra={"url": url, "timeout": self._settings.timeout},
            )
            raise EmbeddingProviderError(
                f"Embedding service timed out after {self._settings.timeout}s",
                code=ErrorCode.EMBEDDING_TIMEOUT,
                details={"url": url},
            ) from e
        except httpx.HTTPStatusError as e:
            self._track(start, len(texts), success=False)
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingProviderError(
                f"Embedding service returned {e.response.status_code}",
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            self._track(start, len(texts), success=False)
            logger.error(f"Embedding request error: {e}", extra={"url": url})
            raise EmbeddingProviderError(
                f"Failed to connect to embedding service: {e}",
                details={"url": url},
            ) from e

        try:
            results = self._parse_response(response.json(), texts)
        except EmbeddingProviderError:
            self._track(start, len(texts), success=False)
            raise
        except (KeyError, IndexError, TypeError, ValueError) as e:
            self._track(start, len(texts), success=False)
            raise EmbeddingProviderError(
                f"Invalid response from embedding service: {e}",
                details={"error": str(e)},
            ) from e

        self._track(start, len(texts), success=True)
        return results

    def _parse_response(
        self,
        data: dict,
        texts: list[str],
    ) -> list[EmbeddingResult]:
        """Turn an OpenAI-style response body into results."""
        items = data["data"]
        if len(items) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding service returned {len(items)} vectors "
                f"for {len(texts)} inputs",
                details={"expected": len(texts), "received": len(items)},
            )

        # Providers may return items out of order; "index" restores it.
        if all("index" in item for item in items):
            items = sorted(items, key=lambda item: item["index"])

        expected = self.dimensions if self._settings.dimensions else None
        results: list[EmbeddingResult] = []
        for text, item in zip(texts, items, strict=True):
            embedding = [float(x) for x in item["embedding"]]

            if expected is not None and len(embedding) != expected:
                raise EmbeddingProviderError(
                    f"Embedding has {len(embedding)} dimensions, expected {expected}",
                    code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
                    details={"expected": expected, "received": len(embedding)},
                )

            if self._learned_dimensions is None and embedding:
                self._learned_dimensions = len(embedding)

            results.append(
                EmbeddingResult(
                    text=text,
                    embedding=embedding,
                    model=self._settings.model,
                    dimensions=len(embedding),
                )
            )

        return results

    def _track(self, start: float, batch_size: int, success: bool) -> None:
        track_embedding_request(
            model=self._settings.model,
            duration=time.perf_counter() - start,
            batch_size=batch_size,
            success=success,
        )
