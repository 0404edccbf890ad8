"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
from helpers import KeywordEmbeddingService
from httpx import ASGITransport, AsyncClient

from content_index.api.app import create_app
from content_index.config import Settings
from content_index.container import ContentIndexServices
from content_index.indexing.manager import IndexManager
from content_index.retrieval.retriever import RetrievalService
from content_index.vectorstore.memory import InMemoryVectorRecordStore


@pytest.fixture
def embedder() -> KeywordEmbeddingService:
    return KeywordEmbeddingService()


@pytest.fixture
def store() -> InMemoryVectorRecordStore:
    return InMemoryVectorRecordStore()


@pytest.fixture
def manager(
    embedder: KeywordEmbeddingService,
    store: InMemoryVectorRecordStore,
) -> IndexManager:
    return IndexManager(embedding_service=embedder, vector_store=store)


@pytest.fixture
def retrieval(
    embedder: KeywordEmbeddingService,
    store: InMemoryVectorRecordStore,
) -> RetrievalService:
    return RetrievalService(embedding_service=embedder, vector_store=store)


@pytest.fixture
def services(
    embedder: KeywordEmbeddingService,
    store: InMemoryVectorRecordStore,
) -> ContentIndexServices:
    return ContentIndexServices.create(embedder, store, settings=Settings())


@pytest.fixture
async def client(services: ContentIndexServices) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client wired to in-memory services.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
