"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class VectorStoreBackend(str, Enum):
    """Available vector record store backends."""

    MEMORY = "memory"
    QDRANT = "qdrant"


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration.

    Targets any OpenAI-compatible ``/embeddings`` endpoint.
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    base_url: str = Field(
        default="http://localhost:8080",
        description="Embedding service base URL",
    )
    model: str = Field(
        default="text-embedding-004",
        description="Embedding model name",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Bearer token for the embedding provider (optional)",
    )
    dimensions: int | None = Field(
        default=None,
        gt=0,
        description="Expected vector length; responses of any other length are rejected",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )
    batch_size: int = Field(
        default=32,
        gt=0,
        description="Batch size for embedding requests",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    location: str | None = Field(
        default=None,
        description="Local Qdrant location (e.g. ':memory:'); overrides url when set",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="content_embeddings",
        description="Collection holding indexed lessons and resources",
    )


class IndexSettings(BaseSettings):
    """Content index behaviour."""

    model_config = SettingsConfigDict(env_prefix="INDEX_")

    display_content_max_length: int = Field(
        default=1000,
        gt=0,
        description="Characters of source text kept for result previews",
    )
    default_top_k: int = Field(
        default=5,
        gt=0,
        description="Results returned when the caller does not ask for a count",
    )
    max_top_k: int = Field(
        default=50,
        gt=0,
        description="Upper bound on top_k accepted by the HTTP API",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    vector_store_backend: VectorStoreBackend = Field(
        default=VectorStoreBackend.QDRANT,
        description="Vector record store implementation",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    index: IndexSettings = Field(default_factory=IndexSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
