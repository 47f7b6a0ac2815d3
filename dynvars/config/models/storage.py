"""Storage backend configuration models."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class InMemoryConfig(BaseModel):
    """In-process store, for tests and development."""

    backend: Literal["inmemory"] = "inmemory"


class PostgresConfig(BaseModel):
    """PostgreSQL-specific configuration."""

    backend: Literal["postgres"] = "postgres"
    connection_url: str | None = Field(
        default=None,
        description="Connection URL (falls back to DATABASE_URL env vars)",
    )
    min_pool_size: int = Field(
        default=5,
        gt=0,
        description="Minimum connections to keep open",
    )
    max_pool_size: int = Field(
        default=20,
        gt=0,
        description="Maximum connections in pool",
    )
    max_inactive_connection_lifetime: float = Field(
        default=300.0,
        gt=0,
        description="Close connections idle longer than this (seconds)",
    )
    command_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Default timeout for queries (seconds)",
    )


StoreBackendConfig = Annotated[
    InMemoryConfig | PostgresConfig, Field(discriminator="backend")
]


class RedisDefinitionCacheConfig(BaseModel):
    """Redis cache in front of the definition store.

    Caches active per-scope definition lists; writes invalidate.
    """

    enabled: bool = Field(
        default=False,
        description="Enable/disable caching",
    )
    url: str | None = Field(
        default=None,
        description="Redis URL (falls back to REDIS_URL env var)",
    )
    ttl_seconds: int = Field(
        default=600,
        gt=0,
        description="Cache TTL in seconds",
    )
    key_prefix: str = Field(
        default="vardefs",
        description="Redis key prefix for definition cache",
    )
    fallback_on_error: bool = Field(
        default=True,
        description="Fall back to backend on Redis errors",
    )


class StorageConfig(BaseModel):
    """Configuration for all storage backends."""

    definitions: StoreBackendConfig = Field(
        default_factory=InMemoryConfig,
        description="VariableDefinitionStore backend",
    )
    values: StoreBackendConfig = Field(
        default_factory=InMemoryConfig,
        description="VariableValueStore backend",
    )
    definition_cache: RedisDefinitionCacheConfig = Field(
        default_factory=RedisDefinitionCacheConfig,
        description="Definition cache configuration (Redis)",
    )
