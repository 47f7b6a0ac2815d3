"""Configuration models."""

from dynvars.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from dynvars.config.models.overlay import OverlaySettings
from dynvars.config.models.storage import (
    InMemoryConfig,
    PostgresConfig,
    RedisDefinitionCacheConfig,
    StorageConfig,
    StoreBackendConfig,
)

__all__ = [
    "InMemoryConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "OverlaySettings",
    "PostgresConfig",
    "RedisDefinitionCacheConfig",
    "StorageConfig",
    "StoreBackendConfig",
]
