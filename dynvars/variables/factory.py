"""Build definition and value stores from settings.

Postgres-backed stores share one PostgresPool; the Redis definition cache
wraps whichever definition backend is configured.
"""

import os
from dataclasses import dataclass

import redis.asyncio as redis

from dynvars.config.models.storage import PostgresConfig
from dynvars.config.settings import Settings
from dynvars.db.pool import PostgresPool
from dynvars.observability.logging import get_logger
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore
from dynvars.variables.stores.cached import CachedVariableDefinitionStore
from dynvars.variables.stores.inmemory import (
    InMemoryVariableDefinitionStore,
    InMemoryVariableValueStore,
)
from dynvars.variables.stores.postgres import (
    PostgresVariableDefinitionStore,
    PostgresVariableValueStore,
)

logger = get_logger(__name__)


@dataclass
class StoreBundle:
    """Stores plus the connections they were built on."""

    definitions: VariableDefinitionStore
    values: VariableValueStore
    pool: PostgresPool | None = None
    redis_client: redis.Redis | None = None

    async def close(self) -> None:
        """Release the pool and Redis client, including ones passed in."""
        if self.pool is not None:
            await self.pool.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()


def _ensure_pool(config: PostgresConfig, pool: PostgresPool | None) -> PostgresPool:
    if pool is not None:
        return pool
    return PostgresPool.from_config(config)


def create_stores(
    settings: Settings,
    pool: PostgresPool | None = None,
    redis_client: redis.Redis | None = None,
) -> StoreBundle:
    """Create the configured definition and value stores.

    Args:
        settings: Root settings
        pool: Existing pool to use for Postgres backends
        redis_client: Existing client to use for the definition cache

    Returns:
        StoreBundle with both stores
    """
    storage = settings.storage

    definitions: VariableDefinitionStore
    if storage.definitions.backend == "postgres":
        pool = _ensure_pool(storage.definitions, pool)
        definitions = PostgresVariableDefinitionStore(pool)
    else:
        definitions = InMemoryVariableDefinitionStore()

    values: VariableValueStore
    if storage.values.backend == "postgres":
        pool = _ensure_pool(storage.values, pool)
        values = PostgresVariableValueStore(pool)
    else:
        values = InMemoryVariableValueStore()

    cache_config = storage.definition_cache
    if cache_config.enabled:
        if redis_client is None:
            redis_url = cache_config.url or os.environ.get(
                "REDIS_URL", "redis://localhost:6379"
            )
            redis_client = redis.from_url(redis_url, decode_responses=True)
            logger.info("redis_client_created", url=redis_url.split("@")[-1])
        definitions = CachedVariableDefinitionStore(definitions, redis_client, cache_config)

    logger.info(
        "variable_stores_initialized",
        definitions=storage.definitions.backend,
        values=storage.values.backend,
        definition_cache=cache_config.enabled,
    )
    return StoreBundle(
        definitions=definitions,
        values=values,
        pool=pool,
        redis_client=redis_client if cache_config.enabled else None,
    )
