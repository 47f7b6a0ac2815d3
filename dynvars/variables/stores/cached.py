"""Redis-cached wrapper around a VariableDefinitionStore.

Caches the active definition list per scope, which is what every single
hydration reads. Writes go through to the backend and invalidate the
affected scope. Redis failures fall back to the backend when
``fallback_on_error`` is set.

Key structure:
- {prefix}:scope:{tenant_id}:{category}:{class_scope_id|org} - Active definitions
"""

from collections.abc import Iterable
from uuid import UUID

import redis.asyncio as redis
from pydantic import TypeAdapter

from dynvars.config.models.storage import RedisDefinitionCacheConfig
from dynvars.db.errors import ConnectionError
from dynvars.observability.logging import get_logger
from dynvars.observability.metrics import (
    DEFINITION_CACHE_ERRORS,
    DEFINITION_CACHE_HITS,
    DEFINITION_CACHE_INVALIDATIONS,
    DEFINITION_CACHE_MISSES,
)
from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import VariableDefinition, VariableScope
from dynvars.variables.store import VariableDefinitionStore

logger = get_logger(__name__)

_definition_list = TypeAdapter(list[VariableDefinition])


class CachedVariableDefinitionStore(VariableDefinitionStore):
    """Write-through Redis cache in front of another definition store."""

    def __init__(
        self,
        backend: VariableDefinitionStore,
        client: redis.Redis,
        config: RedisDefinitionCacheConfig | None = None,
    ) -> None:
        """Initialize the cache layer.

        Args:
            backend: Authoritative definition store
            client: Redis client instance
            config: Cache configuration (uses defaults if not provided)
        """
        self._backend = backend
        self._client = client
        self._config = config or RedisDefinitionCacheConfig()
        self._prefix = self._config.key_prefix

    def _scope_key(self, scope: VariableScope) -> str:
        """Get cache key for a scope's active definitions."""
        class_part = scope.class_scope_id or "org"
        return f"{self._prefix}:scope:{scope.tenant_id}:{scope.category.value}:{class_part}"

    def _handle_redis_error(self, operation: str, error: redis.RedisError) -> None:
        DEFINITION_CACHE_ERRORS.labels(operation=operation).inc()
        logger.warning(
            "definition_cache_error",
            operation=operation,
            error=str(error),
            fallback=self._config.fallback_on_error,
        )
        if not self._config.fallback_on_error:
            raise ConnectionError(
                f"Definition cache {operation} failed: {error}", cause=error
            ) from error

    async def _invalidate(self, scope: VariableScope, operation: str) -> None:
        try:
            await self._client.delete(self._scope_key(scope))
        except redis.RedisError as e:
            self._handle_redis_error("invalidate", e)
            return
        DEFINITION_CACHE_INVALIDATIONS.labels(
            tenant_id=str(scope.tenant_id), operation=operation
        ).inc()
        logger.debug(
            "definition_cache_invalidated",
            tenant_id=str(scope.tenant_id),
            category=scope.category.value,
            operation=operation,
        )

    async def save(self, definition: VariableDefinition) -> UUID:
        """Insert through the backend, then invalidate the scope."""
        definition_id = await self._backend.save(definition)
        await self._invalidate(definition.scope, "save")
        return definition_id

    async def update(self, definition: VariableDefinition) -> None:
        """Update through the backend, then invalidate the scope."""
        await self._backend.update(definition)
        await self._invalidate(definition.scope, "update")

    async def get(self, definition_id: UUID) -> VariableDefinition | None:
        return await self._backend.get(definition_id)

    async def get_by_key(
        self,
        scope: VariableScope,
        key: str,
        *,
        include_inactive: bool = False,
    ) -> VariableDefinition | None:
        return await self._backend.get_by_key(
            scope, key, include_inactive=include_inactive
        )

    async def list_for_scope(
        self,
        scope: VariableScope,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of a scope, serving active lists from Redis."""
        if include_inactive:
            return await self._backend.list_for_scope(scope, include_inactive=True)

        labels = {"tenant_id": str(scope.tenant_id), "category": scope.category.value}
        cache_key = self._scope_key(scope)
        try:
            cached = await self._client.get(cache_key)
        except redis.RedisError as e:
            self._handle_redis_error("get", e)
            cached = None
        else:
            if cached:
                DEFINITION_CACHE_HITS.labels(**labels).inc()
                logger.debug("definition_cache_hit", cache_key=cache_key)
                return _definition_list.validate_json(cached)

        DEFINITION_CACHE_MISSES.labels(**labels).inc()
        definitions = await self._backend.list_for_scope(scope)

        try:
            await self._client.setex(
                cache_key,
                self._config.ttl_seconds,
                _definition_list.dump_json(definitions),
            )
        except redis.RedisError as e:
            self._handle_redis_error("set", e)

        return definitions

    async def list_for_scopes(
        self,
        category: ScopeCategory,
        scopes: Iterable[tuple[UUID, UUID | None]],
    ) -> list[VariableDefinition]:
        # Batch loads go straight to the backend in one query.
        return await self._backend.list_for_scopes(category, scopes)

    async def list_for_class(
        self,
        tenant_id: UUID,
        class_scope_id: UUID,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        return await self._backend.list_for_class(
            tenant_id, class_scope_id, include_inactive=include_inactive
        )
