"""Bootstrap the variable engine from configuration.

Wires logging, stores, registry, value service and owner overlays in one
call, for applications, scripts and notebooks.

Example usage:

    from dynvars.bootstrap import bootstrap

    engine = bootstrap()
    definition = await engine.registry.register(scope, payload)
    await engine.overlays.store.hydrate(store)
"""

from dataclasses import dataclass

import redis.asyncio as redis
from prometheus_client import start_http_server

from dynvars.config import get_settings
from dynvars.config.settings import Settings
from dynvars.db.pool import PostgresPool
from dynvars.observability.logging import get_logger, setup_logging
from dynvars.owners.overlays import OwnerOverlays, configure_overlays
from dynvars.variables.factory import StoreBundle, create_stores
from dynvars.variables.registry import DefinitionRegistry
from dynvars.variables.values import VariableValueService

logger = get_logger(__name__)


@dataclass
class VariableEngine:
    """Everything needed to define, store and populate variables."""

    settings: Settings
    stores: StoreBundle
    registry: DefinitionRegistry
    values: VariableValueService
    overlays: OwnerOverlays

    async def close(self) -> None:
        await self.stores.close()


def bootstrap(
    settings: Settings | None = None,
    *,
    pool: PostgresPool | None = None,
    redis_client: redis.Redis | None = None,
    configure_logging: bool = True,
    serve_metrics: bool = False,
) -> VariableEngine:
    """Build a VariableEngine.

    Args:
        settings: Settings to use (default: loaded from TOML and env)
        pool: Existing PostgreSQL pool for postgres backends
        redis_client: Existing Redis client for the definition cache
        configure_logging: Apply the configured logging setup
        serve_metrics: Start the Prometheus HTTP server if metrics are enabled

    Returns:
        Wired VariableEngine
    """
    settings = settings or get_settings()
    observability = settings.observability

    if configure_logging:
        setup_logging(
            level=observability.logging.level,
            format=observability.logging.format,
            redact_pii=observability.logging.redact_pii,
        )

    if serve_metrics and observability.metrics.enabled:
        start_http_server(observability.metrics.port)
        logger.info("metrics_server_started", port=observability.metrics.port)

    stores = create_stores(settings, pool=pool, redis_client=redis_client)
    registry = DefinitionRegistry(stores.definitions, stores.values)
    values = VariableValueService(
        stores.values,
        stores.definitions,
        conflict_retries=settings.overlay.conflict_retries,
    )
    overlays = configure_overlays(stores.definitions, stores.values, settings.overlay)

    logger.info(
        "variable_engine_bootstrapped",
        app_name=settings.app_name,
        field_name=settings.overlay.field_name,
        eager_hydration=settings.overlay.eager_hydration,
    )
    return VariableEngine(
        settings=settings,
        stores=stores,
        registry=registry,
        values=values,
        overlays=overlays,
    )
