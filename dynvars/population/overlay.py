"""Population overlay: attach runtime variables to owner entities.

An overlay is configured once per owner type. It hydrates a merged view of
definitions and values for an owner instance, caches it on that instance,
and injects it into the owner's serialized output. Serialization never
performs I/O: an owner that was not hydrated serializes an empty view.

Usage:
    overlay = PopulationOverlay(config, definition_store, value_store)
    overlay.install(Store)

    await overlay.hydrate(store)          # or hydrate_many(stores)
    store.model_dump()["variables"]
"""

import asyncio
import copy
import functools
import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID

import pydantic_core
from pydantic import BaseModel, ConfigDict, Field

from dynvars.observability.logging import get_logger
from dynvars.observability.metrics import (
    HYDRATION_CACHE_HITS,
    HYDRATION_LATENCY,
    HYDRATIONS,
    ORPHANED_VALUES,
)
from dynvars.population.accessors import ScopeAccessor, owner_id_accessor
from dynvars.population.cache import VariableCache
from dynvars.population.merge import HydratedView, empty_view, merge_entries, render
from dynvars.variables.enums import OutputShape, ScopeCategory
from dynvars.variables.models import VariableDefinition, VariableScope, VariableValue
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore

logger = get_logger(__name__)

# Owner class -> overlay installed on it
_installed: dict[type, "PopulationOverlay"] = {}


def overlay_for(owner_cls: type) -> "PopulationOverlay | None":
    """The overlay installed on ``owner_cls`` or its nearest base."""
    for cls in owner_cls.__mro__:
        overlay = _installed.get(cls)
        if overlay is not None:
            return overlay
    return None


def cache_for(owner: Any) -> VariableCache:
    """The hydration cache carried by an owner instance."""
    cache = getattr(owner, "variable_cache", None)
    if not isinstance(cache, VariableCache):
        raise TypeError(f"{type(owner).__name__} does not carry a VariableCache")
    return cache


class OverlayConfig(BaseModel):
    """Per-owner-type overlay configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    category: ScopeCategory = Field(..., description="Owner category")
    output_shape: OutputShape = Field(..., description="Serialized view shape")
    scope_accessor: ScopeAccessor = Field(
        ..., description="Derives the owner's scope, or None"
    )
    owner_id_accessor: Callable[[Any], UUID | None] = Field(
        default=owner_id_accessor, description="Derives the owner's id"
    )
    field_name: str = Field(
        default="variables", min_length=1, description="Serialized field name"
    )
    apply_defaults: bool = Field(
        default=False, description="Fill definition defaults for unset keys"
    )
    eager_hydration: bool = Field(
        default=False, description="Hydrate in the background on construction"
    )


def _wants_field(field_name: str, kwargs: dict[str, Any]) -> bool:
    include = kwargs.get("include")
    exclude = kwargs.get("exclude")
    if include is not None and field_name not in include:
        return False
    if exclude is not None and field_name in exclude:
        return False
    return True


def _wrap_model_dump(original: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
    @functools.wraps(original)
    def model_dump(self: Any, *args: Any, **kwargs: Any) -> dict[str, Any]:
        data = original(self, *args, **kwargs)
        overlay = overlay_for(type(self))
        if overlay is not None and _wants_field(overlay.field_name, kwargs):
            overlay.serialize_into(self, data, mode=kwargs.get("mode", "python"))
        return data

    model_dump.__overlay_wrapper__ = True
    return model_dump


def _wrap_model_dump_json(original: Callable[..., str]) -> Callable[..., str]:
    @functools.wraps(original)
    def model_dump_json(self: Any, *args: Any, **kwargs: Any) -> str:
        raw = original(self, *args, **kwargs)
        overlay = overlay_for(type(self))
        if overlay is None or not _wants_field(overlay.field_name, kwargs):
            return raw
        data = pydantic_core.from_json(raw)
        overlay.serialize_into(self, data, mode="json")
        return pydantic_core.to_json(data, indent=kwargs.get("indent")).decode()

    model_dump_json.__overlay_wrapper__ = True
    return model_dump_json


class PopulationOverlay:
    """Hydrates, caches and serializes runtime variables for one owner type.

    The cache is keyed to the owner instance, not its id: two in-memory
    copies of the same stored entity hydrate independently. Once hydrated,
    an instance never re-queries unless ``forget`` is called.
    """

    def __init__(
        self,
        config: OverlayConfig,
        definitions: VariableDefinitionStore,
        values: VariableValueStore,
    ) -> None:
        self._config = config
        self._definitions = definitions
        self._values = values

    @property
    def config(self) -> OverlayConfig:
        return self._config

    @property
    def category(self) -> ScopeCategory:
        return self._config.category

    @property
    def field_name(self) -> str:
        return self._config.field_name

    def empty_view(self) -> HydratedView:
        return empty_view(self._config.output_shape)

    def resolve_scope(self, owner: Any) -> VariableScope | None:
        """The owner's scope, or None when it cannot be resolved."""
        return self._config.scope_accessor(owner)

    def _merge(
        self,
        definitions: list[VariableDefinition],
        values: list[VariableValue],
    ) -> HydratedView:
        entries = merge_entries(
            definitions, values, apply_defaults=self._config.apply_defaults
        )
        orphans = [entry.key for entry in entries if entry.is_orphan]
        if orphans:
            ORPHANED_VALUES.labels(category=self.category.value).inc(len(orphans))
            logger.info(
                "orphaned_variable_values",
                category=self.category.value,
                keys=orphans,
            )
        return render(entries, self._config.output_shape)

    # Single-instance path

    async def hydrate(self, owner: Any) -> HydratedView:
        """Load, cache and return the owner's hydrated view.

        Repeated calls return the cached view without querying. Concurrent
        calls share one load. A load taken over by ``hydrate_many`` is
        waited on through the batch instead. A failed load propagates and
        leaves the instance un-hydrated.
        """
        cache = cache_for(owner)
        if cache.is_hydrated:
            HYDRATION_CACHE_HITS.labels(category=self.category.value).inc()
            return cache.view

        while True:
            pending = cache.pending
            if pending is None or pending.done():
                pending = cache.pending = asyncio.ensure_future(self._load(owner, cache))
            try:
                view = await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled() or asyncio.current_task().cancelling():
                    raise
                continue
            if view is not None:
                return view
            # Batch futures resolve to None after committing their views.
            if cache.is_hydrated:
                return cache.view

    async def _load(self, owner: Any, cache: VariableCache) -> HydratedView:
        labels = {"category": self.category.value, "mode": "single"}
        start = time.perf_counter()
        try:
            scope = self.resolve_scope(owner)
            owner_id = self._config.owner_id_accessor(owner)
            if scope is None or owner_id is None:
                view = self.empty_view()
            else:
                definitions, values = await asyncio.gather(
                    self._definitions.list_for_scope(scope),
                    self._values.find_for_owner(scope, owner_id),
                )
                view = self._merge(definitions, values)
        except Exception as e:
            HYDRATIONS.labels(**labels, outcome="error").inc()
            logger.warning(
                "hydration_failed",
                category=self.category.value,
                owner_type=type(owner).__name__,
                error=str(e),
            )
            raise
        finally:
            if cache.pending is asyncio.current_task():
                cache.pending = None
            HYDRATION_LATENCY.labels(**labels).observe(time.perf_counter() - start)

        cache.commit(view)
        HYDRATIONS.labels(**labels, outcome="ok").inc()
        logger.debug(
            "hydration_loaded",
            category=self.category.value,
            owner_id=str(owner_id) if scope is not None and owner_id else None,
            keys=len(view),
            generation=cache.generation,
        )
        return view

    def cached_or_empty(self, owner: Any) -> HydratedView:
        """The cached view, or the shape's empty value if not hydrated.

        Never triggers a load. Returns the cached object itself.
        """
        cache = cache_for(owner)
        if cache.is_hydrated:
            return cache.view
        return self.empty_view()

    def is_hydrated(self, owner: Any) -> bool:
        return cache_for(owner).is_hydrated

    def forget(self, owner: Any) -> None:
        """Drop an instance's cached view so the next hydrate re-queries."""
        cache_for(owner).reset()

    def schedule(self, owner: Any) -> asyncio.Task | None:
        """Start a background hydrate when eager hydration is enabled.

        Does nothing without a running event loop. Failures are logged and
        leave the instance un-hydrated.
        """
        if not self._config.eager_hydration:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None

        cache = cache_for(owner)
        if cache.is_hydrated or cache.pending is not None:
            return None

        task = loop.create_task(self._load(owner, cache))
        cache.pending = task
        task.add_done_callback(self._log_eager_failure)
        return task

    def _log_eager_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                "eager_hydration_failed",
                category=self.category.value,
                error=str(error),
            )

    # Batch path

    async def hydrate_many(self, owners: Iterable[Any]) -> None:
        """Hydrate many instances with one definition and one value query.

        Each instance ends up with the same view ``hydrate`` would give it.
        Already hydrated instances are skipped. Single loads still in flight
        (such as eager ones) are cancelled and folded into the batch, and
        their waiters receive the batch result. Caches are written only
        after both queries complete.
        """
        batch_owners: dict[int, Any] = {}
        for owner in owners:
            if not cache_for(owner).is_hydrated:
                batch_owners.setdefault(id(owner), owner)
        if not batch_owners:
            return

        batch = asyncio.get_running_loop().create_future()
        for owner in batch_owners.values():
            cache = cache_for(owner)
            if isinstance(cache.pending, asyncio.Task) and not cache.pending.done():
                cache.pending.cancel()
            cache.pending = batch
        try:
            await self._hydrate_batch(list(batch_owners.values()))
        finally:
            for owner in batch_owners.values():
                cache = cache_for(owner)
                if cache.pending is batch:
                    cache.pending = None
            if not batch.done():
                batch.set_result(None)

    async def _hydrate_batch(self, owners: list[Any]) -> None:
        resolvable: list[tuple[Any, VariableScope, UUID]] = []
        unresolvable: list[Any] = []
        for owner in owners:
            scope = self.resolve_scope(owner)
            owner_id = self._config.owner_id_accessor(owner)
            if scope is None or owner_id is None:
                unresolvable.append(owner)
            else:
                resolvable.append((owner, scope, owner_id))

        views: list[tuple[Any, HydratedView]] = [
            (owner, self.empty_view()) for owner in unresolvable
        ]

        if resolvable:
            labels = {"category": self.category.value, "mode": "batch"}
            scope_pairs = list(dict.fromkeys(scope.pair for _, scope, _ in resolvable))
            owner_ids = list(dict.fromkeys(owner_id for _, _, owner_id in resolvable))
            tenant_ids = list(dict.fromkeys(scope.tenant_id for _, scope, _ in resolvable))

            start = time.perf_counter()
            try:
                definitions, values = await asyncio.gather(
                    self._definitions.list_for_scopes(self.category, scope_pairs),
                    self._values.find_for_owners(
                        self.category, owner_ids, tenant_ids=tenant_ids
                    ),
                )
            except Exception as e:
                HYDRATIONS.labels(**labels, outcome="error").inc()
                logger.warning(
                    "hydration_batch_failed",
                    category=self.category.value,
                    owners=len(resolvable),
                    error=str(e),
                )
                raise
            finally:
                HYDRATION_LATENCY.labels(**labels).observe(time.perf_counter() - start)

            definitions_by_scope: dict[tuple[UUID, UUID | None], list[VariableDefinition]] = (
                defaultdict(list)
            )
            for definition in definitions:
                definitions_by_scope[(definition.tenant_id, definition.class_scope_id)].append(
                    definition
                )

            values_by_owner: dict[tuple[UUID, UUID | None, UUID], list[VariableValue]] = (
                defaultdict(list)
            )
            for value in values:
                values_by_owner[(value.tenant_id, value.class_scope_id, value.owner_id)].append(
                    value
                )

            for owner, scope, owner_id in resolvable:
                views.append(
                    (
                        owner,
                        self._merge(
                            definitions_by_scope.get(scope.pair, []),
                            values_by_owner.get((*scope.pair, owner_id), []),
                        ),
                    )
                )
            HYDRATIONS.labels(**labels, outcome="ok").inc()

        for owner, view in views:
            cache_for(owner).commit(view)

        logger.debug(
            "hydration_batch_loaded",
            category=self.category.value,
            owners=len(views),
            queried=len(resolvable),
        )

    # Serialization

    def serialize_into(
        self, owner: Any, data: dict[str, Any], mode: str = "python"
    ) -> dict[str, Any]:
        """Add a copy of the owner's cached view to serialized output.

        ``mode`` follows ``model_dump``: "json" converts ids, timestamps and
        enums in definition-array entries to JSON-ready values.
        """
        view = self.cached_or_empty(owner)
        if mode == "json":
            data[self.field_name] = pydantic_core.to_jsonable_python(view)
        else:
            data[self.field_name] = copy.deepcopy(view)
        return data

    def install(self, owner_cls: type) -> type:
        """Bind this overlay to ``owner_cls`` and wrap its serializers.

        The class's existing ``model_dump``/``model_dump_json`` are wrapped,
        not replaced, so custom serializers keep working. Installing again
        rebinds the class to the newer overlay.
        """
        if not getattr(owner_cls.model_dump, "__overlay_wrapper__", False):
            owner_cls.model_dump = _wrap_model_dump(owner_cls.model_dump)
        if not getattr(owner_cls.model_dump_json, "__overlay_wrapper__", False):
            owner_cls.model_dump_json = _wrap_model_dump_json(owner_cls.model_dump_json)
        _installed[owner_cls] = self
        logger.debug(
            "overlay_installed",
            owner_type=owner_cls.__name__,
            category=self.category.value,
            shape=self._config.output_shape.value,
        )
        return owner_cls

    @staticmethod
    def uninstall(owner_cls: type) -> None:
        """Unbind ``owner_cls``; its wrapped serializers become pass-through."""
        _installed.pop(owner_cls, None)
