"""Population overlay: hydrate runtime variables onto owner entities."""

from dynvars.population.accessors import (
    class_scope_accessor,
    org_scope_accessor,
    owner_id_accessor,
    reference_id,
)
from dynvars.population.cache import VariableCache
from dynvars.population.merge import HydratedView, MergedEntry, merge_entries, render
from dynvars.population.overlay import (
    OverlayConfig,
    PopulationOverlay,
    cache_for,
    overlay_for,
)

__all__ = [
    "HydratedView",
    "MergedEntry",
    "OverlayConfig",
    "PopulationOverlay",
    "VariableCache",
    "cache_for",
    "class_scope_accessor",
    "merge_entries",
    "org_scope_accessor",
    "overlay_for",
    "owner_id_accessor",
    "reference_id",
    "render",
]
