"""Prometheus metrics for dynvars.

Hydration throughput and cache effectiveness, orphaned values surfaced
during merges, value write conflicts and the Redis definition cache.
"""

from prometheus_client import Counter, Histogram

# Hydration metrics
HYDRATIONS = Counter(
    "dynvars_hydrations_total",
    "Hydration loads performed by the population overlay",
    labelnames=["category", "mode", "outcome"],
)

HYDRATION_CACHE_HITS = Counter(
    "dynvars_hydration_cache_hits_total",
    "Hydrate calls answered from the per-instance cache",
    labelnames=["category"],
)

HYDRATION_LATENCY = Histogram(
    "dynvars_hydration_latency_seconds",
    "Hydration latency in seconds",
    labelnames=["category", "mode"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

ORPHANED_VALUES = Counter(
    "dynvars_orphaned_values_total",
    "Stored values surfaced without an active definition",
    labelnames=["category"],
)

# Value store metrics
VALUE_WRITE_CONFLICTS = Counter(
    "dynvars_value_write_conflicts_total",
    "Uniqueness conflicts raised while setting variable values",
    labelnames=["category", "outcome"],
)

# Definition cache metrics
DEFINITION_CACHE_HITS = Counter(
    "dynvars_definition_cache_hits_total",
    "Definition cache hits",
    labelnames=["tenant_id", "category"],
)

DEFINITION_CACHE_MISSES = Counter(
    "dynvars_definition_cache_misses_total",
    "Definition cache misses",
    labelnames=["tenant_id", "category"],
)

DEFINITION_CACHE_ERRORS = Counter(
    "dynvars_definition_cache_errors_total",
    "Redis errors raised by the definition cache",
    labelnames=["operation"],
)

DEFINITION_CACHE_INVALIDATIONS = Counter(
    "dynvars_definition_cache_invalidations_total",
    "Definition cache invalidations",
    labelnames=["tenant_id", "operation"],
)
