"""Tests for Prometheus metrics."""

from prometheus_client import REGISTRY

from dynvars.observability.metrics import (
    DEFINITION_CACHE_HITS,
    HYDRATION_LATENCY,
    HYDRATIONS,
    ORPHANED_VALUES,
    VALUE_WRITE_CONFLICTS,
)


class TestHydrationMetrics:
    """Tests for hydration counters and histograms."""

    def test_hydrations_counter_increments(self) -> None:
        """Counter increments with category/mode/outcome labels."""
        labels = {"category": "store", "mode": "single", "outcome": "ok"}
        before = REGISTRY.get_sample_value("dynvars_hydrations_total", labels) or 0.0
        HYDRATIONS.labels(**labels).inc()
        assert REGISTRY.get_sample_value("dynvars_hydrations_total", labels) == before + 1

    def test_latency_histogram_observes(self) -> None:
        """Histogram accepts observations."""
        HYDRATION_LATENCY.labels(category="store", mode="batch").observe(0.01)

    def test_orphaned_values_counter(self) -> None:
        """Orphan counter accepts increments by amount."""
        ORPHANED_VALUES.labels(category="submission").inc(3)


class TestStoreMetrics:
    """Tests for value-store and cache metrics."""

    def test_write_conflicts_counter(self) -> None:
        VALUE_WRITE_CONFLICTS.labels(category="store", outcome="retried").inc()

    def test_definition_cache_hits_counter(self) -> None:
        DEFINITION_CACHE_HITS.labels(tenant_id="t", category="store").inc()
