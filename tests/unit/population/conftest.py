"""Fixtures for population overlay tests."""

from collections import Counter
from collections.abc import Generator
from uuid import UUID

import pytest

from dynvars.owners.base import VariableOwner
from dynvars.population import OverlayConfig, PopulationOverlay, class_scope_accessor
from dynvars.variables.enums import OutputShape, ScopeCategory
from dynvars.variables.stores.inmemory import (
    InMemoryVariableDefinitionStore,
    InMemoryVariableValueStore,
)


class CountingDefinitionStore(InMemoryVariableDefinitionStore):
    """In-memory definition store that counts read queries."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: Counter[str] = Counter()

    async def list_for_scope(self, scope, *, include_inactive=False):
        self.calls["list_for_scope"] += 1
        return await super().list_for_scope(scope, include_inactive=include_inactive)

    async def list_for_scopes(self, category, scopes):
        self.calls["list_for_scopes"] += 1
        return await super().list_for_scopes(category, scopes)


class CountingValueStore(InMemoryVariableValueStore):
    """In-memory value store that counts read queries."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: Counter[str] = Counter()

    async def find_for_owner(self, scope, owner_id):
        self.calls["find_for_owner"] += 1
        return await super().find_for_owner(scope, owner_id)

    async def find_for_owners(self, category, owner_ids, *, tenant_ids=None):
        self.calls["find_for_owners"] += 1
        return await super().find_for_owners(category, owner_ids, tenant_ids=tenant_ids)


class Booth(VariableOwner):
    """Minimal class-scoped owner used to exercise overlays directly."""

    classroom_id: UUID | None = None
    name: str = "booth"


@pytest.fixture
def counting_definitions() -> CountingDefinitionStore:
    return CountingDefinitionStore()


@pytest.fixture
def counting_values() -> CountingValueStore:
    return CountingValueStore()


@pytest.fixture
def make_overlay(counting_definitions, counting_values) -> Generator:
    """Factory fixture installing an overlay on Booth (or another class)."""
    installed: list[type] = []

    def _make(
        shape: OutputShape = OutputShape.DEFINITION_ARRAY,
        owner_cls: type = Booth,
        **overrides,
    ) -> PopulationOverlay:
        config = OverlayConfig(
            category=ScopeCategory.STORE,
            output_shape=shape,
            scope_accessor=class_scope_accessor(ScopeCategory.STORE),
            **overrides,
        )
        overlay = PopulationOverlay(config, counting_definitions, counting_values)
        overlay.install(owner_cls)
        installed.append(owner_cls)
        return overlay

    yield _make
    for owner_cls in installed:
        PopulationOverlay.uninstall(owner_cls)


@pytest.fixture
def booth_cls() -> type[Booth]:
    return Booth
