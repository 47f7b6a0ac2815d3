"""Variable store implementations."""

from dynvars.variables.stores.cached import CachedVariableDefinitionStore
from dynvars.variables.stores.inmemory import (
    InMemoryVariableDefinitionStore,
    InMemoryVariableValueStore,
)
from dynvars.variables.stores.postgres import (
    PostgresVariableDefinitionStore,
    PostgresVariableValueStore,
)

__all__ = [
    "CachedVariableDefinitionStore",
    "InMemoryVariableDefinitionStore",
    "InMemoryVariableValueStore",
    "PostgresVariableDefinitionStore",
    "PostgresVariableValueStore",
]
