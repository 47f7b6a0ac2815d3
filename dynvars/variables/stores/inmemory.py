"""In-memory implementations of the variable stores."""

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from dynvars.db.errors import ConflictError
from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import VariableDefinition, VariableScope, VariableValue
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore

ScopeKey = tuple[UUID, ScopeCategory, UUID | None]
FactKey = tuple[UUID, UUID | None, ScopeCategory, UUID, str]


def _scope_key(scope: VariableScope) -> ScopeKey:
    return (scope.tenant_id, scope.category, scope.class_scope_id)


def _by_label(definitions: Iterable[VariableDefinition]) -> list[VariableDefinition]:
    return sorted(definitions, key=lambda d: (d.label, d.key))


class InMemoryVariableDefinitionStore(VariableDefinitionStore):
    """In-memory implementation of VariableDefinitionStore for testing and development.

    Returns copies so callers must go through ``update`` to persist edits.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._definitions: dict[UUID, VariableDefinition] = {}

    def _matches(self, definition: VariableDefinition, scope: VariableScope) -> bool:
        return (
            definition.tenant_id,
            definition.category,
            definition.class_scope_id,
        ) == _scope_key(scope)

    async def save(self, definition: VariableDefinition) -> UUID:
        """Insert a new definition."""
        for existing in self._definitions.values():
            if self._matches(existing, definition.scope) and existing.key == definition.key:
                raise ConflictError(
                    f"Definition '{definition.key}' already exists in scope"
                )
        self._definitions[definition.id] = definition.model_copy(deep=True)
        return definition.id

    async def update(self, definition: VariableDefinition) -> None:
        """Persist mutable fields of an existing definition."""
        stored = self._definitions.get(definition.id)
        if stored is None:
            return
        stored.label = definition.label
        stored.description = definition.description
        stored.is_active = definition.is_active
        stored.updated_by = definition.updated_by
        stored.updated_at = datetime.now(UTC)

    async def get(self, definition_id: UUID) -> VariableDefinition | None:
        """Get a definition by id."""
        definition = self._definitions.get(definition_id)
        return definition.model_copy(deep=True) if definition else None

    async def get_by_key(
        self,
        scope: VariableScope,
        key: str,
        *,
        include_inactive: bool = False,
    ) -> VariableDefinition | None:
        """Get the definition for ``key`` within a scope."""
        for definition in self._definitions.values():
            if not self._matches(definition, scope) or definition.key != key:
                continue
            if definition.is_active or include_inactive:
                return definition.model_copy(deep=True)
        return None

    async def list_for_scope(
        self,
        scope: VariableScope,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of one scope, ordered by label."""
        return _by_label(
            d.model_copy(deep=True)
            for d in self._definitions.values()
            if self._matches(d, scope) and (d.is_active or include_inactive)
        )

    async def list_for_scopes(
        self,
        category: ScopeCategory,
        scopes: Iterable[tuple[UUID, UUID | None]],
    ) -> list[VariableDefinition]:
        """List active definitions for many scope pairs."""
        wanted = set(scopes)
        return _by_label(
            d.model_copy(deep=True)
            for d in self._definitions.values()
            if d.is_active
            and d.category == category
            and (d.tenant_id, d.class_scope_id) in wanted
        )

    async def list_for_class(
        self,
        tenant_id: UUID,
        class_scope_id: UUID,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of every category bound to a class scope."""
        return _by_label(
            d.model_copy(deep=True)
            for d in self._definitions.values()
            if d.tenant_id == tenant_id
            and d.class_scope_id == class_scope_id
            and (d.is_active or include_inactive)
        )


class InMemoryVariableValueStore(VariableValueStore):
    """In-memory implementation of VariableValueStore for testing and development."""

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._values: dict[FactKey, VariableValue] = {}

    @staticmethod
    def _fact_key(scope: VariableScope, owner_id: UUID, key: str) -> FactKey:
        return (scope.tenant_id, scope.class_scope_id, scope.category, owner_id, key)

    async def set(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
        value: Any,
        *,
        actor_id: str | None = None,
    ) -> VariableValue:
        """Insert or replace a value."""
        fact_key = self._fact_key(scope, owner_id, key)
        existing = self._values.get(fact_key)
        if existing is not None:
            existing.value = value
            existing.updated_by = actor_id
            existing.updated_at = datetime.now(UTC)
            return existing.model_copy()

        stored = VariableValue(
            tenant_id=scope.tenant_id,
            class_scope_id=scope.class_scope_id,
            category=scope.category,
            owner_id=owner_id,
            variable_key=key,
            value=value,
            created_by=actor_id,
            updated_by=actor_id,
        )
        self._values[fact_key] = stored
        return stored.model_copy()

    async def find_by_owner_and_key(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
    ) -> VariableValue | None:
        """Get a single stored fact."""
        value = self._values.get(self._fact_key(scope, owner_id, key))
        return value.model_copy() if value else None

    async def find_for_owner(
        self,
        scope: VariableScope,
        owner_id: UUID,
    ) -> list[VariableValue]:
        """List values for one owner within a scope."""
        prefix = (scope.tenant_id, scope.class_scope_id, scope.category, owner_id)
        return [
            value.model_copy()
            for fact_key, value in self._values.items()
            if fact_key[:4] == prefix
        ]

    async def find_for_owners(
        self,
        category: ScopeCategory,
        owner_ids: Sequence[UUID],
        *,
        tenant_ids: Sequence[UUID] | None = None,
    ) -> list[VariableValue]:
        """List values for many owners of one category."""
        wanted = set(owner_ids)
        tenants = set(tenant_ids) if tenant_ids is not None else None
        return [
            value.model_copy()
            for value in self._values.values()
            if value.category == category
            and value.owner_id in wanted
            and (tenants is None or value.tenant_id in tenants)
        ]

    async def delete(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
    ) -> bool:
        """Delete a single fact."""
        return self._values.pop(self._fact_key(scope, owner_id, key), None) is not None

    async def delete_for_owner(
        self,
        scope: VariableScope,
        owner_id: UUID,
        *,
        keep_keys: Iterable[str] = (),
    ) -> int:
        """Delete an owner's values except ``keep_keys``."""
        keep = set(keep_keys)
        prefix = (scope.tenant_id, scope.class_scope_id, scope.category, owner_id)
        doomed = [
            fact_key
            for fact_key in self._values
            if fact_key[:4] == prefix and fact_key[4] not in keep
        ]
        for fact_key in doomed:
            del self._values[fact_key]
        return len(doomed)

    async def count_for_key(self, scope: VariableScope, key: str) -> int:
        """Count values referencing ``key`` within a scope."""
        return sum(
            1
            for value in self._values.values()
            if value.variable_key == key
            and (value.tenant_id, value.category, value.class_scope_id) == _scope_key(scope)
        )
