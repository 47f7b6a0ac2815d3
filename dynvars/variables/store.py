"""Abstract storage interfaces for variable definitions and values."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import Any
from uuid import UUID

from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import VariableDefinition, VariableScope, VariableValue


class VariableDefinitionStore(ABC):
    """Abstract interface for variable definition storage.

    Definitions are unique on (tenant, category, class scope, key),
    including soft-deleted ones. Listings are ordered by label.
    """

    @abstractmethod
    async def save(self, definition: VariableDefinition) -> UUID:
        """Insert a new definition.

        Raises:
            ConflictError: If the scope already holds the key
        """
        pass

    @abstractmethod
    async def update(self, definition: VariableDefinition) -> None:
        """Persist label, description, is_active and audit fields."""
        pass

    @abstractmethod
    async def get(self, definition_id: UUID) -> VariableDefinition | None:
        """Get a definition by id, active or not."""
        pass

    @abstractmethod
    async def get_by_key(
        self,
        scope: VariableScope,
        key: str,
        *,
        include_inactive: bool = False,
    ) -> VariableDefinition | None:
        """Get the definition for ``key`` within a scope."""
        pass

    @abstractmethod
    async def list_for_scope(
        self,
        scope: VariableScope,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of one scope, ordered by label."""
        pass

    @abstractmethod
    async def list_for_scopes(
        self,
        category: ScopeCategory,
        scopes: Iterable[tuple[UUID, UUID | None]],
    ) -> list[VariableDefinition]:
        """List active definitions for many (tenant, class scope) pairs at once."""
        pass

    @abstractmethod
    async def list_for_class(
        self,
        tenant_id: UUID,
        class_scope_id: UUID,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of every category bound to one class scope."""
        pass


class VariableValueStore(ABC):
    """Abstract interface for variable value storage.

    At most one value exists per (tenant, class scope, category, owner,
    key). Writes to an existing fact replace its value.
    """

    @abstractmethod
    async def set(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
        value: Any,
        *,
        actor_id: str | None = None,
    ) -> VariableValue:
        """Insert or replace a value.

        Raises:
            ConflictError: If a concurrent insert of the same fact won
        """
        pass

    @abstractmethod
    async def find_by_owner_and_key(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
    ) -> VariableValue | None:
        """Get a single stored fact."""
        pass

    @abstractmethod
    async def find_for_owner(
        self,
        scope: VariableScope,
        owner_id: UUID,
    ) -> list[VariableValue]:
        """List every value stored for one owner within a scope."""
        pass

    @abstractmethod
    async def find_for_owners(
        self,
        category: ScopeCategory,
        owner_ids: Sequence[UUID],
        *,
        tenant_ids: Sequence[UUID] | None = None,
    ) -> list[VariableValue]:
        """List values for many owners of one category in a single query."""
        pass

    @abstractmethod
    async def delete(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
    ) -> bool:
        """Delete a single fact. Returns True if it existed."""
        pass

    @abstractmethod
    async def delete_for_owner(
        self,
        scope: VariableScope,
        owner_id: UUID,
        *,
        keep_keys: Iterable[str] = (),
    ) -> int:
        """Delete an owner's values except ``keep_keys``. Returns count deleted."""
        pass

    @abstractmethod
    async def count_for_key(self, scope: VariableScope, key: str) -> int:
        """Count stored values referencing ``key`` within a scope."""
        pass
