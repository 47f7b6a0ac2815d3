"""PostgreSQL implementations of the variable stores.

Uses asyncpg through PostgresPool. JSONB columns (options, default_value,
value) are encoded with json on the way in and decoded on the way out.
"""

import json
from collections.abc import Iterable, Sequence
from typing import Any
from uuid import UUID, uuid4

import asyncpg
from pydantic import ValidationError as PydanticValidationError

from dynvars.db.errors import ValidationError
from dynvars.db.pool import PostgresPool
from dynvars.observability.logging import get_logger
from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import VariableDefinition, VariableScope, VariableValue
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore

logger = get_logger(__name__)

_DEFINITION_COLUMNS = """
    id, tenant_id, category, class_scope_id, key, label, description,
    data_type, input_type, options, default_value, min, max, required,
    affects_calculation, is_active, created_by, updated_by, created_at, updated_at
"""

_VALUE_COLUMNS = """
    id, tenant_id, class_scope_id, category, owner_id, variable_key, value,
    created_by, updated_by, created_at, updated_at
"""


def _row_to_definition(row: asyncpg.Record) -> VariableDefinition:
    """Convert database row to VariableDefinition."""
    data = dict(row)
    data["options"] = json.loads(data["options"]) if data["options"] else []
    if data["default_value"] is not None:
        data["default_value"] = json.loads(data["default_value"])
    try:
        return VariableDefinition.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Corrupt variable definition row {data.get('id')}", cause=e
        ) from e


def _row_to_value(row: asyncpg.Record) -> VariableValue:
    """Convert database row to VariableValue."""
    data = dict(row)
    data["value"] = json.loads(data["value"])
    try:
        return VariableValue.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Corrupt variable value row {data.get('id')}", cause=e) from e


class PostgresVariableDefinitionStore(VariableDefinitionStore):
    """PostgreSQL implementation of VariableDefinitionStore."""

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

    async def save(self, definition: VariableDefinition) -> UUID:
        """Insert a new definition.

        The unique (tenant, category, class scope, key) constraint surfaces
        as ConflictError from the pool.
        """
        data = definition.model_dump(mode="json")
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO variable_definitions (
                    id, tenant_id, category, class_scope_id, key, label,
                    description, data_type, input_type, options, default_value,
                    min, max, required, affects_calculation, is_active,
                    created_by, updated_by, created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11::jsonb,
                    $12, $13, $14, $15, $16, $17, $18, $19, $20
                )
                """,
                definition.id,
                definition.tenant_id,
                definition.category.value,
                definition.class_scope_id,
                definition.key,
                definition.label,
                definition.description,
                definition.data_type.value,
                definition.input_type.value,
                json.dumps(data["options"]),
                json.dumps(definition.default_value)
                if definition.default_value is not None
                else None,
                definition.min,
                definition.max,
                definition.required,
                definition.affects_calculation,
                definition.is_active,
                definition.created_by,
                definition.updated_by,
                definition.created_at,
                definition.updated_at,
            )
        logger.debug(
            "variable_definition_saved",
            definition_id=str(definition.id),
            key=definition.key,
        )
        return definition.id

    async def update(self, definition: VariableDefinition) -> None:
        """Persist mutable fields of an existing definition."""
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE variable_definitions
                SET label = $2, description = $3, is_active = $4,
                    updated_by = $5, updated_at = NOW()
                WHERE id = $1
                """,
                definition.id,
                definition.label,
                definition.description,
                definition.is_active,
                definition.updated_by,
            )

    async def get(self, definition_id: UUID) -> VariableDefinition | None:
        """Get a definition by id."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_DEFINITION_COLUMNS} FROM variable_definitions WHERE id = $1",
                definition_id,
            )
        return _row_to_definition(row) if row else None

    async def get_by_key(
        self,
        scope: VariableScope,
        key: str,
        *,
        include_inactive: bool = False,
    ) -> VariableDefinition | None:
        """Get the definition for ``key`` within a scope."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_DEFINITION_COLUMNS} FROM variable_definitions
                WHERE tenant_id = $1
                  AND category = $2
                  AND class_scope_id IS NOT DISTINCT FROM $3
                  AND key = $4
                  AND (is_active OR $5)
                """,
                scope.tenant_id,
                scope.category.value,
                scope.class_scope_id,
                key,
                include_inactive,
            )
        return _row_to_definition(row) if row else None

    async def list_for_scope(
        self,
        scope: VariableScope,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of one scope, ordered by label."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_DEFINITION_COLUMNS} FROM variable_definitions
                WHERE tenant_id = $1
                  AND category = $2
                  AND class_scope_id IS NOT DISTINCT FROM $3
                  AND (is_active OR $4)
                ORDER BY label, key
                """,
                scope.tenant_id,
                scope.category.value,
                scope.class_scope_id,
                include_inactive,
            )
        return [_row_to_definition(row) for row in rows]

    async def list_for_scopes(
        self,
        category: ScopeCategory,
        scopes: Iterable[tuple[UUID, UUID | None]],
    ) -> list[VariableDefinition]:
        """List active definitions for many scope pairs in one query."""
        pairs = list(dict.fromkeys(scopes))
        if not pairs:
            return []
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_DEFINITION_COLUMNS} FROM variable_definitions AS d
                WHERE d.category = $1
                  AND d.is_active
                  AND EXISTS (
                      SELECT 1 FROM unnest($2::uuid[], $3::uuid[]) AS s(tenant_id, class_scope_id)
                      WHERE s.tenant_id = d.tenant_id
                        AND s.class_scope_id IS NOT DISTINCT FROM d.class_scope_id
                  )
                ORDER BY d.label, d.key
                """,
                category.value,
                [tenant_id for tenant_id, _ in pairs],
                [class_scope_id for _, class_scope_id in pairs],
            )
        return [_row_to_definition(row) for row in rows]

    async def list_for_class(
        self,
        tenant_id: UUID,
        class_scope_id: UUID,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """List definitions of every category bound to a class scope."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_DEFINITION_COLUMNS} FROM variable_definitions
                WHERE tenant_id = $1
                  AND class_scope_id = $2
                  AND (is_active OR $3)
                ORDER BY label, key
                """,
                tenant_id,
                class_scope_id,
                include_inactive,
            )
        return [_row_to_definition(row) for row in rows]


class PostgresVariableValueStore(VariableValueStore):
    """PostgreSQL implementation of VariableValueStore.

    ``set`` is a single INSERT ... ON CONFLICT DO UPDATE so concurrent
    writers of the same fact never create a second row; the last write wins.
    """

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize with connection pool.

        Args:
            pool: PostgreSQL connection pool
        """
        self._pool = pool

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
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO variable_values (
                    id, tenant_id, class_scope_id, category, owner_id,
                    variable_key, value, created_by, updated_by
                ) VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $8)
                ON CONFLICT ON CONSTRAINT uq_variable_value_fact DO UPDATE SET
                    value = EXCLUDED.value,
                    updated_by = EXCLUDED.updated_by,
                    updated_at = NOW()
                RETURNING {_VALUE_COLUMNS}
                """,
                uuid4(),
                scope.tenant_id,
                scope.class_scope_id,
                scope.category.value,
                owner_id,
                key,
                json.dumps(value),
                actor_id,
            )
        return _row_to_value(row)

    async def find_by_owner_and_key(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
    ) -> VariableValue | None:
        """Get a single stored fact."""
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_VALUE_COLUMNS} FROM variable_values
                WHERE tenant_id = $1
                  AND class_scope_id IS NOT DISTINCT FROM $2
                  AND category = $3
                  AND owner_id = $4
                  AND variable_key = $5
                """,
                scope.tenant_id,
                scope.class_scope_id,
                scope.category.value,
                owner_id,
                key,
            )
        return _row_to_value(row) if row else None

    async def find_for_owner(
        self,
        scope: VariableScope,
        owner_id: UUID,
    ) -> list[VariableValue]:
        """List values for one owner within a scope."""
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_VALUE_COLUMNS} FROM variable_values
                WHERE tenant_id = $1
                  AND class_scope_id IS NOT DISTINCT FROM $2
                  AND category = $3
                  AND owner_id = $4
                ORDER BY variable_key
                """,
                scope.tenant_id,
                scope.class_scope_id,
                scope.category.value,
                owner_id,
            )
        return [_row_to_value(row) for row in rows]

    async def find_for_owners(
        self,
        category: ScopeCategory,
        owner_ids: Sequence[UUID],
        *,
        tenant_ids: Sequence[UUID] | None = None,
    ) -> list[VariableValue]:
        """List values for many owners of one category in one query."""
        if not owner_ids:
            return []
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_VALUE_COLUMNS} FROM variable_values
                WHERE category = $1
                  AND owner_id = ANY($2::uuid[])
                  AND ($3::uuid[] IS NULL OR tenant_id = ANY($3::uuid[]))
                ORDER BY owner_id, variable_key
                """,
                category.value,
                list(owner_ids),
                list(tenant_ids) if tenant_ids is not None else None,
            )
        return [_row_to_value(row) for row in rows]

    async def delete(
        self,
        scope: VariableScope,
        owner_id: UUID,
        key: str,
    ) -> bool:
        """Delete a single fact."""
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM variable_values
                WHERE tenant_id = $1
                  AND class_scope_id IS NOT DISTINCT FROM $2
                  AND category = $3
                  AND owner_id = $4
                  AND variable_key = $5
                """,
                scope.tenant_id,
                scope.class_scope_id,
                scope.category.value,
                owner_id,
                key,
            )
        return result == "DELETE 1"

    async def delete_for_owner(
        self,
        scope: VariableScope,
        owner_id: UUID,
        *,
        keep_keys: Iterable[str] = (),
    ) -> int:
        """Delete an owner's values except ``keep_keys``."""
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM variable_values
                WHERE tenant_id = $1
                  AND class_scope_id IS NOT DISTINCT FROM $2
                  AND category = $3
                  AND owner_id = $4
                  AND NOT (variable_key = ANY($5::text[]))
                """,
                scope.tenant_id,
                scope.class_scope_id,
                scope.category.value,
                owner_id,
                list(keep_keys),
            )
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(result.split()[-1])

    async def count_for_key(self, scope: VariableScope, key: str) -> int:
        """Count values referencing ``key`` within a scope."""
        async with self._pool.acquire() as conn:
            count = await conn.fetchval(
                """
                SELECT COUNT(*) FROM variable_values
                WHERE tenant_id = $1
                  AND class_scope_id IS NOT DISTINCT FROM $2
                  AND category = $3
                  AND variable_key = $4
                """,
                scope.tenant_id,
                scope.class_scope_id,
                scope.category.value,
                key,
            )
        return int(count)
