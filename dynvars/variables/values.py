"""Write paths for variable values.

Wraps a VariableValueStore with owner checks, single-value validation,
a bounded retry on uniqueness conflicts and the replace-all semantics
used when an owner's whole variable map is saved at once.
"""

from collections.abc import Mapping
from typing import Any

from dynvars.db.errors import ConflictError
from dynvars.observability.logging import get_logger
from dynvars.observability.metrics import VALUE_WRITE_CONFLICTS
from dynvars.variables import validation
from dynvars.variables.errors import InvalidVariablesError
from dynvars.variables.models import OwnerRef, VariableScope, VariableValue
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore
from dynvars.variables.validation import (
    VariableValidator,
    is_unset,
    normalize_value,
    validate_values,
)

logger = get_logger(__name__)


class VariableValueService:
    """Sets, replaces and deletes variable values for owners."""

    def __init__(
        self,
        values: VariableValueStore,
        definitions: VariableDefinitionStore,
        *,
        conflict_retries: int = 1,
    ) -> None:
        """Initialize the service.

        Args:
            values: Value store
            definitions: Definition store used for write-time validation
            conflict_retries: Extra attempts after a ConflictError
        """
        self._values = values
        self._definitions = definitions
        self._conflict_retries = conflict_retries
        self._validator = VariableValidator()

    @staticmethod
    def _check_owner(scope: VariableScope, owner: OwnerRef) -> None:
        if owner.kind != scope.category:
            raise ValueError(
                f"Owner kind {owner.kind.value} does not match scope category "
                f"{scope.category.value}"
            )

    async def _write(
        self,
        scope: VariableScope,
        owner: OwnerRef,
        key: str,
        value: Any,
        actor_id: str | None,
    ) -> VariableValue:
        attempt = 0
        while True:
            try:
                stored = await self._values.set(
                    scope, owner.id, key, value, actor_id=actor_id
                )
            except ConflictError:
                if attempt >= self._conflict_retries:
                    VALUE_WRITE_CONFLICTS.labels(
                        category=scope.category.value, outcome="failed"
                    ).inc()
                    raise
                attempt += 1
                VALUE_WRITE_CONFLICTS.labels(
                    category=scope.category.value, outcome="retried"
                ).inc()
                logger.info(
                    "variable_value_conflict_retry",
                    owner_id=str(owner.id),
                    key=key,
                    attempt=attempt,
                )
                continue

            logger.debug(
                "variable_value_set",
                category=scope.category.value,
                owner_id=str(owner.id),
                key=key,
            )
            return stored

    async def set_value(
        self,
        scope: VariableScope,
        owner: OwnerRef,
        key: str,
        value: Any,
        *,
        actor_id: str | None = None,
        validate: bool = True,
    ) -> VariableValue:
        """Set one value for an owner.

        Keys with an active definition are validated first, and numeric
        strings for number definitions are stored as numbers. Keys without
        a definition are stored as-is.

        Raises:
            InvalidVariablesError: If the value fails its definition
            ConflictError: If the write still conflicts after retrying
        """
        self._check_owner(scope, owner)
        definition = await self._definitions.get_by_key(scope, key)
        if validate and definition is not None:
            issues = self._validator.validate_value(definition, value)
            if issues:
                raise InvalidVariablesError(issues)
        value = normalize_value(definition, value)
        return await self._write(scope, owner, key, value, actor_id)

    async def set_many(
        self,
        scope: VariableScope,
        owner: OwnerRef,
        values: Mapping[str, Any],
        *,
        actor_id: str | None = None,
    ) -> list[VariableValue]:
        """Set several values, leaving other stored keys alone."""
        self._check_owner(scope, owner)
        definitions = {
            d.key: d for d in await self._definitions.list_for_scope(scope) if d.key in values
        }
        result = validate_values(definitions.values(), values)
        if not result.is_valid:
            raise InvalidVariablesError(result.errors)
        return [
            await self._write(
                scope, owner, key, normalize_value(definitions.get(key), value), actor_id
            )
            for key, value in values.items()
            if not is_unset(value)
        ]

    async def replace_for_owner(
        self,
        scope: VariableScope,
        owner: OwnerRef,
        values: Mapping[str, Any],
        *,
        validate: bool = True,
        apply_defaults: bool = False,
        actor_id: str | None = None,
    ) -> dict[str, Any]:
        """Make ``values`` the owner's complete variable set.

        Stored keys absent from ``values`` (or set to an unset value) are
        deleted.

        Args:
            scope: Owner's scope
            owner: Owner reference
            values: New value map
            validate: Validate against active definitions before writing
            apply_defaults: Fill definition defaults after validating
            actor_id: Actor recorded on writes

        Returns:
            The value map as written
        """
        self._check_owner(scope, owner)
        definitions = await self._definitions.list_for_scope(scope)
        if validate:
            result = validate_values(definitions, values)
            if not result.is_valid:
                raise InvalidVariablesError(result.errors)
        if apply_defaults:
            values = validation.apply_defaults(definitions, values)

        by_key = {d.key: d for d in definitions}
        written: dict[str, Any] = {}
        for key, value in values.items():
            if is_unset(value):
                continue
            value = normalize_value(by_key.get(key), value)
            await self._write(scope, owner, key, value, actor_id)
            written[key] = value

        removed = await self._values.delete_for_owner(
            scope, owner.id, keep_keys=written.keys()
        )
        logger.info(
            "variable_values_replaced",
            category=scope.category.value,
            owner_id=str(owner.id),
            written=len(written),
            removed=removed,
        )
        return written

    async def delete_value(
        self, scope: VariableScope, owner: OwnerRef, key: str
    ) -> bool:
        """Delete one stored value. Returns True if it existed."""
        self._check_owner(scope, owner)
        return await self._values.delete(scope, owner.id, key)

    async def delete_all_for_owner(self, scope: VariableScope, owner: OwnerRef) -> int:
        """Delete every stored value of an owner in a scope."""
        self._check_owner(scope, owner)
        return await self._values.delete_for_owner(scope, owner.id)
