"""Definition registry: registration and scoped lookup of variable definitions.

Structural checks run before any storage access, so a malformed
registration never reaches the store.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from dynvars.db.errors import ConflictError
from dynvars.observability.logging import get_logger
from dynvars.variables.enums import DataType, InputType
from dynvars.variables.errors import ConfigurationError, DefinitionNotFoundError
from dynvars.variables.models import (
    DefinitionPayload,
    ValidationResult,
    VariableDefinition,
    VariableScope,
    normalize_options,
)
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore
from dynvars.variables.validation import (
    VariableValidator,
    apply_defaults,
    validate_values,
)

logger = get_logger(__name__)

# Which presentation hints fit which stored type
INPUT_TYPES_BY_DATA_TYPE: dict[DataType, frozenset[InputType]] = {
    DataType.NUMBER: frozenset({InputType.NUMBER, InputType.SLIDER, InputType.KNOB}),
    DataType.STRING: frozenset(
        {
            InputType.TEXT,
            InputType.DROPDOWN,
            InputType.SELECTBUTTON,
            InputType.MULTIPLE_CHOICE,
        }
    ),
    DataType.BOOLEAN: frozenset({InputType.CHECKBOX}),
    DataType.SELECT: frozenset({InputType.DROPDOWN}),
}

DEFAULT_INPUT_TYPES: dict[DataType, InputType] = {
    DataType.NUMBER: InputType.NUMBER,
    DataType.STRING: InputType.TEXT,
    DataType.BOOLEAN: InputType.CHECKBOX,
    DataType.SELECT: InputType.DROPDOWN,
}

# Everything else about a definition is fixed once registered
EDITABLE_FIELDS = frozenset({"label", "description"})


def resolve_input_type(payload: DefinitionPayload) -> InputType:
    """Check a registration payload's shape and return its input type.

    Raises:
        ConfigurationError: If the payload is structurally invalid
    """
    input_type = payload.input_type or DEFAULT_INPUT_TYPES[payload.data_type]
    if input_type not in INPUT_TYPES_BY_DATA_TYPE[payload.data_type]:
        raise ConfigurationError(
            f'Invalid inputType "{input_type.value}" for dataType '
            f'"{payload.data_type.value}"',
            key=payload.key,
        )

    needs_options = (
        payload.data_type == DataType.SELECT or input_type == InputType.DROPDOWN
    )
    if needs_options and not normalize_options(payload.options):
        raise ConfigurationError(
            "Options are required for select/dropdown type", key=payload.key
        )

    if payload.min is not None and payload.max is not None and payload.min > payload.max:
        raise ConfigurationError(
            f"min ({payload.min}) cannot exceed max ({payload.max})", key=payload.key
        )

    return input_type


class DefinitionRegistry:
    """Registers, looks up and retires variable definitions.

    Definitions never change shape after registration. Removing one is a
    soft delete that keeps its stored values in place.
    """

    def __init__(
        self,
        definitions: VariableDefinitionStore,
        values: VariableValueStore | None = None,
    ) -> None:
        self._definitions = definitions
        self._values = values
        self._validator = VariableValidator()

    async def register(
        self,
        scope: VariableScope,
        payload: DefinitionPayload | Mapping[str, Any],
        *,
        actor_id: str | None = None,
    ) -> VariableDefinition:
        """Register a new definition in a scope.

        Args:
            scope: Target scope
            payload: Definition fields, as a model or a plain mapping
            actor_id: Actor recorded as creator

        Returns:
            The stored definition

        Raises:
            ConfigurationError: On a malformed payload or a duplicate key
        """
        if not isinstance(payload, DefinitionPayload):
            try:
                payload = DefinitionPayload.model_validate(payload)
            except PydanticValidationError as e:
                raise ConfigurationError(
                    f"Invalid definition: {e.errors()[0]['msg']}",
                    key=payload.get("key") if isinstance(payload, Mapping) else None,
                ) from e

        input_type = resolve_input_type(payload)
        definition = VariableDefinition(
            tenant_id=scope.tenant_id,
            category=scope.category,
            class_scope_id=scope.class_scope_id,
            input_type=input_type,
            created_by=actor_id,
            updated_by=actor_id,
            **payload.model_dump(exclude={"input_type"}),
        )

        if definition.default_value is not None:
            issues = self._validator.validate_value(definition, definition.default_value)
            if issues:
                raise ConfigurationError(
                    f"Invalid default value: {issues[0].message}", key=payload.key
                )

        existing = await self._definitions.get_by_key(
            scope, payload.key, include_inactive=True
        )
        if existing is not None:
            hint = "" if existing.is_active else " (inactive; restore it instead)"
            raise ConfigurationError(
                f"Variable '{payload.key}' already exists in this scope{hint}",
                key=payload.key,
            )

        try:
            await self._definitions.save(definition)
        except ConflictError as e:
            raise ConfigurationError(
                f"Variable '{payload.key}' already exists in this scope",
                key=payload.key,
            ) from e

        logger.info(
            "definition_registered",
            tenant_id=str(scope.tenant_id),
            category=scope.category.value,
            class_scope_id=str(scope.class_scope_id) if scope.class_scope_id else None,
            key=definition.key,
            data_type=definition.data_type.value,
        )
        return definition

    async def definitions_for_scope(
        self,
        scope: VariableScope,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """Definitions of a scope ordered by label, active only by default."""
        return await self._definitions.list_for_scope(
            scope, include_inactive=include_inactive
        )

    async def definitions_by_class(
        self,
        tenant_id: UUID,
        class_scope_id: UUID,
        *,
        include_inactive: bool = False,
    ) -> list[VariableDefinition]:
        """Every category's definitions bound to one class scope.

        Ordered by category, then label.
        """
        definitions = await self._definitions.list_for_class(
            tenant_id, class_scope_id, include_inactive=include_inactive
        )
        return sorted(definitions, key=lambda d: (d.category.value, d.label, d.key))

    async def get_by_key(
        self, scope: VariableScope, key: str
    ) -> VariableDefinition | None:
        """The active definition for ``key`` in a scope, if any."""
        return await self._definitions.get_by_key(scope, key)

    async def get(self, definition_id: UUID) -> VariableDefinition:
        """Get a definition by id, active or not.

        Raises:
            DefinitionNotFoundError: If no definition has this id
        """
        definition = await self._definitions.get(definition_id)
        if definition is None:
            raise DefinitionNotFoundError(f"Variable definition {definition_id} not found")
        return definition

    async def update(
        self,
        definition_id: UUID,
        changes: Mapping[str, Any],
        *,
        actor_id: str | None = None,
    ) -> VariableDefinition:
        """Edit the label or description of a definition.

        Raises:
            ConfigurationError: If a structural field is in ``changes``
            DefinitionNotFoundError: If no definition has this id
        """
        forbidden = set(changes) - EDITABLE_FIELDS
        if forbidden:
            raise ConfigurationError(
                f"Cannot change {', '.join(sorted(forbidden))} after registration"
            )

        definition = await self.get(definition_id)
        try:
            for field_name, value in changes.items():
                setattr(definition, field_name, value)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid definition: {e.errors()[0]['msg']}", key=definition.key
            ) from e
        definition.updated_by = actor_id
        definition.updated_at = datetime.now(UTC)
        await self._definitions.update(definition)
        return definition

    async def soft_delete(
        self,
        definition_id: UUID,
        *,
        actor_id: str | None = None,
    ) -> VariableDefinition:
        """Deactivate a definition; stored values are kept as orphans."""
        definition = await self.get(definition_id)
        if not definition.is_active:
            return definition

        if await self.is_in_use(definition):
            logger.warning(
                "definition_deleted_while_in_use",
                definition_id=str(definition_id),
                key=definition.key,
            )

        definition.is_active = False
        definition.updated_by = actor_id
        definition.updated_at = datetime.now(UTC)
        await self._definitions.update(definition)
        logger.info(
            "definition_soft_deleted",
            definition_id=str(definition_id),
            key=definition.key,
        )
        return definition

    async def restore(
        self,
        definition_id: UUID,
        *,
        actor_id: str | None = None,
    ) -> VariableDefinition:
        """Reactivate a soft-deleted definition."""
        definition = await self.get(definition_id)
        if definition.is_active:
            return definition

        definition.is_active = True
        definition.updated_by = actor_id
        definition.updated_at = datetime.now(UTC)
        await self._definitions.update(definition)
        logger.info(
            "definition_restored",
            definition_id=str(definition_id),
            key=definition.key,
        )
        return definition

    async def is_in_use(self, definition: VariableDefinition) -> bool:
        """True if any owner has a stored value for the definition's key."""
        if self._values is None:
            return False
        return await self._values.count_for_key(definition.scope, definition.key) > 0

    async def validate(
        self, scope: VariableScope, values: Mapping[str, Any]
    ) -> ValidationResult:
        """Validate ``values`` against the scope's active definitions."""
        return validate_values(await self.definitions_for_scope(scope), values)

    async def apply_defaults(
        self, scope: VariableScope, values: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Fill defaults for the scope's active definitions."""
        return apply_defaults(await self.definitions_for_scope(scope), values)
