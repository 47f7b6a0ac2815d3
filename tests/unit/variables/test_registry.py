"""Tests for DefinitionRegistry."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from dynvars.db.errors import ConflictError
from dynvars.variables.enums import DataType, InputType, ScopeCategory
from dynvars.variables.errors import ConfigurationError, DefinitionNotFoundError
from dynvars.variables.models import DefinitionPayload, OwnerRef, VariableScope
from dynvars.variables.registry import DefinitionRegistry, resolve_input_type
from dynvars.variables.stores.inmemory import InMemoryVariableDefinitionStore


def number_payload(key="expectedDemand", label="Expected Demand", **overrides):
    return {"key": key, "label": label, "data_type": "number", **overrides}


class TestResolveInputType:
    """Tests for dataType/inputType compatibility."""

    @pytest.mark.parametrize(
        ("data_type", "expected"),
        [
            (DataType.NUMBER, InputType.NUMBER),
            (DataType.STRING, InputType.TEXT),
            (DataType.BOOLEAN, InputType.CHECKBOX),
        ],
    )
    def test_defaults_per_data_type(self, data_type, expected):
        payload = DefinitionPayload(key="k", label="K", data_type=data_type)
        assert resolve_input_type(payload) == expected

    @pytest.mark.parametrize(
        ("data_type", "input_type"),
        [
            (DataType.NUMBER, InputType.SLIDER),
            (DataType.NUMBER, InputType.KNOB),
            (DataType.STRING, InputType.SELECTBUTTON),
            (DataType.STRING, InputType.MULTIPLE_CHOICE),
        ],
    )
    def test_allowed_pairs(self, data_type, input_type):
        payload = DefinitionPayload(
            key="k", label="K", data_type=data_type, input_type=input_type
        )
        assert resolve_input_type(payload) == input_type

    @pytest.mark.parametrize(
        ("data_type", "input_type"),
        [
            (DataType.NUMBER, InputType.TEXT),
            (DataType.BOOLEAN, InputType.SWITCH),
            (DataType.STRING, InputType.CHECKBOX),
            (DataType.SELECT, InputType.SLIDER),
        ],
    )
    def test_rejected_pairs(self, data_type, input_type):
        payload = DefinitionPayload(
            key="k", label="K", data_type=data_type, input_type=input_type, options=["a"]
        )
        with pytest.raises(ConfigurationError, match="Invalid inputType"):
            resolve_input_type(payload)

    def test_select_requires_options(self):
        payload = DefinitionPayload(key="k", label="K", data_type=DataType.SELECT)
        with pytest.raises(ConfigurationError, match="Options are required"):
            resolve_input_type(payload)

    def test_string_dropdown_requires_options(self):
        payload = DefinitionPayload(
            key="k", label="K", data_type=DataType.STRING, input_type=InputType.DROPDOWN
        )
        with pytest.raises(ConfigurationError, match="Options are required"):
            resolve_input_type(payload)

    def test_min_above_max(self):
        payload = DefinitionPayload(
            key="k", label="K", data_type=DataType.NUMBER, min=10, max=1
        )
        with pytest.raises(ConfigurationError, match="cannot exceed"):
            resolve_input_type(payload)


class TestRegister:
    """Tests for definition registration."""

    @pytest.mark.asyncio
    async def test_register_stores_definition(self, registry, store_scope):
        definition = await registry.register(
            store_scope, number_payload(min=0), actor_id="teacher-1"
        )

        assert definition.tenant_id == store_scope.tenant_id
        assert definition.class_scope_id == store_scope.class_scope_id
        assert definition.input_type == InputType.NUMBER
        assert definition.created_by == "teacher-1"
        assert definition.is_active

        stored = await registry.get_by_key(store_scope, "expectedDemand")
        assert stored is not None
        assert stored.id == definition.id

    @pytest.mark.asyncio
    async def test_register_accepts_payload_model(self, registry, store_type_scope):
        payload = DefinitionPayload(key="rent", label="Rent", data_type=DataType.NUMBER)
        definition = await registry.register(store_type_scope, payload)
        assert definition.category == ScopeCategory.STORE_TYPE
        assert definition.class_scope_id is None

    @pytest.mark.asyncio
    async def test_duplicate_key_in_scope_rejected(self, registry, store_scope):
        await registry.register(store_scope, number_payload())

        with pytest.raises(ConfigurationError, match="already exists") as exc_info:
            await registry.register(store_scope, number_payload(label="Other"))
        assert exc_info.value.key == "expectedDemand"

    @pytest.mark.asyncio
    async def test_same_key_in_other_scope_allowed(self, registry, store_scope):
        other = VariableScope.for_class(
            store_scope.tenant_id, ScopeCategory.STORE, uuid4()
        )
        await registry.register(store_scope, number_payload())
        await registry.register(other, number_payload())

        assert len(await registry.definitions_for_scope(store_scope)) == 1
        assert len(await registry.definitions_for_scope(other)) == 1

    @pytest.mark.asyncio
    async def test_duplicate_of_inactive_key_hints_restore(self, registry, store_scope):
        definition = await registry.register(store_scope, number_payload())
        await registry.soft_delete(definition.id)

        with pytest.raises(ConfigurationError, match="restore it instead"):
            await registry.register(store_scope, number_payload())

    @pytest.mark.asyncio
    async def test_malformed_payload_rejected_before_storage(self, store_scope):
        definitions = AsyncMock(spec=InMemoryVariableDefinitionStore)
        registry = DefinitionRegistry(definitions)

        with pytest.raises(ConfigurationError, match="Invalid definition"):
            await registry.register(store_scope, {"key": "bad key", "label": "x", "data_type": "number"})
        with pytest.raises(ConfigurationError, match="Invalid inputType"):
            await registry.register(store_scope, number_payload(input_type="checkbox"))

        definitions.get_by_key.assert_not_called()
        definitions.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_default_rejected(self, registry, store_scope):
        with pytest.raises(ConfigurationError, match="Invalid default value"):
            await registry.register(store_scope, number_payload(min=0, default_value=-5))

    @pytest.mark.asyncio
    async def test_store_conflict_becomes_configuration_error(self, store_scope):
        definitions = AsyncMock(spec=InMemoryVariableDefinitionStore)
        definitions.get_by_key.return_value = None
        definitions.save.side_effect = ConflictError("duplicate")
        registry = DefinitionRegistry(definitions)

        with pytest.raises(ConfigurationError, match="already exists"):
            await registry.register(store_scope, number_payload())


class TestLookup:
    """Tests for scoped listing and lookup."""

    @pytest.mark.asyncio
    async def test_definitions_ordered_by_label(self, registry, store_scope):
        await registry.register(store_scope, number_payload(key="rent", label="Rent"))
        await registry.register(store_scope, number_payload(key="ads", label="Advertising"))

        definitions = await registry.definitions_for_scope(store_scope)
        assert [d.label for d in definitions] == ["Advertising", "Rent"]

    @pytest.mark.asyncio
    async def test_definitions_by_class_groups_categories(
        self, registry, tenant_id, class_scope_id, store_scope, submission_scope
    ):
        await registry.register(submission_scope, number_payload(key="units", label="Units"))
        await registry.register(store_scope, number_payload(key="rent", label="Rent"))
        await registry.register(
            VariableScope.org_wide(tenant_id), number_payload(key="size", label="Size")
        )

        definitions = await registry.definitions_by_class(tenant_id, class_scope_id)
        assert [(d.category, d.key) for d in definitions] == [
            (ScopeCategory.STORE, "rent"),
            (ScopeCategory.SUBMISSION, "units"),
        ]

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, registry):
        with pytest.raises(DefinitionNotFoundError):
            await registry.get(uuid4())

    @pytest.mark.asyncio
    async def test_get_by_key_ignores_inactive(self, registry, store_scope):
        definition = await registry.register(store_scope, number_payload())
        await registry.soft_delete(definition.id)
        assert await registry.get_by_key(store_scope, "expectedDemand") is None


class TestEditAndDelete:
    """Tests for edits, soft delete and restore."""

    @pytest.mark.asyncio
    async def test_update_label_and_description(self, registry, store_scope):
        definition = await registry.register(store_scope, number_payload())

        updated = await registry.update(
            definition.id,
            {"label": "Demand", "description": "Units per week"},
            actor_id="teacher-2",
        )
        assert updated.label == "Demand"
        assert updated.updated_by == "teacher-2"

        stored = await registry.get(definition.id)
        assert stored.description == "Units per week"

    @pytest.mark.asyncio
    async def test_update_rejects_empty_label(self, registry, store_scope):
        definition = await registry.register(store_scope, number_payload())

        with pytest.raises(ConfigurationError, match="Invalid definition"):
            await registry.update(definition.id, {"label": ""})

        assert (await registry.get(definition.id)).label == "Expected Demand"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["key", "data_type", "min", "options", "is_active"])
    async def test_structural_fields_are_immutable(self, registry, store_scope, field):
        definition = await registry.register(store_scope, number_payload())

        with pytest.raises(ConfigurationError, match="Cannot change"):
            await registry.update(definition.id, {field: None})

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_values(
        self, registry, value_service, value_store, store_scope
    ):
        definition = await registry.register(store_scope, number_payload())
        owner = OwnerRef(kind=ScopeCategory.STORE, id=uuid4())
        await value_service.set_value(store_scope, owner, "expectedDemand", 900)
        assert await registry.is_in_use(definition)

        deleted = await registry.soft_delete(definition.id, actor_id="teacher-1")
        assert not deleted.is_active
        assert await registry.definitions_for_scope(store_scope) == []

        stored = await value_store.find_by_owner_and_key(store_scope, owner.id, "expectedDemand")
        assert stored is not None
        assert stored.value == 900

    @pytest.mark.asyncio
    async def test_restore(self, registry, store_scope):
        definition = await registry.register(store_scope, number_payload())
        await registry.soft_delete(definition.id)

        restored = await registry.restore(definition.id)
        assert restored.is_active
        assert len(await registry.definitions_for_scope(store_scope)) == 1

    @pytest.mark.asyncio
    async def test_is_in_use_without_value_store(self, definition_store, store_scope):
        registry = DefinitionRegistry(definition_store)
        definition = await registry.register(store_scope, number_payload())
        assert await registry.is_in_use(definition) is False


class TestScopeValidation:
    """Tests for the scope-level validate and apply_defaults wrappers."""

    @pytest.mark.asyncio
    async def test_validate_against_scope(self, registry, submission_scope):
        await registry.register(
            submission_scope, number_payload(required=True, max=5000)
        )

        assert (await registry.validate(submission_scope, {"expectedDemand": 1200})).is_valid
        result = await registry.validate(submission_scope, {"expectedDemand": 9000})
        assert result.errors[0].message == "Expected Demand must be at most 5000"

    @pytest.mark.asyncio
    async def test_apply_defaults_for_scope(self, registry, submission_scope):
        await registry.register(submission_scope, number_payload(default_value=1000))

        assert await registry.apply_defaults(submission_scope, {}) == {"expectedDemand": 1000}
