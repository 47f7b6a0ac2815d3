"""Seed org-wide storeType definitions and values from preset dictionaries.

A preset maps variable keys to sample values for one store type. The data
type of each key is inferred from the samples across all presets:

- number -> number/number
- bool -> boolean/checkbox
- list -> select/dropdown over the union of list items
- string with 2-10 distinct values across presets -> select/dropdown
- any other string -> string/text

Nested objects and null samples are not seeded.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from dynvars.observability.logging import get_logger
from dynvars.variables.enums import DataType, InputType, ScopeCategory
from dynvars.variables.models import (
    DefinitionPayload,
    OwnerRef,
    VariableScope,
    is_finite_number,
)
from dynvars.variables.registry import DefinitionRegistry
from dynvars.variables.values import VariableValueService

logger = get_logger(__name__)

# Preset fields that describe the store type itself, not a variable
RESERVED_KEYS = frozenset({"name", "label", "description"})

MIN_SELECT_OPTIONS = 2
MAX_SELECT_OPTIONS = 10

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class PresetSeedReport(BaseModel):
    """What a seeding run created, skipped and wrote."""

    created: list[str] = Field(default_factory=list, description="Keys registered")
    skipped: list[str] = Field(default_factory=list, description="Keys already present")
    values_written: int = Field(default=0, description="Values written for store types")


def humanize_key(key: str) -> str:
    """Turn ``startingBalance`` or ``max_daily_capacity`` into a label."""
    words = _CAMEL_BOUNDARY.sub(" ", key).replace("_", " ").split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _unique(values: Iterable[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        if value not in seen:
            seen.append(value)
    return seen


def _infer_payload(key: str, samples: list[Any]) -> DefinitionPayload | None:
    label = humanize_key(key)
    first = samples[0]

    if isinstance(first, bool):
        return DefinitionPayload(
            key=key,
            label=label,
            data_type=DataType.BOOLEAN,
            input_type=InputType.CHECKBOX,
            default_value=first,
        )
    if is_finite_number(first):
        return DefinitionPayload(
            key=key,
            label=label,
            data_type=DataType.NUMBER,
            input_type=InputType.NUMBER,
            default_value=first,
        )
    if isinstance(first, list):
        options = _unique(
            item
            for sample in samples
            if isinstance(sample, list)
            for item in sample
            if isinstance(item, str | int | float)
        )
        if not options:
            return None
        return DefinitionPayload(
            key=key,
            label=label,
            data_type=DataType.SELECT,
            input_type=InputType.DROPDOWN,
            options=options,
        )
    if isinstance(first, str):
        distinct = _unique(sample for sample in samples if isinstance(sample, str))
        if MIN_SELECT_OPTIONS <= len(distinct) <= MAX_SELECT_OPTIONS:
            return DefinitionPayload(
                key=key,
                label=label,
                data_type=DataType.SELECT,
                input_type=InputType.DROPDOWN,
                options=distinct,
            )
        return DefinitionPayload(
            key=key,
            label=label,
            data_type=DataType.STRING,
            input_type=InputType.TEXT,
        )
    return None


def infer_definition_payloads(
    presets: Mapping[str, Mapping[str, Any]],
) -> list[DefinitionPayload]:
    """Infer one definition payload per variable key found in the presets.

    Keys keep first-seen order. The first non-null sample decides the type.
    """
    samples: dict[str, list[Any]] = {}
    for preset in presets.values():
        for key, value in preset.items():
            if key in RESERVED_KEYS or value is None:
                continue
            samples.setdefault(key, []).append(value)

    payloads = []
    for key, values in samples.items():
        payload = _infer_payload(key, values)
        if payload is None:
            logger.debug("preset_key_not_seedable", key=key)
            continue
        payloads.append(payload)
    return payloads


def preset_value(value: Any) -> Any:
    """Stored value for a preset sample; lists contribute their first item."""
    if isinstance(value, list):
        return value[0] if value else None
    if isinstance(value, str):
        return value.strip()
    return value


async def seed_store_type_definitions(
    registry: DefinitionRegistry,
    tenant_id: UUID,
    presets: Mapping[str, Mapping[str, Any]],
    *,
    actor_id: str = "system_seed",
) -> PresetSeedReport:
    """Register the inferred storeType definitions for a tenant.

    Keys already registered in the scope (active or not) are skipped, so
    running it twice is harmless.
    """
    scope = VariableScope.org_wide(tenant_id, ScopeCategory.STORE_TYPE)
    existing = {
        d.key
        for d in await registry.definitions_for_scope(scope, include_inactive=True)
    }
    report = PresetSeedReport()
    for payload in infer_definition_payloads(presets):
        if payload.key in existing:
            report.skipped.append(payload.key)
            continue
        await registry.register(scope, payload, actor_id=actor_id)
        report.created.append(payload.key)

    logger.info(
        "store_type_definitions_seeded",
        tenant_id=str(tenant_id),
        created=len(report.created),
        skipped=len(report.skipped),
    )
    return report


async def seed_store_types(
    registry: DefinitionRegistry,
    service: VariableValueService,
    tenant_id: UUID,
    presets: Mapping[str, Mapping[str, Any]],
    store_type_ids: Mapping[str, UUID],
    *,
    actor_id: str = "system_seed",
) -> PresetSeedReport:
    """Seed definitions, then write each preset's values for its store type.

    Args:
        registry: Definition registry
        service: Value service used for the writes
        tenant_id: Tenant owning the store types
        presets: Preset name -> {variable key: sample value}
        store_type_ids: Preset name -> StoreType id to receive the values
        actor_id: Actor recorded on every write
    """
    report = await seed_store_type_definitions(
        registry, tenant_id, presets, actor_id=actor_id
    )
    scope = VariableScope.org_wide(tenant_id, ScopeCategory.STORE_TYPE)
    seeded_keys = {
        d.key for d in await registry.definitions_for_scope(scope)
    }

    for preset_name, preset in presets.items():
        store_type_id = store_type_ids.get(preset_name)
        if store_type_id is None:
            continue
        owner = OwnerRef(kind=ScopeCategory.STORE_TYPE, id=store_type_id)
        for key, sample in preset.items():
            if key not in seeded_keys:
                continue
            value = preset_value(sample)
            if value is None or value == "":
                continue
            await service.set_value(scope, owner, key, value, actor_id=actor_id)
            report.values_written += 1

    return report
