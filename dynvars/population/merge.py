"""Merge active definitions with an owner's values into a hydrated view.

One merge produces an ordered list of entries; the output shape only
decides how those entries are rendered.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from dynvars.variables.enums import OutputShape
from dynvars.variables.models import VariableDefinition, VariableValue
from dynvars.variables.validation import is_unset

HydratedView = list[dict[str, Any]] | dict[str, Any]


@dataclass(frozen=True)
class MergedEntry:
    """One key of a hydrated view. ``definition`` is None for orphans."""

    key: str
    value: Any
    definition: VariableDefinition | None = None

    @property
    def is_orphan(self) -> bool:
        return self.definition is None


def merge_entries(
    definitions: Iterable[VariableDefinition],
    values: Iterable[VariableValue],
    *,
    apply_defaults: bool = False,
) -> list[MergedEntry]:
    """Merge definitions and values into ordered entries.

    Every active definition key appears, ordered by label (value None when
    unset). Values without an active definition follow, ordered by key.
    """
    stored = {value.variable_key: value.value for value in values}
    active = sorted(
        (d for d in definitions if d.is_active), key=lambda d: (d.label, d.key)
    )

    entries = []
    for definition in active:
        value = stored.pop(definition.key, None)
        if apply_defaults and is_unset(value) and definition.default_value is not None:
            value = definition.default_value
        entries.append(MergedEntry(key=definition.key, value=value, definition=definition))

    for key in sorted(stored):
        entries.append(MergedEntry(key=key, value=stored[key]))
    return entries


def render(entries: list[MergedEntry], shape: OutputShape) -> HydratedView:
    """Render merged entries in the requested output shape.

    Definition-array entries hold python-mode definition dumps (UUID and
    datetime objects); JSON output converts them when serializing.
    """
    if shape is OutputShape.VALUE_MAP:
        return {entry.key: entry.value for entry in entries}

    rendered = []
    for entry in entries:
        if entry.definition is None:
            rendered.append({"key": entry.key, "value": entry.value})
        else:
            rendered.append({**entry.definition.model_dump(), "value": entry.value})
    return rendered


def empty_view(shape: OutputShape) -> HydratedView:
    """The empty value of a shape: [] or {}."""
    return {} if shape is OutputShape.VALUE_MAP else []
