"""Scope accessors: derive an owner's VariableScope from its attributes.

An accessor returns None when the owner has no resolvable scope, e.g. a
missing class reference. Hydration then yields an empty view.
"""

from collections.abc import Callable, Mapping
from typing import Any
from uuid import UUID

from dynvars.variables.enums import ScopeCategory
from dynvars.variables.models import VariableScope

ScopeAccessor = Callable[[Any], VariableScope | None]


def reference_id(reference: Any) -> UUID | None:
    """Read an id from a raw UUID, a UUID string or a populated reference.

    Populated references are objects with an ``id`` attribute or mappings
    with an ``id`` key.
    """
    if reference is None:
        return None
    if isinstance(reference, UUID):
        return reference
    if isinstance(reference, str):
        try:
            return UUID(reference)
        except ValueError:
            return None
    if isinstance(reference, Mapping):
        return reference_id(reference.get("id"))
    return reference_id(getattr(reference, "id", None))


def class_scope_accessor(
    category: ScopeCategory,
    *,
    tenant_attr: str = "tenant_id",
    class_scope_attr: str = "classroom_id",
) -> ScopeAccessor:
    """Accessor for categories scoped by tenant and class."""

    def accessor(owner: Any) -> VariableScope | None:
        tenant_id = reference_id(getattr(owner, tenant_attr, None))
        class_scope_id = reference_id(getattr(owner, class_scope_attr, None))
        if tenant_id is None or class_scope_id is None:
            return None
        return VariableScope.for_class(tenant_id, category, class_scope_id)

    return accessor


def org_scope_accessor(
    category: ScopeCategory = ScopeCategory.STORE_TYPE,
    *,
    tenant_attr: str = "tenant_id",
) -> ScopeAccessor:
    """Accessor for org-wide categories, scoped by tenant only."""

    def accessor(owner: Any) -> VariableScope | None:
        tenant_id = reference_id(getattr(owner, tenant_attr, None))
        if tenant_id is None:
            return None
        return VariableScope.org_wide(tenant_id, category)

    return accessor


def owner_id_accessor(owner: Any) -> UUID | None:
    """Default owner-id accessor: the owner's ``id`` attribute."""
    return reference_id(getattr(owner, "id", None))
