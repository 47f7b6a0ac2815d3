"""Variables domain models.

Contains the Pydantic models for variable definitions (typed field
schemas), variable values (polymorphic facts) and their scopes.
"""

import math
from datetime import UTC, datetime
from typing import Annotated, Any
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    model_validator,
)

from dynvars.variables.enums import DataType, InputType, ScopeCategory

KEY_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"

# Closed set of storable value types; bool is tried first so True never
# becomes 1.
ScalarValue = Annotated[
    StrictBool | StrictInt | StrictFloat | StrictStr,
    Field(union_mode="left_to_right"),
]


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class SelectOption(BaseModel):
    """Structured select option as stored by UI layers."""

    model_config = ConfigDict(frozen=True)

    label: str | None = Field(default=None, description="Display label")
    value: ScalarValue | None = Field(default=None, description="Stored value")

    @model_validator(mode="after")
    def _require_label_or_value(self) -> "SelectOption":
        if self.value is None and self.label is None:
            raise ValueError("select option needs a value or a label")
        return self

    @property
    def normalized(self) -> Any:
        """The value this option stands for: value, else label."""
        return self.value if self.value is not None else self.label


OptionEntry = Annotated[
    StrictBool | StrictInt | StrictFloat | StrictStr | SelectOption,
    Field(union_mode="left_to_right"),
]


def normalize_options(options: list[Any]) -> list[Any]:
    """Reduce bare and structured options to their comparable values."""
    normalized = []
    for option in options:
        if isinstance(option, SelectOption):
            option = option.normalized
        elif isinstance(option, dict):
            option = option.get("value", option.get("label"))
        if option is not None:
            normalized.append(option)
    return normalized


class VariableScope(BaseModel):
    """The (tenant, category, class scope) triple a definition or value binds to.

    ``class_scope_id`` is None exactly when the category is org-wide.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: UUID = Field(..., description="Owning tenant")
    category: ScopeCategory = Field(..., description="Owner category")
    class_scope_id: UUID | None = Field(
        default=None, description="Class/cohort (None for org-wide categories)"
    )

    @model_validator(mode="after")
    def _check_class_scope(self) -> "VariableScope":
        if self.category.is_org_wide and self.class_scope_id is not None:
            raise ValueError(
                f"{self.category.value} scope is org-wide and takes no class_scope_id"
            )
        if not self.category.is_org_wide and self.class_scope_id is None:
            raise ValueError(f"{self.category.value} scope requires class_scope_id")
        return self

    @classmethod
    def for_class(
        cls, tenant_id: UUID, category: ScopeCategory, class_scope_id: UUID
    ) -> "VariableScope":
        return cls(tenant_id=tenant_id, category=category, class_scope_id=class_scope_id)

    @classmethod
    def org_wide(
        cls, tenant_id: UUID, category: ScopeCategory = ScopeCategory.STORE_TYPE
    ) -> "VariableScope":
        return cls(tenant_id=tenant_id, category=category)

    @property
    def pair(self) -> tuple[UUID, UUID | None]:
        """(tenant_id, class_scope_id), the grouping key for batch loads."""
        return (self.tenant_id, self.class_scope_id)


class OwnerRef(BaseModel):
    """Typed identity of an entity that owns variable values."""

    model_config = ConfigDict(frozen=True)

    kind: ScopeCategory = Field(..., description="Owner kind")
    id: UUID = Field(..., description="Owner identifier")


class DefinitionPayload(BaseModel):
    """Registration input for a new variable definition."""

    model_config = ConfigDict(extra="forbid")

    key: str = Field(..., pattern=KEY_PATTERN, max_length=64, description="Variable key")
    label: str = Field(..., min_length=1, description="Human-readable name")
    description: str = Field(default="", description="Purpose of the variable")
    data_type: DataType = Field(..., description="Stored type")
    input_type: InputType | None = Field(
        default=None, description="Presentation hint (defaults from data_type)"
    )
    options: list[OptionEntry] = Field(
        default_factory=list, description="Allowed values for select"
    )
    default_value: ScalarValue | None = Field(default=None, description="Default")
    min: float | None = Field(default=None, description="Lower numeric bound")
    max: float | None = Field(default=None, description="Upper numeric bound")
    required: bool = Field(default=False, description="Must be set")
    affects_calculation: bool = Field(
        default=True, description="Feeds the ledger computation"
    )


class VariableDefinition(BaseModel):
    """Typed schema of one named field within one scope.

    Structurally immutable after registration; only label/description
    edits and the is_active soft-delete flag change.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    # Identity and scope
    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    tenant_id: UUID = Field(..., description="Owning tenant")
    category: ScopeCategory = Field(..., description="Owner category")
    class_scope_id: UUID | None = Field(default=None, description="Class scope")

    # Definition
    key: str = Field(..., pattern=KEY_PATTERN, max_length=64, description="Variable key")
    label: str = Field(..., min_length=1, description="Human-readable name")
    description: str = Field(default="", description="Purpose of the variable")

    # Shape
    data_type: DataType = Field(..., description="Stored type")
    input_type: InputType = Field(..., description="Presentation hint")
    options: list[OptionEntry] = Field(default_factory=list, description="Select options")
    default_value: ScalarValue | None = Field(default=None, description="Default")
    min: float | None = Field(default=None, description="Lower numeric bound")
    max: float | None = Field(default=None, description="Upper numeric bound")
    required: bool = Field(default=False, description="Must be set")
    affects_calculation: bool = Field(default=True, description="Feeds calculations")

    # Admin
    is_active: bool = Field(default=True, description="False once soft-deleted")
    created_by: str | None = Field(default=None, description="Creating actor")
    updated_by: str | None = Field(default=None, description="Last editing actor")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update")

    @property
    def scope(self) -> VariableScope:
        return VariableScope(
            tenant_id=self.tenant_id,
            category=self.category,
            class_scope_id=self.class_scope_id,
        )

    def option_values(self) -> list[Any]:
        """Normalized option set used for select membership checks."""
        return normalize_options(self.options)


class VariableValue(BaseModel):
    """One stored fact: (tenant, class scope, category, owner, key) -> value."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier")
    tenant_id: UUID = Field(..., description="Owning tenant")
    class_scope_id: UUID | None = Field(default=None, description="Class scope")
    category: ScopeCategory = Field(..., description="Owner category")
    owner_id: UUID = Field(..., description="Owning entity")
    variable_key: str = Field(..., max_length=64, description="Definition key")
    value: ScalarValue = Field(..., description="Stored value")
    created_by: str | None = Field(default=None, description="Creating actor")
    updated_by: str | None = Field(default=None, description="Last writing actor")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update")

    @property
    def scope(self) -> VariableScope:
        return VariableScope(
            tenant_id=self.tenant_id,
            category=self.category,
            class_scope_id=self.class_scope_id,
        )

    @property
    def fact_key(self) -> tuple[UUID, UUID | None, ScopeCategory, UUID, str]:
        """The unique 5-tuple identifying this fact."""
        return (
            self.tenant_id,
            self.class_scope_id,
            self.category,
            self.owner_id,
            self.variable_key,
        )


class ValidationIssue(BaseModel):
    """A single per-field validation failure."""

    key: str = Field(..., description="Variable key")
    message: str = Field(..., description="User-facing message")
    error_type: str = Field(..., description="required, type_error, range_error, option_error")


class ValidationResult(BaseModel):
    """Outcome of validating a candidate value map."""

    is_valid: bool = Field(..., description="True when no errors were found")
    errors: list[ValidationIssue] = Field(default_factory=list, description="Failures")

    @classmethod
    def from_errors(cls, errors: list[ValidationIssue]) -> "ValidationResult":
        return cls(is_valid=not errors, errors=errors)


def is_finite_number(value: Any) -> bool:
    """True for int/float (not bool) that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)
