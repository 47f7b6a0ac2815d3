"""Runtime-defined variables: definitions, values, validation and stores."""

from dynvars.variables.enums import (
    DataType,
    HydrationState,
    InputType,
    OutputShape,
    ScopeCategory,
)
from dynvars.variables.errors import (
    ConfigurationError,
    DefinitionNotFoundError,
    InvalidVariablesError,
)
from dynvars.variables.models import (
    DefinitionPayload,
    OwnerRef,
    SelectOption,
    ValidationIssue,
    ValidationResult,
    VariableDefinition,
    VariableScope,
    VariableValue,
)
from dynvars.variables.registry import DefinitionRegistry
from dynvars.variables.store import VariableDefinitionStore, VariableValueStore
from dynvars.variables.validation import apply_defaults, validate_values
from dynvars.variables.values import VariableValueService

__all__ = [
    "ConfigurationError",
    "DataType",
    "DefinitionNotFoundError",
    "DefinitionPayload",
    "DefinitionRegistry",
    "HydrationState",
    "InputType",
    "InvalidVariablesError",
    "OutputShape",
    "OwnerRef",
    "ScopeCategory",
    "SelectOption",
    "ValidationIssue",
    "ValidationResult",
    "VariableDefinition",
    "VariableDefinitionStore",
    "VariableScope",
    "VariableValue",
    "VariableValueService",
    "VariableValueStore",
    "apply_defaults",
    "validate_values",
]
