"""Enums for the variables domain."""

from enum import Enum


class ScopeCategory(str, Enum):
    """Kind of owner a definition or value is bound to.

    Doubles as the owner-kind discriminator for values.
    """

    STORE = "store"
    SCENARIO = "scenario"
    SUBMISSION = "submission"
    STORE_TYPE = "storeType"

    @property
    def is_org_wide(self) -> bool:
        """Org-wide categories are scoped to the tenant only, no class scope."""
        return self is ScopeCategory.STORE_TYPE


class DataType(str, Enum):
    """Stored type of a variable value."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    SELECT = "select"


class InputType(str, Enum):
    """Presentation hint for editing a variable."""

    TEXT = "text"
    NUMBER = "number"
    SLIDER = "slider"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    KNOB = "knob"
    SELECTBUTTON = "selectbutton"
    SWITCH = "switch"
    MULTIPLE_CHOICE = "multiple-choice"


class OutputShape(str, Enum):
    """Serialization shape of a hydrated view."""

    DEFINITION_ARRAY = "definition_array"  # [{...definition, value}]
    VALUE_MAP = "value_map"  # {key: value}


class HydrationState(str, Enum):
    """Whether an owner instance has a loaded variable view."""

    UNHYDRATED = "unhydrated"
    HYDRATED = "hydrated"
