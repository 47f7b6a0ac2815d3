"""Validation and defaulting of variable value maps.

Both operations are pure: they take the active definitions of a scope
and a candidate ``{key: value}`` map and never touch storage.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any

from dynvars.observability.logging import get_logger
from dynvars.variables.enums import DataType
from dynvars.variables.models import (
    ValidationIssue,
    ValidationResult,
    VariableDefinition,
    is_finite_number,
)

logger = get_logger(__name__)


def is_unset(value: Any) -> bool:
    """A value counts as unset when it is None or the empty string."""
    return value is None or (isinstance(value, str) and value == "")


def format_bound(bound: float) -> str:
    """Render a numeric bound without a trailing .0 for whole numbers."""
    if float(bound).is_integer():
        return str(int(bound))
    return str(bound)


def coerce_number(value: Any) -> float | None:
    """Return the finite numeric reading of ``value``, or None.

    Numbers pass through; numeric strings are parsed. Booleans are not
    numbers here even though bool subclasses int.
    """
    if is_finite_number(value):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def normalize_value(definition: VariableDefinition | None, value: Any) -> Any:
    """Return the stored form of a value that passed validation.

    Numeric strings written to a number definition become numbers, with
    whole numbers kept as int. Anything else is returned unchanged.
    """
    if definition is None or definition.data_type != DataType.NUMBER:
        return value
    if not isinstance(value, str) or is_unset(value):
        return value
    number = coerce_number(value)
    if number is None:
        return value
    if number.is_integer():
        return int(number)
    return number


def same_scalar(left: Any, right: Any) -> bool:
    """Equality that keeps booleans apart from 0 and 1."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


class VariableValidator:
    """Validates candidate values against variable definitions.

    Type checks are dispatched on ``data_type``. Messages are user-facing
    and use the definition's label.
    """

    # Type validators mapped by data_type
    TYPE_VALIDATORS = {
        DataType.NUMBER: "_validate_number",
        DataType.STRING: "_validate_string",
        DataType.BOOLEAN: "_validate_boolean",
        DataType.SELECT: "_validate_select",
    }

    def validate_value(
        self,
        definition: VariableDefinition,
        value: Any,
    ) -> list[ValidationIssue]:
        """Validate a single value against its definition.

        Args:
            definition: The definition to validate against
            value: Candidate value (None or "" means unset)

        Returns:
            List of validation issues (empty if valid)
        """
        if is_unset(value):
            if definition.required:
                return [
                    ValidationIssue(
                        key=definition.key,
                        error_type="required",
                        message=f"{definition.label} is required",
                    )
                ]
            return []

        validator_name = self.TYPE_VALIDATORS.get(definition.data_type)
        if not validator_name:
            return []

        validator = getattr(self, validator_name)
        return validator(definition, value)

    def validate(
        self,
        definitions: Iterable[VariableDefinition],
        values: Mapping[str, Any],
    ) -> ValidationResult:
        """Validate a value map against every active definition.

        Keys without a definition are ignored. Inactive definitions are
        skipped.
        """
        errors: list[ValidationIssue] = []
        for definition in definitions:
            if not definition.is_active:
                continue
            errors.extend(self.validate_value(definition, values.get(definition.key)))

        if errors:
            logger.warning(
                "variable_validation_failed",
                error_count=len(errors),
                keys=[issue.key for issue in errors],
                error_types=[issue.error_type for issue in errors],
            )

        return ValidationResult.from_errors(errors)

    def _validate_number(
        self,
        definition: VariableDefinition,
        value: Any,
    ) -> list[ValidationIssue]:
        """Validate number type and bounds."""
        number = coerce_number(value)
        if number is None:
            return [
                ValidationIssue(
                    key=definition.key,
                    error_type="type_error",
                    message=f"{definition.label} must be a number",
                )
            ]

        if definition.min is not None and number < definition.min:
            return [
                ValidationIssue(
                    key=definition.key,
                    error_type="range_error",
                    message=(
                        f"{definition.label} must be at least "
                        f"{format_bound(definition.min)}"
                    ),
                )
            ]
        if definition.max is not None and number > definition.max:
            return [
                ValidationIssue(
                    key=definition.key,
                    error_type="range_error",
                    message=(
                        f"{definition.label} must be at most "
                        f"{format_bound(definition.max)}"
                    ),
                )
            ]
        return []

    def _validate_string(
        self,
        definition: VariableDefinition,
        value: Any,
    ) -> list[ValidationIssue]:
        """Validate string type."""
        if not isinstance(value, str):
            return [
                ValidationIssue(
                    key=definition.key,
                    error_type="type_error",
                    message=f"{definition.label} must be a string",
                )
            ]
        return []

    def _validate_boolean(
        self,
        definition: VariableDefinition,
        value: Any,
    ) -> list[ValidationIssue]:
        """Validate boolean type. No truthy coercion."""
        if not isinstance(value, bool):
            return [
                ValidationIssue(
                    key=definition.key,
                    error_type="type_error",
                    message=f"{definition.label} must be true or false",
                )
            ]
        return []

    def _validate_select(
        self,
        definition: VariableDefinition,
        value: Any,
    ) -> list[ValidationIssue]:
        """Validate membership in the normalized option set."""
        allowed = definition.option_values()
        if any(same_scalar(value, option) for option in allowed):
            return []
        return [
            ValidationIssue(
                key=definition.key,
                error_type="option_error",
                message=(
                    f"{definition.label} must be one of: "
                    f"{', '.join(str(option) for option in allowed)}"
                ),
            )
        ]


_validator = VariableValidator()


def validate_values(
    definitions: Iterable[VariableDefinition],
    values: Mapping[str, Any],
) -> ValidationResult:
    """Validate ``values`` against the given active definitions."""
    return _validator.validate(definitions, values)


def apply_defaults(
    definitions: Iterable[VariableDefinition],
    values: Mapping[str, Any],
) -> dict[str, Any]:
    """Return a copy of ``values`` with defaults filled in for unset keys.

    Keys absent from the definitions are preserved untouched. Applying
    twice gives the same result as applying once.
    """
    result = dict(values)
    for definition in definitions:
        if not definition.is_active or definition.default_value is None:
            continue
        if is_unset(result.get(definition.key)):
            result[definition.key] = definition.default_value
    return result
