"""Domain errors for variable definitions and values."""

from dynvars.db.errors import NotFoundError
from dynvars.variables.models import ValidationIssue


class ConfigurationError(Exception):
    """Raised when a definition cannot be registered or edited as requested.

    Covers incompatible dataType/inputType pairs, missing select options,
    duplicate keys within a scope and malformed scopes.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key


class DefinitionNotFoundError(NotFoundError):
    """Raised when a definition id does not exist."""


class InvalidVariablesError(Exception):
    """Raised by write paths when candidate values fail validation."""

    def __init__(self, errors: list[ValidationIssue]) -> None:
        self.errors = errors
        summary = ", ".join(issue.message for issue in errors)
        super().__init__(f"Invalid variables: {summary}")
