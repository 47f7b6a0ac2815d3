"""Store error hierarchy for storage backends.

All store implementations raise these errors so callers handle failures
the same way regardless of backend.
"""


class StoreError(Exception):
    """Base exception for all store errors.

    Backend-specific errors are wrapped in one of the subclasses, with the
    original exception kept on ``cause``.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the store cannot be reached or a query fails in transit.

    Examples:
        - Database connection timeout
        - Redis server unavailable
    """


class NotFoundError(StoreError):
    """Raised when a specific entity lookup fails.

    Not raised for empty search results.
    """


class ConflictError(StoreError):
    """Raised on unique constraint violation.

    Examples:
        - Duplicate (scope, key) definition
        - Two concurrent inserts of the same variable value fact
    """


class ValidationError(StoreError):
    """Raised when a row read back from storage cannot be decoded."""
