"""Custom exception types for consistent error handling."""


class InvalidInputError(Exception):
    """Raised when request input validation fails."""


class NotFoundError(Exception):
    """Raised when a referenced profile, interest, or connection is missing."""


class ConflictError(Exception):
    """Raised when a write collides with existing state (duplicate pair, bad transition)."""


class PermissionDeniedError(Exception):
    """Raised when the acting user may not perform the requested change."""


class StoreUnavailableError(Exception):
    """Raised when store queries fail or the store is unreachable.

    Callers may retry; the service never retries on its own.
    """

    retryable = True


class StoreTimeoutError(StoreUnavailableError):
    """Raised when a store call exceeds its timeout."""
