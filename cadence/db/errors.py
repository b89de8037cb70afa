"""Store error hierarchy for production backends.

Store implementations wrap backend-specific exceptions in these so callers
can handle persistence failures uniformly.
"""


class StoreError(Exception):
    """Base exception for all store errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the store cannot be reached.

    Examples:
        - Database connection timeout
        - Pool exhausted or closed
    """

    pass
