"""API exception hierarchy for consistent error handling.

All API exceptions inherit from CadenceAPIError, which provides
status_code and error_code attributes used by the global exception
handler to generate consistent error responses.
"""

from cadence.api.models.errors import ErrorCode


class CadenceAPIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidRequestError(CadenceAPIError):
    """Raised when request validation fails."""

    status_code = 400
    error_code = ErrorCode.INVALID_REQUEST


class ScenarioNotFoundError(CadenceAPIError):
    """Raised when a referenced scenario doesn't exist."""

    status_code = 404
    error_code = ErrorCode.SCENARIO_NOT_FOUND


class RegistrationFailedError(CadenceAPIError):
    """Raised when a contact cannot be enrolled."""

    status_code = 400
    error_code = ErrorCode.REGISTRATION_FAILED
