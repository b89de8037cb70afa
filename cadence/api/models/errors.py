"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Machine-readable error codes returned by every endpoint."""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed (malformed JSON, missing fields, etc.)."""

    SCENARIO_NOT_FOUND = "SCENARIO_NOT_FOUND"
    """The referenced scenario does not exist."""

    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    """The contact could not be enrolled into the scenario."""

    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """The tracking store could not be reached."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


class ErrorDetail(BaseModel):
    """Field-level error information for validation failures."""

    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    """Error body content for API error responses."""

    code: ErrorCode
    """Machine-readable error code."""

    message: str
    """Human-readable error message."""

    details: list[ErrorDetail] | None = None
    """Additional error details for validation failures."""


class ErrorResponse(BaseModel):
    """Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "SCENARIO_NOT_FOUND",
                "message": "Scenario 1b7c... not found"
            }
        }
    """

    error: ErrorBody
