"""API request and response models."""

from cadence.api.models.delivery import (
    BackfillBody,
    BackfillResponse,
    DeliveryStatsResponse,
    RegistrationBody,
    RegistrationResponse,
    TriggerBody,
    TriggerResponse,
)
from cadence.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from cadence.api.models.health import ComponentHealth, HealthResponse

__all__ = [
    "BackfillBody",
    "BackfillResponse",
    "ComponentHealth",
    "DeliveryStatsResponse",
    "ErrorBody",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "RegistrationBody",
    "RegistrationResponse",
    "TriggerBody",
    "TriggerResponse",
]
