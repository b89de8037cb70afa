"""Configuration model exports.

    from cadence.config.models import DeliveryConfig, StorageConfig
"""

from cadence.config.models.api import APIConfig
from cadence.config.models.delivery import DeliveryConfig, SchedulerConfig
from cadence.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from cadence.config.models.storage import PostgresConfig, StorageConfig
from cadence.config.models.transport import TransportConfig

__all__ = [
    "APIConfig",
    "DeliveryConfig",
    "SchedulerConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "PostgresConfig",
    "StorageConfig",
    "TransportConfig",
]
