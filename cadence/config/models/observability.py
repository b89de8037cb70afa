"""Logging and metrics settings."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "console"]


class LoggingConfig(BaseModel):
    """structlog output settings."""

    level: LogLevel = Field(default="INFO")
    format: LogFormat = Field(
        default="json", description="json in deployed environments, console locally"
    )
    redact_pii: bool = Field(
        default=True,
        description="Mask channel tokens and contact e-mail addresses",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        # CADENCE_OBSERVABILITY__LOGGING__LEVEL=debug is accepted
        return v.upper() if isinstance(v, str) else v


class MetricsConfig(BaseModel):
    enabled: bool = Field(default=True, description="Serve Prometheus text at /metrics")


class ObservabilityConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
