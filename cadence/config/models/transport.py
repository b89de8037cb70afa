"""Outbound transport configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

TransportBackend = Literal["line", "recording"]


class TransportConfig(BaseModel):
    """Configuration for the outbound messaging transport."""

    backend: TransportBackend = Field(
        default="line",
        description="Transport implementation (line, recording)",
    )
    base_url: str = Field(
        default="https://api.line.me",
        description="Messaging API base URL",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout for outbound sends",
    )
