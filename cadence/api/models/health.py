"""Models for GET /health."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

HealthStatus = Literal["healthy", "degraded", "unhealthy"]

_SEVERITY: dict[str, int] = {"healthy": 0, "degraded": 1, "unhealthy": 2}


class ComponentHealth(BaseModel):
    """One checked dependency of the delivery service."""

    name: str
    status: HealthStatus
    latency_ms: float | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    """Service health; the worst component status wins."""

    status: HealthStatus
    version: str
    components: list[ComponentHealth] = Field(default_factory=list)
    next_wakeup_at: datetime | None = Field(
        default=None, description="Earliest wake-up the scheduler loop has planned"
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_components(
        cls,
        components: list[ComponentHealth],
        version: str,
        next_wakeup_at: datetime | None = None,
    ) -> "HealthResponse":
        worst: HealthStatus = "healthy"
        for component in components:
            if _SEVERITY[component.status] > _SEVERITY[worst]:
                worst = component.status
        return cls(
            status=worst,
            version=version,
            components=components,
            next_wakeup_at=next_wakeup_at,
        )
