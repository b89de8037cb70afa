"""Delivery statistics aggregated from tracking records."""

from collections import Counter
from uuid import UUID

from pydantic import BaseModel, Field

from cadence.delivery.store import TrackingStore


class DeliveryStats(BaseModel):
    """Tracking record counts for one scenario."""

    scenario_id: UUID
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_campaign: dict[str, int] = Field(
        default_factory=dict, description="Attributed records only"
    )
    by_source: dict[str, int] = Field(
        default_factory=dict, description="Attributed records only"
    )


async def collect_delivery_stats(store: TrackingStore, scenario_id: UUID) -> DeliveryStats:
    """Aggregate a scenario's tracking records by status, campaign and source."""
    records = await store.list_records(scenario_id=scenario_id)

    by_status = Counter(r.status.value for r in records)
    by_campaign = Counter(r.campaign_id for r in records if r.campaign_id)
    by_source = Counter(r.registration_source for r in records if r.registration_source)

    return DeliveryStats(
        scenario_id=scenario_id,
        total=len(records),
        by_status=dict(by_status),
        by_campaign=dict(by_campaign),
        by_source=dict(by_source),
    )
