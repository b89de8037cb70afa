"""Request and response models for the delivery endpoints.

Bodies use camelCase on the wire to match the existing trigger callers.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cadence.delivery.models import RunSummary
from cadence.delivery.registration import RegistrationOutcome


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TriggerBody(CamelModel):
    """Body of POST /v1/step-delivery/trigger. Every field is optional."""

    scenario_id: UUID | None = None
    contact_id: UUID | None = None
    external_identity: str | None = Field(
        default=None, description="Messaging-platform user id"
    )
    trigger: Literal["login_success", "timer"] | None = Field(
        default=None, description="login_success limits the run to recent rows"
    )


class TriggerResponse(CamelModel):
    """Result of an engine run."""

    delivered: int
    errors: int
    total_checked: int
    timestamp: datetime

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "TriggerResponse":
        return cls(
            delivered=summary.delivered,
            errors=summary.errors,
            total_checked=summary.total_checked,
            timestamp=summary.timestamp,
        )


class RegistrationBody(CamelModel):
    """Body of POST /v1/scenarios/{scenario_id}/registrations."""

    contact_id: UUID
    campaign_id: str | None = None
    registration_source: str | None = None


class RegistrationResponse(CamelModel):
    """Registration outcome and the contact-scoped run that followed it."""

    outcome: RegistrationOutcome
    scenario_id: UUID
    contact_id: UUID
    tracking_id: UUID | None = None
    status: str | None = None
    scheduled_at: datetime | None = None
    delivery: TriggerResponse | None = None


class BackfillBody(CamelModel):
    """Body of POST /v1/transitions/backfill."""

    from_scenario_id: UUID
    to_scenario_id: UUID


class BackfillResponse(CamelModel):
    from_scenario_id: UUID
    to_scenario_id: UUID
    moved: int
    skipped: int


class DeliveryStatsResponse(CamelModel):
    """Tracking record counts for one scenario."""

    scenario_id: UUID
    total: int
    by_status: dict[str, int]
    by_campaign: dict[str, int]
    by_source: dict[str, int]
