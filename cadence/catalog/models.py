"""Scenario, step, contact and transition models.

These are produced by the authoring and contact-management surfaces and
consumed read-only by the delivery scheduler.
"""

from datetime import UTC, datetime, time, timedelta
from enum import Enum
from typing import Annotated, Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


# =============================================================================
# MESSAGES
# =============================================================================


class TextMessage(BaseModel):
    """Plain text message."""

    kind: Literal["text"] = "text"
    text: str = Field(..., description="Message body; may contain personalization tokens")


class MediaMessage(BaseModel):
    """Image or other media referenced by URL."""

    kind: Literal["media"] = "media"
    url: str = Field(..., description="Public URL of the media asset")
    preview_url: str | None = Field(
        default=None, description="Preview image URL (defaults to url)"
    )


class CardMessage(BaseModel):
    """Structured card (bubble or carousel) payload."""

    kind: Literal["card"] = "card"
    alt_text: str = Field(default="お知らせ", description="Fallback text for notifications")
    contents: dict[str, Any] = Field(..., description="Raw card document")


StepMessage = Annotated[
    TextMessage | MediaMessage | CardMessage,
    Field(discriminator="kind"),
]


# =============================================================================
# DELIVERY POLICIES
# =============================================================================


class PolicyAnchor(str, Enum):
    """Reference point a relative or time-of-day policy is measured from."""

    REGISTRATION = "registration"  # Contact's enrollment into the scenario
    PREVIOUS_STEP = "previous_step"  # Delivery time of the preceding step


class ImmediatePolicy(BaseModel):
    """Deliver as soon as the step is seeded."""

    kind: Literal["immediate"] = "immediate"


class RelativeOffsetPolicy(BaseModel):
    """Deliver a fixed offset after an anchor."""

    kind: Literal["relative"] = "relative"
    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)
    seconds: int = Field(default=0, ge=0)
    anchor: PolicyAnchor = Field(default=PolicyAnchor.REGISTRATION)

    @property
    def offset(self) -> timedelta:
        return timedelta(
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
        )


class AbsoluteTimePolicy(BaseModel):
    """Deliver at a literal point in time."""

    kind: Literal["absolute"] = "absolute"
    at: datetime = Field(..., description="Delivery time")


class TimeOfDayPolicy(BaseModel):
    """Deliver at the next occurrence of a wall-clock time.

    The search starts at anchor + days, so days=1 with 09:00 means
    "09:00 on the day after the anchor, or later".
    """

    kind: Literal["time_of_day"] = "time_of_day"
    time_of_day: time = Field(..., description="Wall-clock delivery time")
    days: int = Field(default=0, ge=0, description="Whole days to skip past the anchor")
    anchor: PolicyAnchor = Field(default=PolicyAnchor.PREVIOUS_STEP)
    timezone: str = Field(default="UTC", description="IANA timezone of time_of_day")


DeliveryPolicy = Annotated[
    ImmediatePolicy | RelativeOffsetPolicy | AbsoluteTimePolicy | TimeOfDayPolicy,
    Field(discriminator="kind"),
]


# =============================================================================
# SCENARIOS
# =============================================================================


class Step(BaseModel):
    """One unit of a scenario: a timing policy plus ordered messages."""

    id: UUID = Field(default_factory=uuid4)
    scenario_id: UUID
    order: int = Field(..., ge=0, description="Position within the scenario")
    name: str = Field(default="")
    policy: DeliveryPolicy = Field(default_factory=ImmediatePolicy)
    messages: list[StepMessage] = Field(..., min_length=1, description="Sent together, in order")


class Scenario(BaseModel):
    """An ordered sequence of steps owned by an account."""

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    name: str = Field(default="")
    allow_re_registration: bool = Field(
        default=True,
        description="Whether a contact with existing history may enroll again",
    )


class Transition(BaseModel):
    """Link applied when a contact completes from_scenario."""

    id: UUID = Field(default_factory=uuid4)
    from_scenario_id: UUID
    to_scenario_id: UUID
    created_at: datetime = Field(default_factory=utc_now)


class Contact(BaseModel):
    """External chat identity receiving deliveries."""

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID = Field(..., description="Owning account")
    external_id: str = Field(..., description="Messaging-platform user id")
    registered_at: datetime = Field(default_factory=utc_now)
    display_name: str | None = Field(default=None)
    short_uid: str | None = Field(default=None, description="Short id used in form links")
