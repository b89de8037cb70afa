"""Tracking record models and the delivery state machine.

A tracking record is the per-(scenario, contact, step) state-machine
instance that drives delivery. Records are never deleted; terminal rows
remain as history.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class TrackingStatus(str, Enum):
    """Delivery status of a tracking record."""

    WAITING = "waiting"  # Scheduled in the future
    READY = "ready"  # Due, eligible to be claimed
    DELIVERING = "delivering"  # Claimed by exactly one engine run
    DELIVERED = "delivered"  # All messages sent
    FAILED = "failed"  # Permanent error
    EXITED = "exited"  # Abandoned because a transition superseded the scenario


ACTIVE_STATUSES: frozenset[TrackingStatus] = frozenset({
    TrackingStatus.WAITING,
    TrackingStatus.READY,
    TrackingStatus.DELIVERING,
})

TERMINAL_STATUSES: frozenset[TrackingStatus] = frozenset({
    TrackingStatus.DELIVERED,
    TrackingStatus.FAILED,
    TrackingStatus.EXITED,
})

ALLOWED_TRANSITIONS: dict[TrackingStatus, frozenset[TrackingStatus]] = {
    TrackingStatus.WAITING: frozenset({TrackingStatus.READY, TrackingStatus.EXITED}),
    TrackingStatus.READY: frozenset({TrackingStatus.DELIVERING, TrackingStatus.EXITED}),
    TrackingStatus.DELIVERING: frozenset({
        TrackingStatus.DELIVERED,
        TrackingStatus.READY,
        TrackingStatus.FAILED,
        TrackingStatus.EXITED,
    }),
    TrackingStatus.DELIVERED: frozenset(),
    TrackingStatus.FAILED: frozenset(),
    TrackingStatus.EXITED: frozenset(),
}


def can_transition(source: TrackingStatus, target: TrackingStatus) -> bool:
    """Check whether source -> target is an edge of the state machine."""
    return target in ALLOWED_TRANSITIONS[source]


class TrackingRecord(BaseModel):
    """Delivery state of one step for one contact in one scenario."""

    id: UUID = Field(default_factory=uuid4)
    scenario_id: UUID = Field(..., description="Scenario being delivered")
    contact_id: UUID = Field(..., description="Receiving contact")
    step_id: UUID = Field(..., description="Step this record delivers")

    # Scheduling
    status: TrackingStatus = Field(default=TrackingStatus.WAITING)
    scheduled_at: datetime = Field(..., description="When the step becomes due")
    next_check_at: datetime | None = Field(
        default=None, description="Hint for the poller; slightly before scheduled_at"
    )
    delivered_at: datetime | None = Field(default=None)
    last_error: str | None = Field(default=None, description="Last error message")

    # Attribution
    campaign_id: str | None = Field(default=None)
    registration_source: str | None = Field(default=None)

    # Bookkeeping
    enrolled_at: datetime = Field(
        ..., description="Enrollment time; anchor for registration offsets"
    )
    claimed_at: datetime | None = Field(default=None)
    error_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def seed(
        cls,
        *,
        scenario_id: UUID,
        contact_id: UUID,
        step_id: UUID,
        due_at: datetime,
        now: datetime,
        enrolled_at: datetime,
        campaign_id: str | None = None,
        registration_source: str | None = None,
        next_check_lead: timedelta = timedelta(seconds=5),
    ) -> "TrackingRecord":
        """Build the initial record for a step.

        The record starts ready when due_at is not in the future and
        waiting otherwise.

        Args:
            scenario_id: Scenario being delivered
            contact_id: Receiving contact
            step_id: Step to deliver
            due_at: Computed due time
            now: Current time
            enrolled_at: Enrollment time of the scenario run
            campaign_id: Attribution campaign
            registration_source: Attribution source
            next_check_lead: How far before due_at the poller should look

        Returns:
            New unsaved tracking record
        """
        if due_at <= now:
            status = TrackingStatus.READY
            next_check_at = now
        else:
            status = TrackingStatus.WAITING
            next_check_at = max(now, due_at - next_check_lead)

        return cls(
            scenario_id=scenario_id,
            contact_id=contact_id,
            step_id=step_id,
            status=status,
            scheduled_at=due_at,
            next_check_at=next_check_at,
            campaign_id=campaign_id,
            registration_source=registration_source,
            enrolled_at=enrolled_at,
            created_at=now,
            updated_at=now,
        )


class DeliveryFilter(BaseModel):
    """Restricts which rows an engine run flips and claims.

    All fields are optional; an empty filter processes every due row.
    """

    scenario_id: UUID | None = Field(default=None)
    contact_ids: list[UUID] | None = Field(
        default=None, description="Only these contacts; an empty list matches nothing"
    )
    recent_only: bool = Field(
        default=False, description="Only rows updated within the recent window"
    )
    updated_since: datetime | None = Field(
        default=None, description="Resolved lower bound for updated_at"
    )

    def resolve(self, now: datetime, recent_window: timedelta) -> "DeliveryFilter":
        """Return a copy with updated_since set from recent_only."""
        if not self.recent_only:
            return self
        return self.model_copy(update={"updated_since": now - recent_window})

    def matches(self, record: TrackingRecord) -> bool:
        if self.scenario_id is not None and record.scenario_id != self.scenario_id:
            return False
        if self.contact_ids is not None and record.contact_id not in self.contact_ids:
            return False
        if self.updated_since is not None and record.updated_at < self.updated_since:
            return False
        return True


class StepOutcome(str, Enum):
    """Result of processing one claimed record."""

    DELIVERED = "delivered"
    RETRY = "retry"  # Returned to ready with backoff
    FAILED = "failed"  # Permanent failure
    ABANDONED = "abandoned"  # Exited mid-flight or handled by another run


class RunSummary(BaseModel):
    """Result of one engine run."""

    delivered: int = Field(default=0, description="Steps delivered, cascades included")
    errors: int = Field(default=0, description="Failed, retried or unadvanced steps")
    total_checked: int = Field(default=0, description="Rows claimed by this run")
    flipped: int = Field(default=0)
    reclaimed: int = Field(default=0)
    batch_full: bool = Field(default=False, description="Claim returned batch_size rows")
    cascade_truncated: bool = Field(
        default=False, description="A cascade stopped at the depth limit"
    )
    timestamp: datetime = Field(default_factory=utc_now)
