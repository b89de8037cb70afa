"""Delivery engine and scheduler configuration models."""

from pydantic import BaseModel, Field


class DeliveryConfig(BaseModel):
    """Claim & execution engine configuration."""

    batch_size: int = Field(
        default=100,
        gt=0,
        description="Maximum rows claimed per engine run",
    )
    max_cascade_depth: int = Field(
        default=5,
        ge=0,
        description="Maximum follow-up steps delivered after a claimed row",
    )
    retry_backoff_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Delay before a transient failure is retried",
    )
    inter_message_delay_seconds: float = Field(
        default=0.3,
        ge=0,
        le=5,
        description="Pause between messages of the same step",
    )
    recent_window_seconds: int = Field(
        default=120,
        gt=0,
        description="Window used by recent-only (login) triggers",
    )
    claim_timeout_seconds: int = Field(
        default=600,
        gt=0,
        description="Delivering rows claimed longer ago than this are reclaimed",
    )
    next_check_lead_seconds: int = Field(
        default=5,
        ge=0,
        description="How far before scheduled_at next_check_at is set",
    )
    display_name_fallback: str = Field(
        default="あなた",
        description="Substitute for [LINE_NAME] when the contact has no name",
    )
    honorific_suffix: str = Field(
        default="さん",
        description="Suffix appended for [LINE_NAME_SAN]",
    )


class SchedulerConfig(BaseModel):
    """Self-rescheduling trigger configuration."""

    enabled: bool = Field(
        default=True,
        description="Run the background scheduler loop with the API",
    )
    idle_poll_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Poll interval when no wake-up is requested",
    )
    backlog_delay_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Wake-up delay after a run that hit the batch cap",
    )
    lookahead_seconds: int = Field(
        default=60,
        gt=0,
        description="Horizon for the upcoming-waiting-row query",
    )
    min_delay_seconds: float = Field(default=1.0, gt=0)
    max_delay_seconds: float = Field(default=55.0, gt=0)
