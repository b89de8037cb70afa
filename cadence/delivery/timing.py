"""Due-time calculation for step delivery policies.

Pure functions with no I/O. Missing anchors and out-of-range results fail open
to ``now`` so that a misconfigured step is delivered rather than stuck.
"""

from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cadence.catalog.models import (
    AbsoluteTimePolicy,
    DeliveryPolicy,
    ImmediatePolicy,
    PolicyAnchor,
    RelativeOffsetPolicy,
    TimeOfDayPolicy,
)
from cadence.observability.logging import get_logger

logger = get_logger(__name__)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _resolve_anchor(
    anchor: PolicyAnchor,
    registered_at: datetime | None,
    previous_delivered_at: datetime | None,
) -> datetime | None:
    if anchor == PolicyAnchor.PREVIOUS_STEP:
        return previous_delivered_at
    return registered_at


def _resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_policy_timezone", timezone=name)
        return UTC


def next_time_of_day(policy: TimeOfDayPolicy, base: datetime) -> datetime:
    """Find the first occurrence of the policy's wall-clock time at or after base.

    Args:
        policy: Time-of-day policy
        base: Earliest acceptable instant (anchor + days)

    Returns:
        UTC datetime of the next occurrence
    """
    tz = _resolve_timezone(policy.timezone)
    local_base = ensure_utc(base).astimezone(tz)

    candidate = datetime.combine(local_base.date(), policy.time_of_day, tzinfo=tz)
    if candidate < local_base:
        candidate = datetime.combine(
            local_base.date() + timedelta(days=1), policy.time_of_day, tzinfo=tz
        )
    return candidate.astimezone(UTC)


def calculate_due_time(
    registered_at: datetime | None,
    policy: DeliveryPolicy,
    previous_delivered_at: datetime | None,
    now: datetime,
) -> datetime:
    """Compute when a step becomes due.

    Args:
        registered_at: Enrollment time of the contact into the scenario
        policy: Step delivery policy
        previous_delivered_at: Delivery time of the preceding step, if any
        now: Current time

    Returns:
        Due time in UTC
    """
    now = ensure_utc(now)

    if isinstance(policy, ImmediatePolicy):
        return now

    if isinstance(policy, AbsoluteTimePolicy):
        return ensure_utc(policy.at)

    if isinstance(policy, RelativeOffsetPolicy | TimeOfDayPolicy):
        anchor = _resolve_anchor(policy.anchor, registered_at, previous_delivered_at)
        if anchor is None:
            logger.debug(
                "policy_anchor_missing",
                policy_kind=policy.kind,
                anchor=policy.anchor.value,
            )
            return now

        try:
            if isinstance(policy, RelativeOffsetPolicy):
                return ensure_utc(anchor) + policy.offset
            return next_time_of_day(policy, ensure_utc(anchor) + timedelta(days=policy.days))
        except (OverflowError, ValueError) as e:
            # Offsets past datetime.max land here
            logger.warning(
                "due_time_calculation_failed",
                policy_kind=policy.kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            return now

    raise TypeError(f"Unsupported delivery policy: {type(policy).__name__}")
