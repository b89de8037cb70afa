"""Delivery trigger and self-rescheduling loop.

The scheduler is the single entry point for engine runs: the external
timer, domain events (login, registration) and its own wake-ups all go
through trigger(). After each run it decides when the next run should
happen, and the background loop sleeps until then.

All delivery state lives in the tracking store. The loop holds nothing
across its sleep, so a restarted process simply resumes.
"""

import asyncio
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from cadence.catalog.store import ContactDirectory
from cadence.config.models.delivery import SchedulerConfig
from cadence.delivery.engine import DeliveryEngine
from cadence.delivery.models import DeliveryFilter, RunSummary, utc_now
from cadence.delivery.store import TrackingStore
from cadence.observability.logging import get_logger

logger = get_logger(__name__)


class TriggerKind(str, Enum):
    """What caused an engine run."""

    TIMER = "timer"  # External periodic timer or idle poll
    WAKEUP = "wakeup"  # Self-scheduled wake-up
    LOGIN_SUCCESS = "login_success"  # Contact logged in; recent rows only
    REGISTRATION = "registration"  # Contact enrolled into a scenario


class TriggerRequest(BaseModel):
    """Parameters of a single engine run."""

    scenario_id: UUID | None = Field(default=None)
    contact_id: UUID | None = Field(default=None)
    external_identity: str | None = Field(
        default=None, description="Messaging identity resolved to contact ids"
    )
    trigger: TriggerKind = Field(default=TriggerKind.TIMER)


def compute_next_delay(
    summary: RunSummary,
    next_waiting_due: datetime | None,
    now: datetime,
    config: SchedulerConfig,
) -> float | None:
    """Decide how long to wait before the next run.

    Args:
        summary: Result of the run that just finished
        next_waiting_due: Earliest waiting scheduled_at within the lookahead
        now: Current time
        config: Scheduler configuration

    Returns:
        Delay in seconds, or None when nothing is due within the lookahead
    """
    if summary.batch_full or summary.cascade_truncated:
        return config.backlog_delay_seconds
    if next_waiting_due is None:
        return None

    seconds = math.ceil((next_waiting_due - now).total_seconds())
    return float(min(max(seconds, config.min_delay_seconds), config.max_delay_seconds))


class DeliveryScheduler:
    """Runs the delivery engine on demand and on a self-adjusting timer."""

    def __init__(
        self,
        engine: DeliveryEngine,
        tracking_store: TrackingStore,
        contacts: ContactDirectory,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize scheduler.

        Args:
            engine: Claim & execution engine
            tracking_store: Store queried for upcoming waiting rows
            contacts: Directory used to resolve external identities
            config: Scheduler configuration
            clock: Time source
        """
        self._engine = engine
        self._store = tracking_store
        self._contacts = contacts
        self._config = config or SchedulerConfig()
        self._clock = clock
        self._running = False
        self._loop_task: asyncio.Task | None = None
        self._wake_event = asyncio.Event()
        self._next_wakeup_at: datetime | None = None

    @property
    def next_wakeup_at(self) -> datetime | None:
        """Earliest requested wake-up, if any."""
        return self._next_wakeup_at

    @property
    def is_running(self) -> bool:
        return self._running

    async def resolve_filters(self, request: TriggerRequest) -> DeliveryFilter | None:
        """Turn a trigger request into engine filters.

        Returns:
            Filters, or None when the request matches no contact
        """
        contact_ids = [request.contact_id] if request.contact_id else None

        if request.external_identity:
            matches = await self._contacts.find_by_external_id(request.external_identity)
            resolved = [c.id for c in matches]
            if contact_ids is not None:
                resolved = [cid for cid in resolved if cid in contact_ids]
            if not resolved:
                logger.info("trigger_identity_unresolved", trigger=request.trigger.value)
                return None
            contact_ids = resolved

        return DeliveryFilter(
            scenario_id=request.scenario_id,
            contact_ids=contact_ids,
            recent_only=request.trigger == TriggerKind.LOGIN_SUCCESS,
        )

    async def trigger(self, request: TriggerRequest | None = None) -> RunSummary:
        """Run the engine once and plan the next wake-up.

        Args:
            request: Run parameters; None means an unfiltered timer run

        Returns:
            Summary of the run
        """
        request = request or TriggerRequest()
        filters = await self.resolve_filters(request)
        if filters is None:
            return RunSummary(timestamp=self._clock())

        with structlog.contextvars.bound_contextvars(run_trigger=request.trigger.value):
            summary = await self._engine.run(filters, trigger=request.trigger.value)
            await self._plan_next_run(summary)
        return summary

    async def _plan_next_run(self, summary: RunSummary) -> float | None:
        """Schedule the next wake-up. Errors are logged, never raised."""
        try:
            now = self._clock()
            next_due = None
            if not (summary.batch_full or summary.cascade_truncated):
                next_due = await self._store.next_waiting_due(
                    now + timedelta(seconds=self._config.lookahead_seconds),
                    DeliveryFilter(),
                )
            delay = compute_next_delay(summary, next_due, now, self._config)
            if delay is not None:
                self.schedule_wakeup(delay)
            return delay
        except Exception as e:
            logger.error("reschedule_failed", error=str(e), error_type=type(e).__name__)
            return None

    def schedule_wakeup(self, delay_seconds: float) -> datetime:
        """Request a run after delay_seconds.

        Only the earliest pending request is kept.

        Returns:
            The effective next wake-up time
        """
        wake_at = self._clock() + timedelta(seconds=delay_seconds)
        if self._next_wakeup_at is None or wake_at < self._next_wakeup_at:
            self._next_wakeup_at = wake_at
            self._wake_event.set()
            logger.debug(
                "wakeup_scheduled",
                delay_seconds=delay_seconds,
                wake_at=wake_at.isoformat(),
            )
        return self._next_wakeup_at

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._running = True
        self._loop_task = asyncio.create_task(self._run_loop())

        logger.info(
            "scheduler_started",
            idle_poll_seconds=self._config.idle_poll_seconds,
        )

    async def stop(self) -> None:
        """Stop the background loop."""
        if not self._running:
            return

        self._running = False
        self._wake_event.set()

        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        logger.info("scheduler_stopped")

    async def _run_loop(self) -> None:
        trigger = TriggerKind.TIMER
        while self._running:
            try:
                await self.trigger(TriggerRequest(trigger=trigger))
            except Exception as e:
                logger.error("scheduler_run_failed", error=str(e), error_type=type(e).__name__)

            trigger = await self._sleep_until_wakeup()

    async def _sleep_until_wakeup(self) -> TriggerKind:
        """Sleep until the earliest requested wake-up or the idle poll interval."""
        idle_deadline = self._clock() + timedelta(seconds=self._config.idle_poll_seconds)

        while self._running:
            wake_at = idle_deadline
            if self._next_wakeup_at is not None:
                wake_at = min(self._next_wakeup_at, idle_deadline)
            timeout = (wake_at - self._clock()).total_seconds()
            if timeout <= 0:
                break
            self._wake_event.clear()
            try:
                await asyncio.wait_for(self._wake_event.wait(), timeout=timeout)
            except TimeoutError:
                break

        woke_for_request = self._next_wakeup_at is not None
        self._next_wakeup_at = None
        return TriggerKind.WAKEUP if woke_for_request else TriggerKind.TIMER
