"""Claim & execution engine for step delivery.

One run:
1. Returns stale delivering rows to ready
2. Promotes due waiting rows to ready
3. Claims a batch of due ready rows (ready -> delivering)
4. Sends each claimed row's messages concurrently across rows
5. Advances delivered rows and cascades into immediately-due follow-ups
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from cadence.catalog.models import Contact, Step
from cadence.catalog.store import ContactDirectory, CredentialResolver, ScenarioCatalog
from cadence.config.models.delivery import DeliveryConfig
from cadence.delivery.errors import (
    ContactNotFoundError,
    CredentialNotFoundError,
    PermanentDeliveryError,
    StepNotFoundError,
    TrackingRecordNotFoundError,
)
from cadence.delivery.models import (
    DeliveryFilter,
    RunSummary,
    StepOutcome,
    TrackingRecord,
    TrackingStatus,
    utc_now,
)
from cadence.delivery.personalization import personalize_message
from cadence.delivery.store import TrackingStore
from cadence.delivery.timing import calculate_due_time
from cadence.delivery.transitions import TransitionHandler
from cadence.observability.logging import get_logger
from cadence.observability.metrics import (
    CASCADE_DEPTH,
    DELIVERY_RUN_LATENCY,
    DELIVERY_RUNS,
    MESSAGES_SENT,
    RECORDS_CLAIMED,
    RECORDS_FLIPPED,
    RECORDS_RECLAIMED,
    STEP_OUTCOMES,
)
from cadence.transport.base import OutboundTransport

logger = get_logger(__name__)


@dataclass
class ChainResult:
    """Counters for one claimed row and the cascade that followed it."""

    delivered: int = 0
    errors: int = 0
    depth: int = 0
    truncated: bool = False


class DeliveryEngine:
    """Claims due tracking records and delivers their steps.

    Holds no state between runs; every decision is made against the
    tracking store with conditional writes.
    """

    def __init__(
        self,
        tracking_store: TrackingStore,
        catalog: ScenarioCatalog,
        contacts: ContactDirectory,
        credentials: CredentialResolver,
        transport: OutboundTransport,
        config: DeliveryConfig | None = None,
        transition_handler: TransitionHandler | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize engine.

        Args:
            tracking_store: Tracking record persistence
            catalog: Scenario and step definitions
            contacts: Contact registry
            credentials: Per-account access credential lookup
            transport: Outbound message transport
            config: Delivery configuration
            transition_handler: Handler for completed scenarios
            clock: Time source
            sleep: Coroutine used for the inter-message delay
        """
        self._store = tracking_store
        self._catalog = catalog
        self._contacts = contacts
        self._credentials = credentials
        self._transport = transport
        self._config = config or DeliveryConfig()
        self._clock = clock
        self._sleep = sleep
        self._transitions = transition_handler or TransitionHandler(
            tracking_store, catalog, self._config, clock
        )

    async def run(
        self,
        filters: DeliveryFilter | None = None,
        trigger: str = "timer",
    ) -> RunSummary:
        """Execute one engine pass.

        Args:
            filters: Optional row restrictions
            trigger: Label of what started the run (for metrics)

        Returns:
            Summary of the run
        """
        started = time.perf_counter()
        now = self._clock()
        scope = (filters or DeliveryFilter()).resolve(
            now, timedelta(seconds=self._config.recent_window_seconds)
        )
        summary = RunSummary(timestamp=now)

        summary.reclaimed = await self._store.reclaim_stale(
            now - timedelta(seconds=self._config.claim_timeout_seconds), now
        )
        if summary.reclaimed:
            RECORDS_RECLAIMED.inc(summary.reclaimed)
            logger.warning("stale_claims_reclaimed", count=summary.reclaimed)

        summary.flipped = await self._store.flip_due(now, scope)
        RECORDS_FLIPPED.inc(summary.flipped)

        claimed = await self._store.claim_due(now, self._config.batch_size, scope)
        summary.total_checked = len(claimed)
        summary.batch_full = len(claimed) >= self._config.batch_size
        RECORDS_CLAIMED.inc(len(claimed))

        results = await asyncio.gather(
            *(self._process_chain(record) for record in claimed),
            return_exceptions=True,
        )

        for record, result in zip(claimed, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "delivery_chain_failed",
                    record_id=str(record.id),
                    error=str(result),
                    error_type=type(result).__name__,
                )
                summary.errors += 1
                continue
            summary.delivered += result.delivered
            summary.errors += result.errors
            summary.cascade_truncated = summary.cascade_truncated or result.truncated
            CASCADE_DEPTH.observe(result.depth)

        DELIVERY_RUNS.labels(trigger=trigger).inc()
        DELIVERY_RUN_LATENCY.observe(time.perf_counter() - started)

        logger.info(
            "delivery_run_completed",
            trigger=trigger,
            delivered=summary.delivered,
            errors=summary.errors,
            total_checked=summary.total_checked,
            flipped=summary.flipped,
            batch_full=summary.batch_full,
        )
        return summary

    async def _process_chain(self, record: TrackingRecord) -> ChainResult:
        """Deliver a claimed record, then cascade into due follow-ups."""
        result = ChainResult()
        current: TrackingRecord | None = record

        while current is not None:
            outcome, seeded = await self._process_record(current, result)
            if outcome != StepOutcome.DELIVERED:
                break
            if seeded is None or seeded.status != TrackingStatus.READY:
                break
            if result.depth >= self._config.max_cascade_depth:
                result.truncated = True
                logger.info(
                    "cascade_depth_reached",
                    scenario_id=str(seeded.scenario_id),
                    contact_id=str(seeded.contact_id),
                    depth=result.depth,
                )
                break

            try:
                current = await self._store.claim_next_ready(
                    seeded.scenario_id, seeded.contact_id, self._clock()
                )
            except Exception as e:
                # The follow-up stays ready for the next run
                logger.error(
                    "cascade_claim_failed",
                    scenario_id=str(seeded.scenario_id),
                    contact_id=str(seeded.contact_id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors += 1
                break
            if current is not None:
                result.depth += 1

        return result

    async def _process_record(
        self,
        record: TrackingRecord,
        result: ChainResult,
    ) -> tuple[StepOutcome, TrackingRecord | None]:
        """Deliver one claimed record and advance it.

        Returns:
            Outcome and, when delivered, the record seeded for what comes next
        """
        log = logger.bind(
            record_id=str(record.id),
            scenario_id=str(record.scenario_id),
            contact_id=str(record.contact_id),
            step_id=str(record.step_id),
        )

        try:
            step = await self._catalog.get_step(record.step_id)
            if step is None:
                raise StepNotFoundError(record.step_id)
            contact = await self._contacts.get_contact(record.contact_id)
            if contact is None:
                raise ContactNotFoundError(record.contact_id)
            credential = await self._credentials.resolve(contact.account_id)
            if not credential:
                raise CredentialNotFoundError(contact.account_id)

            completed = await self._send_messages(record, step, contact, credential)
        except PermanentDeliveryError as e:
            await self._store.mark_failed(record.id, e.message, self._clock())
            result.errors += 1
            STEP_OUTCOMES.labels(outcome=StepOutcome.FAILED.value).inc()
            log.warning("step_delivery_failed", error=e.message, error_type=type(e).__name__)
            return StepOutcome.FAILED, None
        except Exception as e:
            now = self._clock()
            retry_at = now + timedelta(seconds=self._config.retry_backoff_seconds)
            next_check_at = max(
                now, retry_at - timedelta(seconds=self._config.next_check_lead_seconds)
            )
            await self._store.mark_retry(record.id, retry_at, str(e), now, next_check_at)
            result.errors += 1
            STEP_OUTCOMES.labels(outcome=StepOutcome.RETRY.value).inc()
            log.warning(
                "step_delivery_retry_scheduled",
                error=str(e),
                error_type=type(e).__name__,
                retry_at=retry_at.isoformat(),
            )
            return StepOutcome.RETRY, None

        if not completed:
            STEP_OUTCOMES.labels(outcome=StepOutcome.ABANDONED.value).inc()
            return StepOutcome.ABANDONED, None

        delivered_at = self._clock()
        if not await self._store.mark_delivered(record.id, delivered_at):
            log.info("step_delivery_handled_elsewhere")
            STEP_OUTCOMES.labels(outcome=StepOutcome.ABANDONED.value).inc()
            return StepOutcome.ABANDONED, None

        result.delivered += 1
        STEP_OUTCOMES.labels(outcome=StepOutcome.DELIVERED.value).inc()
        log.info("step_delivered", message_count=len(step.messages))

        try:
            seeded = await self._advance(record, step, delivered_at)
        except Exception as e:
            await self._store.record_error(record.id, f"Failed to advance: {e}", self._clock())
            result.errors += 1
            log.error("step_advance_failed", error=str(e), error_type=type(e).__name__)
            return StepOutcome.DELIVERED, None

        return StepOutcome.DELIVERED, seeded

    async def _send_messages(
        self,
        record: TrackingRecord,
        step: Step,
        contact: Contact,
        credential: str,
    ) -> bool:
        """Send a step's messages in order.

        Returns:
            False if the record left delivering mid-flight (nothing more is sent)
        """
        for index, message in enumerate(step.messages):
            if index > 0:
                await self._sleep(self._config.inter_message_delay_seconds)

            status = await self._store.get_status(record.id)
            if status is None:
                raise TrackingRecordNotFoundError(record.id)
            if status != TrackingStatus.DELIVERING:
                logger.info(
                    "step_delivery_interrupted",
                    record_id=str(record.id),
                    status=status.value,
                    sent=index,
                )
                return False

            personalized = personalize_message(
                message,
                contact,
                self._config.display_name_fallback,
                self._config.honorific_suffix,
            )
            await self._transport.send(credential, contact.external_id, personalized)
            MESSAGES_SENT.labels(kind=message.kind).inc()

        return True

    async def _advance(
        self,
        record: TrackingRecord,
        step: Step,
        delivered_at: datetime,
    ) -> TrackingRecord | None:
        """Seed the next step, or hand completion to the transition handler."""
        next_step = await self._catalog.get_next_step(record.scenario_id, step.order)
        if next_step is None:
            return await self._transitions.on_scenario_completed(record, delivered_at)

        now = self._clock()
        due_at = calculate_due_time(record.enrolled_at, next_step.policy, delivered_at, now)
        seed = TrackingRecord.seed(
            scenario_id=record.scenario_id,
            contact_id=record.contact_id,
            step_id=next_step.id,
            due_at=due_at,
            now=now,
            enrolled_at=record.enrolled_at,
            campaign_id=record.campaign_id,
            registration_source=record.registration_source,
            next_check_lead=timedelta(seconds=self._config.next_check_lead_seconds),
        )
        return await self._store.upsert_active(seed)
