"""Scenario transition handling.

When the last step of a scenario is delivered, the contact is moved into
the scenario's configured successor: remaining active records of the
source scenario are exited and the target's first step is seeded.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from pydantic import BaseModel, Field

from cadence.catalog.models import Transition
from cadence.catalog.store import ScenarioCatalog
from cadence.config.models.delivery import DeliveryConfig
from cadence.delivery.errors import ScenarioNotFoundError
from cadence.delivery.models import TrackingRecord, TrackingStatus, utc_now
from cadence.delivery.store import TrackingStore
from cadence.delivery.timing import calculate_due_time
from cadence.observability.logging import get_logger
from cadence.observability.metrics import TRANSITIONS_APPLIED

logger = get_logger(__name__)


class BackfillResult(BaseModel):
    """Outcome of moving already-completed contacts into a target scenario."""

    from_scenario_id: UUID
    to_scenario_id: UUID
    moved: int = Field(default=0, description="Contacts seeded into the target")
    skipped: int = Field(default=0, description="Contacts already in the target")


class TransitionHandler:
    """Applies scenario transitions for contacts that completed a scenario.

    Safe under concurrent invocation for the same contact: the target
    record is written with the store's active-record upsert, so two
    callers converge on a single active record.
    """

    def __init__(
        self,
        tracking_store: TrackingStore,
        catalog: ScenarioCatalog,
        config: DeliveryConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize handler.

        Args:
            tracking_store: Tracking record persistence
            catalog: Scenario and transition definitions
            config: Delivery configuration (next_check lead)
            clock: Time source
        """
        self._store = tracking_store
        self._catalog = catalog
        self._config = config or DeliveryConfig()
        self._clock = clock

    async def on_scenario_completed(
        self,
        record: TrackingRecord,
        completed_at: datetime,
    ) -> TrackingRecord | None:
        """Handle delivery of a scenario's last step.

        Args:
            record: The delivered last-step record
            completed_at: Delivery time of the last step

        Returns:
            The target scenario's active first-step record, or None when
            the scenario has no outgoing transition
        """
        transition = await self._catalog.get_transition(record.scenario_id)
        if transition is None:
            logger.info(
                "scenario_completed",
                scenario_id=str(record.scenario_id),
                contact_id=str(record.contact_id),
            )
            return None

        return await self.apply(
            transition,
            record.contact_id,
            completed_at,
            campaign_id=record.campaign_id,
            registration_source=record.registration_source,
        )

    async def apply(
        self,
        transition: Transition,
        contact_id: UUID,
        completed_at: datetime,
        campaign_id: str | None = None,
        registration_source: str | None = None,
    ) -> TrackingRecord | None:
        """Move one contact across a transition.

        The target's first step is timed as if the contact enrolled at
        completed_at, so both registration and previous-step anchors
        resolve to the completion time.
        """
        now = self._clock()
        exited = await self._store.exit_active(
            transition.from_scenario_id, contact_id, now
        )

        first_step = await self._catalog.get_first_step(transition.to_scenario_id)
        if first_step is None:
            logger.warning(
                "transition_target_has_no_steps",
                from_scenario_id=str(transition.from_scenario_id),
                to_scenario_id=str(transition.to_scenario_id),
            )
            return None

        due_at = calculate_due_time(completed_at, first_step.policy, completed_at, now)
        seed = TrackingRecord.seed(
            scenario_id=transition.to_scenario_id,
            contact_id=contact_id,
            step_id=first_step.id,
            due_at=due_at,
            now=now,
            enrolled_at=completed_at,
            campaign_id=campaign_id,
            registration_source=registration_source,
            next_check_lead=timedelta(seconds=self._config.next_check_lead_seconds),
        )
        target = await self._store.upsert_active(seed)
        TRANSITIONS_APPLIED.inc()

        logger.info(
            "scenario_transition_applied",
            from_scenario_id=str(transition.from_scenario_id),
            to_scenario_id=str(transition.to_scenario_id),
            contact_id=str(contact_id),
            exited=exited,
            due_at=due_at.isoformat(),
        )
        return target

    async def backfill(
        self,
        from_scenario_id: UUID,
        to_scenario_id: UUID,
    ) -> BackfillResult:
        """Move contacts who already completed from_scenario into to_scenario.

        Contacts with any record in the target scenario are skipped, which
        makes repeated calls harmless.

        Raises:
            ScenarioNotFoundError: If either scenario does not exist
        """
        for scenario_id in (from_scenario_id, to_scenario_id):
            if await self._catalog.get_scenario(scenario_id) is None:
                raise ScenarioNotFoundError(scenario_id)

        result = BackfillResult(
            from_scenario_id=from_scenario_id, to_scenario_id=to_scenario_id
        )
        steps = await self._catalog.list_steps(from_scenario_id)
        if not steps:
            return result

        last_step_id = steps[-1].id
        delivered = await self._store.list_records(
            scenario_id=from_scenario_id, status=TrackingStatus.DELIVERED
        )
        completed = {r.contact_id: r for r in delivered if r.step_id == last_step_id}
        transition = Transition(
            from_scenario_id=from_scenario_id, to_scenario_id=to_scenario_id
        )

        for contact_id, record in completed.items():
            if await self._store.list_records(scenario_id=to_scenario_id, contact_id=contact_id):
                result.skipped += 1
                continue
            await self.apply(
                transition,
                contact_id,
                self._clock(),
                campaign_id=record.campaign_id,
                registration_source=record.registration_source,
            )
            result.moved += 1

        logger.info(
            "transition_backfill_completed",
            from_scenario_id=str(from_scenario_id),
            to_scenario_id=str(to_scenario_id),
            moved=result.moved,
            skipped=result.skipped,
        )
        return result
