"""Scenario registration: seeds the first step for a contact."""

from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from cadence.catalog.store import ContactDirectory, ScenarioCatalog
from cadence.config.models.delivery import DeliveryConfig
from cadence.delivery.errors import RegistrationError
from cadence.delivery.models import TrackingRecord, utc_now
from cadence.delivery.store import TrackingStore
from cadence.delivery.timing import calculate_due_time
from cadence.observability.logging import get_logger
from cadence.observability.metrics import REGISTRATIONS

logger = get_logger(__name__)


class RegistrationOutcome(str, Enum):
    """Result of a registration attempt."""

    REGISTERED = "registered"  # First step seeded
    ALREADY_ACTIVE = "already_active"  # Contact is mid-scenario; nothing changed
    REJECTED = "rejected"  # Re-registration disabled and history exists


class RegistrationResult(BaseModel):
    """Outcome of ScenarioRegistrar.register()."""

    outcome: RegistrationOutcome
    scenario_id: UUID
    contact_id: UUID
    record: TrackingRecord | None = Field(
        default=None, description="Active first-step (or in-progress) record"
    )


class ScenarioRegistrar:
    """Enrolls contacts into scenarios."""

    def __init__(
        self,
        tracking_store: TrackingStore,
        catalog: ScenarioCatalog,
        contacts: ContactDirectory,
        config: DeliveryConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = tracking_store
        self._catalog = catalog
        self._contacts = contacts
        self._config = config or DeliveryConfig()
        self._clock = clock

    async def register(
        self,
        scenario_id: UUID,
        contact_id: UUID,
        campaign_id: str | None = None,
        registration_source: str | None = None,
    ) -> RegistrationResult:
        """Register a contact into a scenario.

        Registration-anchored offsets of every step in this run are
        measured from the enrollment time recorded here.

        Args:
            scenario_id: Scenario to enroll into
            contact_id: Contact to enroll
            campaign_id: Attribution campaign
            registration_source: Attribution source (e.g. invite link)

        Returns:
            Registration result

        Raises:
            RegistrationError: Unknown scenario or contact, or a scenario
                without steps
        """
        scenario = await self._catalog.get_scenario(scenario_id)
        if scenario is None:
            raise RegistrationError(f"Scenario not found: {scenario_id}")
        contact = await self._contacts.get_contact(contact_id)
        if contact is None:
            raise RegistrationError(f"Contact not found: {contact_id}")
        first_step = await self._catalog.get_first_step(scenario_id)
        if first_step is None:
            raise RegistrationError(f"Scenario has no steps: {scenario_id}")

        history = await self._store.list_records(
            scenario_id=scenario_id, contact_id=contact_id
        )
        active = next((r for r in history if r.is_active), None)
        if active is not None:
            REGISTRATIONS.labels(outcome=RegistrationOutcome.ALREADY_ACTIVE.value).inc()
            return RegistrationResult(
                outcome=RegistrationOutcome.ALREADY_ACTIVE,
                scenario_id=scenario_id,
                contact_id=contact_id,
                record=active,
            )

        if history and not scenario.allow_re_registration:
            REGISTRATIONS.labels(outcome=RegistrationOutcome.REJECTED.value).inc()
            logger.info(
                "re_registration_rejected",
                scenario_id=str(scenario_id),
                contact_id=str(contact_id),
            )
            return RegistrationResult(
                outcome=RegistrationOutcome.REJECTED,
                scenario_id=scenario_id,
                contact_id=contact_id,
            )

        now = self._clock()
        # Both anchors resolve to enrollment, matching transitions
        due_at = calculate_due_time(now, first_step.policy, now, now)
        seed = TrackingRecord.seed(
            scenario_id=scenario_id,
            contact_id=contact_id,
            step_id=first_step.id,
            due_at=due_at,
            now=now,
            enrolled_at=now,
            campaign_id=campaign_id,
            registration_source=registration_source,
            next_check_lead=timedelta(seconds=self._config.next_check_lead_seconds),
        )
        record = await self._store.upsert_active(seed)
        REGISTRATIONS.labels(outcome=RegistrationOutcome.REGISTERED.value).inc()

        logger.info(
            "contact_registered",
            scenario_id=str(scenario_id),
            contact_id=str(contact_id),
            campaign_id=campaign_id,
            registration_source=registration_source,
            due_at=due_at.isoformat(),
            re_registration=bool(history),
        )
        return RegistrationResult(
            outcome=RegistrationOutcome.REGISTERED,
            scenario_id=scenario_id,
            contact_id=contact_id,
            record=record,
        )
