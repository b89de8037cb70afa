"""Fixtures for delivery unit tests.

Everything runs against the in-memory stores with a controllable clock.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from cadence.catalog.models import (
    Contact,
    DeliveryPolicy,
    ImmediatePolicy,
    Scenario,
    Step,
    StepMessage,
    TextMessage,
)
from cadence.catalog.stores.inmemory import (
    InMemoryContactDirectory,
    InMemoryCredentialResolver,
    InMemoryScenarioCatalog,
)
from cadence.config.models.delivery import DeliveryConfig
from cadence.delivery.engine import DeliveryEngine
from cadence.delivery.models import TrackingRecord
from cadence.delivery.stores.inmemory import InMemoryTrackingStore
from cadence.delivery.transitions import TransitionHandler
from cadence.transport.recording import RecordingTransport

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def tracking_store() -> InMemoryTrackingStore:
    return InMemoryTrackingStore()


@pytest.fixture
def catalog() -> InMemoryScenarioCatalog:
    return InMemoryScenarioCatalog()


@pytest.fixture
def contacts() -> InMemoryContactDirectory:
    return InMemoryContactDirectory()


@pytest.fixture
def credentials() -> InMemoryCredentialResolver:
    return InMemoryCredentialResolver()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def account_id() -> UUID:
    return uuid4()


@pytest.fixture
def delivery_config() -> DeliveryConfig:
    return DeliveryConfig()


@pytest.fixture
def contact(
    contacts: InMemoryContactDirectory,
    credentials: InMemoryCredentialResolver,
    account_id: UUID,
) -> Contact:
    """A registered contact whose account has a credential."""
    created = Contact(
        account_id=account_id,
        external_id="U1234567890",
        display_name="Taro",
        short_uid="abc123",
        registered_at=T0,
    )
    contacts.add_contact(created)
    credentials.set_credential(account_id, "channel-token")
    return created


@pytest.fixture
def make_contact(
    contacts: InMemoryContactDirectory,
    account_id: UUID,
) -> Callable[..., Contact]:
    """Factory for additional contacts on the same account."""

    def _make(external_id: str, display_name: str | None = None) -> Contact:
        created = Contact(
            account_id=account_id,
            external_id=external_id,
            display_name=display_name,
            registered_at=T0,
        )
        contacts.add_contact(created)
        return created

    return _make


@pytest.fixture
def make_scenario(
    catalog: InMemoryScenarioCatalog,
    account_id: UUID,
) -> Callable[..., tuple[Scenario, list[Step]]]:
    """Factory building a scenario with one step per policy.

    Each step gets a single text message "<name> step <n>" unless
    messages are given.
    """

    def _make(
        policies: list[DeliveryPolicy] | None = None,
        messages: list[list[StepMessage]] | None = None,
        name: str = "welcome",
        allow_re_registration: bool = True,
    ) -> tuple[Scenario, list[Step]]:
        policies = policies or [ImmediatePolicy()]
        scenario = Scenario(
            account_id=account_id,
            name=name,
            allow_re_registration=allow_re_registration,
        )
        steps = []
        for index, policy in enumerate(policies):
            step_messages = (
                messages[index]
                if messages is not None
                else [TextMessage(text=f"{name} step {index + 1}")]
            )
            steps.append(
                Step(
                    scenario_id=scenario.id,
                    order=index,
                    name=f"{name}-{index + 1}",
                    policy=policy,
                    messages=step_messages,
                )
            )
        catalog.add_scenario(scenario, steps)
        return scenario, steps

    return _make


@pytest.fixture
def seed_record(
    tracking_store: InMemoryTrackingStore,
    clock: FakeClock,
) -> Callable[..., Awaitable[TrackingRecord]]:
    """Factory inserting a tracking record for (step, contact).

    due_at defaults to now, which seeds a ready record.
    """

    async def _seed(
        step: Step,
        contact_id: UUID,
        due_at: datetime | None = None,
        campaign_id: str | None = None,
        registration_source: str | None = None,
    ) -> TrackingRecord:
        now = clock()
        record = TrackingRecord.seed(
            scenario_id=step.scenario_id,
            contact_id=contact_id,
            step_id=step.id,
            due_at=due_at or now,
            now=now,
            enrolled_at=now,
            campaign_id=campaign_id,
            registration_source=registration_source,
        )
        stored = await tracking_store.upsert_active(record)
        assert stored is not None
        return stored

    return _seed


@pytest.fixture
def transition_handler(
    tracking_store: InMemoryTrackingStore,
    catalog: InMemoryScenarioCatalog,
    delivery_config: DeliveryConfig,
    clock: FakeClock,
) -> TransitionHandler:
    return TransitionHandler(tracking_store, catalog, delivery_config, clock)


@pytest.fixture
def engine(
    tracking_store: InMemoryTrackingStore,
    catalog: InMemoryScenarioCatalog,
    contacts: InMemoryContactDirectory,
    credentials: InMemoryCredentialResolver,
    transport: RecordingTransport,
    delivery_config: DeliveryConfig,
    transition_handler: TransitionHandler,
    clock: FakeClock,
    sleeper: RecordingSleep,
) -> DeliveryEngine:
    return DeliveryEngine(
        tracking_store=tracking_store,
        catalog=catalog,
        contacts=contacts,
        credentials=credentials,
        transport=transport,
        config=delivery_config,
        transition_handler=transition_handler,
        clock=clock,
        sleep=sleeper,
    )
