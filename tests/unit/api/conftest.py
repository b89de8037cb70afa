"""Fixtures for API tests.

The app is built with create_app() against a temporary config directory,
and every store and service dependency is overridden with in-memory
instances the tests can inspect.
"""

from collections.abc import Callable
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cadence.api.app import create_app
from cadence.api.dependencies import (
    get_delivery_scheduler,
    get_registrar,
    get_tracking_store,
    get_transition_handler,
    reset_dependencies,
)
from cadence.catalog.models import Contact, Scenario, Step, TextMessage
from cadence.catalog.stores.inmemory import (
    InMemoryContactDirectory,
    InMemoryCredentialResolver,
    InMemoryScenarioCatalog,
)
from cadence.config.models.delivery import DeliveryConfig
from cadence.delivery.engine import DeliveryEngine
from cadence.delivery.registration import ScenarioRegistrar
from cadence.delivery.scheduler import DeliveryScheduler
from cadence.delivery.stores.inmemory import InMemoryTrackingStore
from cadence.delivery.transitions import TransitionHandler
from cadence.transport.recording import RecordingTransport

TEST_CONFIG = """
app_name = "cadence-test"

[scheduler]
enabled = false

[transport]
backend = "recording"

[observability.logging]
level = "WARNING"
format = "console"
"""


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
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def account_id() -> UUID:
    return uuid4()


@pytest.fixture
def contact(contacts: InMemoryContactDirectory, account_id: UUID) -> Contact:
    created = Contact(account_id=account_id, external_id="U-api", display_name="Ken")
    contacts.add_contact(created)
    return created


@pytest.fixture
def make_scenario(
    catalog: InMemoryScenarioCatalog, account_id: UUID
) -> Callable[[str], tuple[Scenario, Step]]:
    """Factory for single-step immediate scenarios."""

    def _make(name: str = "welcome") -> tuple[Scenario, Step]:
        scenario = Scenario(account_id=account_id, name=name)
        step = Step(
            scenario_id=scenario.id,
            order=0,
            messages=[TextMessage(text=f"{name}, [LINE_NAME]")],
        )
        catalog.add_scenario(scenario, [step])
        return scenario, step

    return _make


@pytest.fixture
def scheduler(
    tracking_store: InMemoryTrackingStore,
    catalog: InMemoryScenarioCatalog,
    contacts: InMemoryContactDirectory,
    transport: RecordingTransport,
    account_id: UUID,
) -> DeliveryScheduler:
    config = DeliveryConfig(inter_message_delay_seconds=0)
    engine = DeliveryEngine(
        tracking_store=tracking_store,
        catalog=catalog,
        contacts=contacts,
        credentials=InMemoryCredentialResolver({account_id: "channel-token"}),
        transport=transport,
        config=config,
    )
    return DeliveryScheduler(engine, tracking_store, contacts)


@pytest.fixture
async def app(
    mock_toml_files,
    test_config_dir: Path,
    env_override,
    tracking_store: InMemoryTrackingStore,
    catalog: InMemoryScenarioCatalog,
    contacts: InMemoryContactDirectory,
    scheduler: DeliveryScheduler,
) -> FastAPI:
    """Create test FastAPI app."""
    await reset_dependencies()
    mock_toml_files({"default.toml": TEST_CONFIG})

    with env_override({"CADENCE_CONFIG_DIR": str(test_config_dir), "CADENCE_ENV": "test"}):
        app = create_app()

    app.dependency_overrides[get_tracking_store] = lambda: tracking_store
    app.dependency_overrides[get_delivery_scheduler] = lambda: scheduler
    app.dependency_overrides[get_registrar] = lambda: ScenarioRegistrar(
        tracking_store, catalog, contacts
    )
    app.dependency_overrides[get_transition_handler] = lambda: TransitionHandler(
        tracking_store, catalog
    )
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client."""
    return TestClient(app)
