"""Dependency injection for API routes.

Provides FastAPI dependencies for stores and delivery services. Instances
are built once from settings and can be overridden for testing.
"""

from typing import Annotated

from fastapi import Depends

from cadence.catalog.store import ContactDirectory, CredentialResolver, ScenarioCatalog
from cadence.catalog.stores.inmemory import (
    InMemoryContactDirectory,
    InMemoryCredentialResolver,
    InMemoryScenarioCatalog,
)
from cadence.catalog.stores.postgres import (
    PostgresContactDirectory,
    PostgresCredentialResolver,
    PostgresScenarioCatalog,
)
from cadence.config import get_settings
from cadence.db.pool import PostgresPool
from cadence.delivery.engine import DeliveryEngine
from cadence.delivery.registration import ScenarioRegistrar
from cadence.delivery.scheduler import DeliveryScheduler
from cadence.delivery.store import TrackingStore
from cadence.delivery.stores.inmemory import InMemoryTrackingStore
from cadence.delivery.stores.postgres import PostgresTrackingStore
from cadence.delivery.transitions import TransitionHandler
from cadence.observability.logging import get_logger
from cadence.transport import OutboundTransport, create_transport

logger = get_logger(__name__)

# Shared connection pool
_postgres_pool: PostgresPool | None = None

# Store and service instances - created once and reused
_tracking_store: TrackingStore | None = None
_scenario_catalog: ScenarioCatalog | None = None
_contact_directory: ContactDirectory | None = None
_credential_resolver: CredentialResolver | None = None
_transport: OutboundTransport | None = None
_transition_handler: TransitionHandler | None = None
_delivery_engine: DeliveryEngine | None = None
_delivery_scheduler: DeliveryScheduler | None = None
_registrar: ScenarioRegistrar | None = None


def _use_postgres() -> bool:
    return get_settings().storage.backend == "postgres"


async def get_postgres_pool() -> PostgresPool:
    """Get the shared PostgreSQL connection pool.

    Creates and connects the pool on first access. The DSN comes from
    CADENCE_DATABASE_URL or DATABASE_URL.

    Returns:
        Connected PostgresPool instance
    """
    global _postgres_pool
    if _postgres_pool is None:
        postgres = get_settings().storage.postgres
        _postgres_pool = PostgresPool(
            min_size=postgres.min_pool_size,
            max_size=postgres.max_pool_size,
            max_inactive_connection_lifetime=postgres.max_inactive_connection_lifetime,
            command_timeout=postgres.command_timeout,
        )
        await _postgres_pool.connect()
    return _postgres_pool


async def get_tracking_store() -> TrackingStore:
    """Get the TrackingStore instance for the configured backend."""
    global _tracking_store
    if _tracking_store is None:
        if _use_postgres():
            _tracking_store = PostgresTrackingStore(await get_postgres_pool())
        else:
            _tracking_store = InMemoryTrackingStore()
        logger.info(
            "tracking_store_initialized",
            store_type=get_settings().storage.backend,
        )
    return _tracking_store


async def get_scenario_catalog() -> ScenarioCatalog:
    """Get the ScenarioCatalog instance for the configured backend."""
    global _scenario_catalog
    if _scenario_catalog is None:
        if _use_postgres():
            _scenario_catalog = PostgresScenarioCatalog(await get_postgres_pool())
        else:
            _scenario_catalog = InMemoryScenarioCatalog()
    return _scenario_catalog


async def get_contact_directory() -> ContactDirectory:
    """Get the ContactDirectory instance for the configured backend."""
    global _contact_directory
    if _contact_directory is None:
        if _use_postgres():
            _contact_directory = PostgresContactDirectory(await get_postgres_pool())
        else:
            _contact_directory = InMemoryContactDirectory()
    return _contact_directory


async def get_credential_resolver() -> CredentialResolver:
    """Get the CredentialResolver instance for the configured backend."""
    global _credential_resolver
    if _credential_resolver is None:
        if _use_postgres():
            _credential_resolver = PostgresCredentialResolver(await get_postgres_pool())
        else:
            _credential_resolver = InMemoryCredentialResolver()
    return _credential_resolver


def get_transport() -> OutboundTransport:
    """Get the outbound transport configured in settings.transport."""
    global _transport
    if _transport is None:
        _transport = create_transport(get_settings().transport)
        logger.info("transport_initialized", backend=get_settings().transport.backend)
    return _transport


async def get_transition_handler() -> TransitionHandler:
    """Get the TransitionHandler instance."""
    global _transition_handler
    if _transition_handler is None:
        _transition_handler = TransitionHandler(
            await get_tracking_store(),
            await get_scenario_catalog(),
            get_settings().delivery,
        )
    return _transition_handler


async def get_delivery_engine() -> DeliveryEngine:
    """Get the DeliveryEngine wired to the configured stores and transport."""
    global _delivery_engine
    if _delivery_engine is None:
        _delivery_engine = DeliveryEngine(
            tracking_store=await get_tracking_store(),
            catalog=await get_scenario_catalog(),
            contacts=await get_contact_directory(),
            credentials=await get_credential_resolver(),
            transport=get_transport(),
            config=get_settings().delivery,
            transition_handler=await get_transition_handler(),
        )
    return _delivery_engine


async def get_delivery_scheduler() -> DeliveryScheduler:
    """Get the DeliveryScheduler instance."""
    global _delivery_scheduler
    if _delivery_scheduler is None:
        _delivery_scheduler = DeliveryScheduler(
            engine=await get_delivery_engine(),
            tracking_store=await get_tracking_store(),
            contacts=await get_contact_directory(),
            config=get_settings().scheduler,
        )
    return _delivery_scheduler


async def get_registrar() -> ScenarioRegistrar:
    """Get the ScenarioRegistrar instance."""
    global _registrar
    if _registrar is None:
        _registrar = ScenarioRegistrar(
            await get_tracking_store(),
            await get_scenario_catalog(),
            await get_contact_directory(),
            get_settings().delivery,
        )
    return _registrar


# Type aliases for dependency injection
TrackingStoreDep = Annotated[TrackingStore, Depends(get_tracking_store)]
TransitionHandlerDep = Annotated[TransitionHandler, Depends(get_transition_handler)]
DeliverySchedulerDep = Annotated[DeliveryScheduler, Depends(get_delivery_scheduler)]
RegistrarDep = Annotated[ScenarioRegistrar, Depends(get_registrar)]


async def shutdown_dependencies() -> None:
    """Stop the scheduler and release connections."""
    global _postgres_pool, _transport

    if _delivery_scheduler is not None:
        await _delivery_scheduler.stop()

    if _transport is not None:
        await _transport.close()
        _transport = None

    if _postgres_pool is not None:
        await _postgres_pool.close()
        _postgres_pool = None


async def reset_dependencies() -> None:
    """Reset all cached dependencies.

    Used for testing to ensure fresh instances.
    Closes connections before resetting.
    """
    global _tracking_store, _scenario_catalog, _contact_directory
    global _credential_resolver, _transition_handler, _delivery_engine
    global _delivery_scheduler, _registrar

    await shutdown_dependencies()

    _tracking_store = None
    _scenario_catalog = None
    _contact_directory = None
    _credential_resolver = None
    _transition_handler = None
    _delivery_engine = None
    _delivery_scheduler = None
    _registrar = None
    get_settings.cache_clear()
