"""Liveness and Prometheus scrape endpoints."""

import time
from uuid import UUID

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from cadence import __version__
from cadence.api.dependencies import DeliverySchedulerDep, TrackingStoreDep
from cadence.api.models.health import ComponentHealth, HealthResponse
from cadence.delivery.scheduler import DeliveryScheduler
from cadence.delivery.store import TrackingStore
from cadence.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

metrics_router = APIRouter()

# Never a real record; the lookup only proves the store answers
_SENTINEL_ID = UUID(int=0)


async def _check_tracking_store(store: TrackingStore) -> ComponentHealth:
    start = time.perf_counter()
    try:
        await store.get_status(_SENTINEL_ID)
    except Exception as e:
        logger.warning("tracking_store_check_failed", error=str(e))
        return ComponentHealth(
            name="tracking_store",
            status="unhealthy",
            latency_ms=(time.perf_counter() - start) * 1000,
            message=str(e),
        )
    return ComponentHealth(
        name="tracking_store",
        status="healthy",
        latency_ms=(time.perf_counter() - start) * 1000,
    )


def _scheduler_component(scheduler: DeliveryScheduler) -> ComponentHealth:
    # External triggers still deliver while the loop is down
    if scheduler.is_running:
        return ComponentHealth(name="scheduler", status="healthy")
    return ComponentHealth(
        name="scheduler",
        status="degraded",
        message="scheduler loop not running",
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: TrackingStoreDep,
    scheduler: DeliverySchedulerDep,
) -> HealthResponse:
    """Report tracking store reachability and scheduler loop state."""
    components = [
        await _check_tracking_store(store),
        _scheduler_component(scheduler),
    ]
    response = HealthResponse.from_components(
        components, __version__, next_wakeup_at=scheduler.next_wakeup_at
    )
    logger.debug("health_check_completed", status=response.status)
    return response


@metrics_router.get("/metrics")
async def get_metrics() -> Response:
    """Prometheus text exposition of the delivery metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
