"""Step delivery endpoints: trigger, registration, backfill and statistics."""

from uuid import UUID

from fastapi import APIRouter

from cadence.api.dependencies import (
    DeliverySchedulerDep,
    RegistrarDep,
    TrackingStoreDep,
    TransitionHandlerDep,
)
from cadence.api.exceptions import (
    InvalidRequestError,
    RegistrationFailedError,
    ScenarioNotFoundError,
)
from cadence.api.models.delivery import (
    BackfillBody,
    BackfillResponse,
    DeliveryStatsResponse,
    RegistrationBody,
    RegistrationResponse,
    TriggerBody,
    TriggerResponse,
)
from cadence.delivery import errors as delivery_errors
from cadence.delivery.registration import RegistrationOutcome
from cadence.delivery.scheduler import TriggerKind, TriggerRequest
from cadence.delivery.stats import collect_delivery_stats
from cadence.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/step-delivery/trigger",
    response_model=TriggerResponse,
    response_model_by_alias=True,
)
async def trigger_delivery(
    scheduler: DeliverySchedulerDep,
    body: TriggerBody | None = None,
) -> TriggerResponse:
    """Run the delivery engine once.

    Called by the external timer (empty body) and by domain events such
    as a contact login (externalIdentity + trigger=login_success).
    """
    body = body or TriggerBody()
    request = TriggerRequest(
        scenario_id=body.scenario_id,
        contact_id=body.contact_id,
        external_identity=body.external_identity,
        trigger=TriggerKind(body.trigger) if body.trigger else TriggerKind.TIMER,
    )

    summary = await scheduler.trigger(request)
    return TriggerResponse.from_summary(summary)


@router.post(
    "/scenarios/{scenario_id}/registrations",
    response_model=RegistrationResponse,
    response_model_by_alias=True,
    status_code=201,
)
async def register_contact(
    scenario_id: UUID,
    body: RegistrationBody,
    registrar: RegistrarDep,
    scheduler: DeliverySchedulerDep,
) -> RegistrationResponse:
    """Enroll a contact into a scenario and deliver anything already due."""
    try:
        result = await registrar.register(
            scenario_id,
            body.contact_id,
            campaign_id=body.campaign_id,
            registration_source=body.registration_source,
        )
    except delivery_errors.RegistrationError as e:
        raise RegistrationFailedError(str(e)) from e

    delivery = None
    if result.outcome == RegistrationOutcome.REGISTERED:
        summary = await scheduler.trigger(
            TriggerRequest(
                scenario_id=scenario_id,
                contact_id=body.contact_id,
                trigger=TriggerKind.REGISTRATION,
            )
        )
        delivery = TriggerResponse.from_summary(summary)

    record = result.record
    return RegistrationResponse(
        outcome=result.outcome,
        scenario_id=scenario_id,
        contact_id=body.contact_id,
        tracking_id=record.id if record else None,
        status=record.status.value if record else None,
        scheduled_at=record.scheduled_at if record else None,
        delivery=delivery,
    )


@router.post(
    "/transitions/backfill",
    response_model=BackfillResponse,
    response_model_by_alias=True,
)
async def backfill_transition(
    body: BackfillBody,
    transitions: TransitionHandlerDep,
) -> BackfillResponse:
    """Move contacts who already completed a scenario into its successor."""
    if body.from_scenario_id == body.to_scenario_id:
        raise InvalidRequestError("fromScenarioId and toScenarioId must differ")

    try:
        result = await transitions.backfill(body.from_scenario_id, body.to_scenario_id)
    except delivery_errors.ScenarioNotFoundError as e:
        raise ScenarioNotFoundError(e.message) from e

    return BackfillResponse(
        from_scenario_id=result.from_scenario_id,
        to_scenario_id=result.to_scenario_id,
        moved=result.moved,
        skipped=result.skipped,
    )


@router.get(
    "/scenarios/{scenario_id}/delivery-stats",
    response_model=DeliveryStatsResponse,
    response_model_by_alias=True,
)
async def get_delivery_stats(
    scenario_id: UUID,
    store: TrackingStoreDep,
) -> DeliveryStatsResponse:
    """Count a scenario's tracking records by status, campaign and source."""
    stats = await collect_delivery_stats(store, scenario_id)
    return DeliveryStatsResponse(
        scenario_id=stats.scenario_id,
        total=stats.total,
        by_status=stats.by_status,
        by_campaign=stats.by_campaign,
        by_source=stats.by_source,
    )
