"""Step delivery: tracking state machine, engine, transitions and scheduler.

    from cadence.delivery import DeliveryEngine, DeliveryScheduler
"""

from cadence.delivery.engine import DeliveryEngine
from cadence.delivery.models import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    DeliveryFilter,
    RunSummary,
    StepOutcome,
    TrackingRecord,
    TrackingStatus,
    can_transition,
)
from cadence.delivery.registration import (
    RegistrationOutcome,
    RegistrationResult,
    ScenarioRegistrar,
)
from cadence.delivery.scheduler import (
    DeliveryScheduler,
    TriggerKind,
    TriggerRequest,
    compute_next_delay,
)
from cadence.delivery.stats import DeliveryStats, collect_delivery_stats
from cadence.delivery.store import TrackingStore
from cadence.delivery.stores.inmemory import InMemoryTrackingStore
from cadence.delivery.timing import calculate_due_time
from cadence.delivery.transitions import BackfillResult, TransitionHandler

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "BackfillResult",
    "DeliveryEngine",
    "DeliveryFilter",
    "DeliveryScheduler",
    "DeliveryStats",
    "InMemoryTrackingStore",
    "RegistrationOutcome",
    "RegistrationResult",
    "RunSummary",
    "ScenarioRegistrar",
    "StepOutcome",
    "TrackingRecord",
    "TrackingStatus",
    "TrackingStore",
    "TransitionHandler",
    "TriggerKind",
    "TriggerRequest",
    "calculate_due_time",
    "can_transition",
    "collect_delivery_stats",
]
