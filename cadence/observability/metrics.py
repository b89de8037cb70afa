"""Prometheus metrics for the step-delivery scheduler."""

from prometheus_client import Counter, Histogram

# Engine metrics
DELIVERY_RUNS = Counter(
    "cadence_delivery_runs_total",
    "Total number of engine runs",
    labelnames=["trigger"],
)

DELIVERY_RUN_LATENCY = Histogram(
    "cadence_delivery_run_latency_seconds",
    "Engine run latency in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

RECORDS_CLAIMED = Counter(
    "cadence_records_claimed_total",
    "Tracking records claimed for delivery",
)

RECORDS_FLIPPED = Counter(
    "cadence_records_flipped_total",
    "Tracking records promoted from waiting to ready",
)

RECORDS_RECLAIMED = Counter(
    "cadence_records_reclaimed_total",
    "Stale delivering records returned to ready",
)

STEP_OUTCOMES = Counter(
    "cadence_step_outcomes_total",
    "Step delivery outcomes",
    labelnames=["outcome"],
)

MESSAGES_SENT = Counter(
    "cadence_messages_sent_total",
    "Messages dispatched to the outbound transport",
    labelnames=["kind"],
)

CASCADE_DEPTH = Histogram(
    "cadence_cascade_depth",
    "Number of cascaded steps delivered after a claimed row",
    buckets=(0, 1, 2, 3, 4, 5),
)

# Scenario lifecycle metrics
TRANSITIONS_APPLIED = Counter(
    "cadence_transitions_applied_total",
    "Scenario transitions applied on completion",
)

REGISTRATIONS = Counter(
    "cadence_registrations_total",
    "Contacts registered into scenarios",
    labelnames=["outcome"],
)
