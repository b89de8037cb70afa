"""Read-only collaborator data: scenarios, steps, transitions, contacts, credentials."""

from cadence.catalog.models import (
    AbsoluteTimePolicy,
    CardMessage,
    Contact,
    DeliveryPolicy,
    ImmediatePolicy,
    MediaMessage,
    PolicyAnchor,
    RelativeOffsetPolicy,
    Scenario,
    Step,
    StepMessage,
    TextMessage,
    TimeOfDayPolicy,
    Transition,
)
from cadence.catalog.store import ContactDirectory, CredentialResolver, ScenarioCatalog

__all__ = [
    "AbsoluteTimePolicy",
    "CardMessage",
    "Contact",
    "ContactDirectory",
    "CredentialResolver",
    "DeliveryPolicy",
    "ImmediatePolicy",
    "MediaMessage",
    "PolicyAnchor",
    "RelativeOffsetPolicy",
    "Scenario",
    "ScenarioCatalog",
    "Step",
    "StepMessage",
    "TextMessage",
    "TimeOfDayPolicy",
    "Transition",
]
