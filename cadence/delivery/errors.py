"""Delivery error hierarchy.

Permanent errors move a record to failed; transient errors return it to
ready with a backoff.
"""

from uuid import UUID


class DeliveryError(Exception):
    """Base class for delivery errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class PermanentDeliveryError(DeliveryError):
    """Error that retrying cannot fix."""

    pass


class TransientDeliveryError(DeliveryError):
    """Error that may succeed on a later attempt."""

    pass


class ContactNotFoundError(PermanentDeliveryError):
    """Contact referenced by a tracking record does not exist."""

    def __init__(self, contact_id: UUID) -> None:
        super().__init__(f"Contact not found: {contact_id}")
        self.contact_id = contact_id


class StepNotFoundError(PermanentDeliveryError):
    """Step referenced by a tracking record does not exist."""

    def __init__(self, step_id: UUID) -> None:
        super().__init__(f"Step not found: {step_id}")
        self.step_id = step_id


class ScenarioNotFoundError(PermanentDeliveryError):
    """Scenario referenced by a request or transition does not exist."""

    def __init__(self, scenario_id: UUID) -> None:
        super().__init__(f"Scenario not found: {scenario_id}")
        self.scenario_id = scenario_id


class InvalidStepError(PermanentDeliveryError):
    """Stored step definition does not validate (e.g. no messages)."""

    def __init__(self, step_id: UUID, cause: Exception | None = None) -> None:
        super().__init__(f"Invalid step definition: {step_id}", cause)
        self.step_id = step_id


class TrackingRecordNotFoundError(PermanentDeliveryError):
    """Tracking record vanished while being processed."""

    def __init__(self, record_id: UUID) -> None:
        super().__init__(f"Tracking record not found: {record_id}")
        self.record_id = record_id


class MessageFormatError(PermanentDeliveryError):
    """Message payload cannot be converted to a deliverable form."""

    pass


class TransportError(TransientDeliveryError):
    """Outbound transport rejected or failed to send a message."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.status_code = status_code


class CredentialNotFoundError(TransientDeliveryError):
    """Owning account has no access credential configured."""

    def __init__(self, account_id: UUID) -> None:
        super().__init__(f"No access credential for account: {account_id}")
        self.account_id = account_id


class RegistrationError(Exception):
    """Contact could not be registered into a scenario."""

    pass
