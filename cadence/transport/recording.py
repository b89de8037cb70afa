"""Transport that records messages instead of sending them."""

from pydantic import BaseModel, Field

from cadence.catalog.models import StepMessage
from cadence.delivery.errors import TransportError
from cadence.transport.base import OutboundTransport


class SentMessage(BaseModel):
    """A message captured by RecordingTransport."""

    to: str
    message: StepMessage
    credential: str = Field(repr=False)


class RecordingTransport(OutboundTransport):
    """In-process transport for development and tests.

    Failures can be injected per recipient with fail_for().
    """

    def __init__(self) -> None:
        self.sent: list[SentMessage] = []
        self._failures: dict[str, Exception] = {}

    def fail_for(self, to: str, error: Exception | None = None) -> None:
        """Make every send to a recipient raise error (TransportError by default)."""
        self._failures[to] = error or TransportError(f"Simulated failure for {to}")

    def clear_failures(self) -> None:
        self._failures.clear()

    def messages_for(self, to: str) -> list[StepMessage]:
        return [entry.message for entry in self.sent if entry.to == to]

    async def send(self, credential: str, to: str, message: StepMessage) -> None:
        failure = self._failures.get(to)
        if failure is not None:
            raise failure
        self.sent.append(SentMessage(to=to, message=message, credential=credential))
