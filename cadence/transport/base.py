"""Outbound transport interface."""

from abc import ABC, abstractmethod

from cadence.catalog.models import StepMessage


class OutboundTransport(ABC):
    """Sends a single message to an external chat identity.

    Implementations raise TransportError for delivery failures and
    MessageFormatError for payloads they cannot encode.
    """

    @abstractmethod
    async def send(self, credential: str, to: str, message: StepMessage) -> None:
        """Send one message.

        Args:
            credential: Account access token
            to: Recipient external identity
            message: Personalized message
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
