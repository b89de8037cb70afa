"""Outbound message transports."""

from cadence.config.models.transport import TransportConfig
from cadence.transport.base import OutboundTransport
from cadence.transport.line import LineMessagingTransport
from cadence.transport.recording import RecordingTransport


def create_transport(config: TransportConfig) -> OutboundTransport:
    """Build the configured transport."""
    if config.backend == "recording":
        return RecordingTransport()
    return LineMessagingTransport(
        base_url=config.base_url,
        timeout_seconds=config.timeout_seconds,
    )


__all__ = [
    "OutboundTransport",
    "LineMessagingTransport",
    "RecordingTransport",
    "create_transport",
]
