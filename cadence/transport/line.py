"""LINE Messaging API push transport.

Messages are posted one at a time to /v2/bot/message/push with the
account's channel access token.
"""

import copy
import json
import re
from typing import Any

import httpx

from cadence.catalog.models import CardMessage, MediaMessage, StepMessage, TextMessage
from cadence.delivery.errors import MessageFormatError, TransportError
from cadence.observability.logging import get_logger
from cadence.transport.base import OutboundTransport

logger = get_logger(__name__)

PUSH_PATH = "/v2/bot/message/push"

IMAGE_URL_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif)$", re.IGNORECASE)

# Properties the push API rejects on each card component type
DISALLOWED_CARD_PROPERTIES: dict[str, frozenset[str]] = {
    "box": frozenset({"action", "url", "height", "style", "borderColor", "cornerRadius", "backgroundColor"}),
    "button": frozenset({"height", "borderColor", "cornerRadius"}),
    "filler": frozenset({"action", "url", "height", "style", "borderColor", "cornerRadius", "backgroundColor"}),
    "icon": frozenset({"action", "url", "height", "style", "borderColor", "cornerRadius", "backgroundColor"}),
    "image": frozenset({"height", "cornerRadius", "backgroundColor"}),
    "separator": frozenset({"action", "url", "height", "style", "borderColor", "cornerRadius", "backgroundColor"}),
    "spacer": frozenset({"action", "url", "height", "style", "borderColor", "cornerRadius", "backgroundColor"}),
    "text": frozenset({"url", "height", "borderColor", "cornerRadius", "backgroundColor"}),
}

CARD_CONTAINER_TYPES = frozenset({"bubble", "carousel"})


def sanitize_card(component: Any) -> Any:
    """Recursively strip properties the API rejects for each component type."""
    if isinstance(component, list):
        return [sanitize_card(item) for item in component]
    if not isinstance(component, dict):
        return component

    disallowed = DISALLOWED_CARD_PROPERTIES.get(component.get("type", ""), frozenset())
    return {
        key: sanitize_card(value)
        for key, value in component.items()
        if key not in disallowed
    }


def normalize_card(contents: Any, alt_text: str | None = None) -> dict[str, Any]:
    """Normalize a card document into a flex message payload.

    Accepts an already wrapped {"type": "flex", "contents": ...} document,
    a bare bubble or carousel, or a wrapper whose contents is one.

    Raises:
        MessageFormatError: If no bubble or carousel can be found
    """
    if isinstance(contents, str):
        try:
            contents = json.loads(contents)
        except json.JSONDecodeError as e:
            raise MessageFormatError("Card contents is not valid JSON", cause=e) from e

    if not isinstance(contents, dict) or not contents:
        raise MessageFormatError("Card contents must be a non-empty object")

    data = copy.deepcopy(contents)
    inner = data.get("contents")

    if data.get("type") == "flex" and isinstance(inner, dict):
        body = inner
    elif data.get("type") in CARD_CONTAINER_TYPES:
        body = data
    elif isinstance(inner, dict) and inner.get("type") in CARD_CONTAINER_TYPES:
        body = inner
    else:
        raise MessageFormatError("Invalid card format: expected a bubble or carousel")

    return {
        "type": "flex",
        "altText": data.get("altText") or alt_text or "Flex Message",
        "contents": sanitize_card(body),
    }


def to_line_message(message: StepMessage) -> dict[str, Any]:
    """Encode a step message as a LINE message object."""
    if isinstance(message, TextMessage):
        return {"type": "text", "text": message.text}

    if isinstance(message, MediaMessage):
        if IMAGE_URL_PATTERN.search(message.url):
            return {
                "type": "image",
                "originalContentUrl": message.url,
                "previewImageUrl": message.preview_url or message.url,
            }
        return {"type": "text", "text": f"メディア: {message.url}"}

    if isinstance(message, CardMessage):
        return normalize_card(message.contents, message.alt_text)

    raise MessageFormatError(f"Unsupported message type: {type(message).__name__}")


class LineMessagingTransport(OutboundTransport):
    """Push messages through the LINE Messaging API."""

    def __init__(
        self,
        base_url: str = "https://api.line.me",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize transport.

        Args:
            base_url: API base URL
            timeout_seconds: Per-request timeout
            client: Preconfigured client (tests inject one with a mock transport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def send(self, credential: str, to: str, message: StepMessage) -> None:
        """Push one message to a recipient."""
        payload = {"to": to, "messages": [to_line_message(message)]}
        client = await self._ensure_client()

        try:
            response = await client.post(
                f"{self._base_url}{PUSH_PATH}",
                json=payload,
                headers={"Authorization": f"Bearer {credential}"},
            )
        except httpx.TimeoutException as e:
            logger.warning("line_push_timeout", timeout_seconds=self._timeout)
            raise TransportError(f"LINE API timeout after {self._timeout}s", cause=e) from e
        except httpx.HTTPError as e:
            logger.warning("line_push_http_error", error=str(e))
            raise TransportError(f"LINE API request failed: {e}", cause=e) from e

        if response.is_success:
            logger.debug("line_push_sent", message_kind=message.kind)
            return

        logger.warning(
            "line_push_rejected",
            status_code=response.status_code,
            response_preview=response.text[:200],
        )
        raise TransportError(
            f"LINE API error: {response.status_code}",
            status_code=response.status_code,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
