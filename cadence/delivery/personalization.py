"""Per-contact token replacement for outgoing messages.

Supported tokens:
    [UID]            contact short_uid
    [LINE_NAME]      contact display name
    [LINE_NAME_SAN]  display name with honorific suffix

Text without a [UID] token gets a ``uid`` query parameter appended to
form links that lack one.
"""

import re
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from cadence.catalog.models import CardMessage, Contact, MediaMessage, StepMessage, TextMessage

UID_TOKEN = "[UID]"
NAME_TOKEN = "[LINE_NAME]"
NAME_SAN_TOKEN = "[LINE_NAME_SAN]"

FORM_LINK_PATTERN = re.compile(
    r"https?://[^/\s]+/form/[a-f0-9\-]+(?:\?[^?\s]*)?",
    re.IGNORECASE,
)


def add_uid_to_form_links(text: str, uid: str) -> str:
    """Append uid=<uid> to form links that do not carry one yet."""

    def _add(match: re.Match[str]) -> str:
        parts = urlsplit(match.group(0))
        query = parse_qsl(parts.query, keep_blank_values=True)
        if any(key == "uid" for key, _ in query):
            return match.group(0)
        query.append(("uid", uid))
        return urlunsplit(parts._replace(query=urlencode(query)))

    return FORM_LINK_PATTERN.sub(_add, text)


def replace_tokens(
    text: str,
    contact: Contact,
    name_fallback: str = "あなた",
    honorific_suffix: str = "さん",
) -> str:
    """Replace personalization tokens in a string.

    Args:
        text: Source text
        contact: Receiving contact
        name_fallback: Used when the contact has no display name
        honorific_suffix: Appended for [LINE_NAME_SAN] when a name is known

    Returns:
        Personalized text
    """
    if contact.display_name:
        name = contact.display_name
        name_san = f"{contact.display_name}{honorific_suffix}"
    else:
        name = name_fallback
        name_san = name_fallback

    # Longer token first so [LINE_NAME] does not eat its prefix
    result = text.replace(NAME_SAN_TOKEN, name_san).replace(NAME_TOKEN, name)
    if contact.short_uid:
        result = result.replace(UID_TOKEN, contact.short_uid)
    return result


def personalize_text(
    text: str,
    contact: Contact,
    name_fallback: str = "あなた",
    honorific_suffix: str = "さん",
) -> str:
    """Personalize a text body, adding uid parameters to bare form links."""
    had_uid_token = UID_TOKEN in text
    result = replace_tokens(text, contact, name_fallback, honorific_suffix)
    if contact.short_uid and not had_uid_token:
        result = add_uid_to_form_links(result, contact.short_uid)
    return result


def _personalize_document(value: Any, contact: Contact, fallback: str, suffix: str) -> Any:
    if isinstance(value, str):
        return replace_tokens(value, contact, fallback, suffix)
    if isinstance(value, dict):
        return {k: _personalize_document(v, contact, fallback, suffix) for k, v in value.items()}
    if isinstance(value, list):
        return [_personalize_document(v, contact, fallback, suffix) for v in value]
    return value


def personalize_message(
    message: StepMessage,
    contact: Contact,
    name_fallback: str = "あなた",
    honorific_suffix: str = "さん",
) -> StepMessage:
    """Return a copy of message with contact tokens substituted."""
    if isinstance(message, TextMessage):
        return message.model_copy(
            update={"text": personalize_text(message.text, contact, name_fallback, honorific_suffix)}
        )
    if isinstance(message, CardMessage):
        return message.model_copy(
            update={
                "alt_text": replace_tokens(
                    message.alt_text, contact, name_fallback, honorific_suffix
                ),
                "contents": _personalize_document(
                    message.contents, contact, name_fallback, honorific_suffix
                ),
            }
        )
    if isinstance(message, MediaMessage):
        return message
    raise TypeError(f"Unsupported message type: {type(message).__name__}")
