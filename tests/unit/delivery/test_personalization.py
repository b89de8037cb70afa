"""Tests for message personalization."""

from uuid import uuid4

import pytest

from cadence.catalog.models import CardMessage, Contact, MediaMessage, TextMessage
from cadence.delivery.personalization import (
    add_uid_to_form_links,
    personalize_message,
    personalize_text,
    replace_tokens,
)


def _contact(display_name: str | None = "Hanako", short_uid: str | None = "u42") -> Contact:
    return Contact(
        account_id=uuid4(),
        external_id="U-1",
        display_name=display_name,
        short_uid=short_uid,
    )


class TestReplaceTokens:
    def test_name_tokens(self) -> None:
        text = "[LINE_NAME_SAN]、こんにちは ([LINE_NAME])"
        assert replace_tokens(text, _contact()) == "Hanakoさん、こんにちは (Hanako)"

    def test_missing_name_uses_fallback_without_suffix(self) -> None:
        text = "[LINE_NAME_SAN]へ / [LINE_NAME]"
        assert replace_tokens(text, _contact(display_name=None)) == "あなたへ / あなた"

    def test_custom_fallback_and_suffix(self) -> None:
        contact = _contact()
        assert replace_tokens("[LINE_NAME_SAN]", contact, honorific_suffix=" sama") == "Hanako sama"
        assert replace_tokens("[LINE_NAME]", _contact(None), name_fallback="friend") == "friend"

    def test_uid_token(self) -> None:
        assert replace_tokens("id=[UID]", _contact()) == "id=u42"

    def test_uid_token_left_when_contact_has_none(self) -> None:
        assert replace_tokens("id=[UID]", _contact(short_uid=None)) == "id=[UID]"


class TestFormLinks:
    def test_uid_appended_to_form_link(self) -> None:
        text = "Answer here: https://example.com/form/1a2b-3c4d"
        assert add_uid_to_form_links(text, "u42") == (
            "Answer here: https://example.com/form/1a2b-3c4d?uid=u42"
        )

    def test_existing_query_kept(self) -> None:
        result = add_uid_to_form_links("https://example.com/form/abc?src=line", "u42")
        assert result == "https://example.com/form/abc?src=line&uid=u42"

    def test_existing_uid_not_duplicated(self) -> None:
        link = "https://example.com/form/abc?uid=other"
        assert add_uid_to_form_links(link, "u42") == link

    def test_other_links_untouched(self) -> None:
        link = "https://example.com/blog/abc"
        assert add_uid_to_form_links(link, "u42") == link

    def test_personalize_text_skips_links_when_uid_token_used(self) -> None:
        text = "https://example.com/form/abc?uid=[UID]"
        assert personalize_text(text, _contact()) == "https://example.com/form/abc?uid=u42"


class TestPersonalizeMessage:
    def test_text_message(self) -> None:
        message = personalize_message(TextMessage(text="Hi [LINE_NAME]"), _contact())
        assert message == TextMessage(text="Hi Hanako")

    def test_card_message_is_personalized_deeply(self) -> None:
        card = CardMessage(
            alt_text="[LINE_NAME_SAN]へのお知らせ",
            contents={
                "type": "bubble",
                "body": {
                    "type": "box",
                    "contents": [{"type": "text", "text": "Hello [LINE_NAME]", "size": 12}],
                },
            },
        )

        message = personalize_message(card, _contact())

        assert message.alt_text == "Hanakoさんへのお知らせ"
        assert message.contents["body"]["contents"][0] == {
            "type": "text",
            "text": "Hello Hanako",
            "size": 12,
        }
        # Source message is not mutated
        assert card.contents["body"]["contents"][0]["text"] == "Hello [LINE_NAME]"

    def test_media_message_unchanged(self) -> None:
        media = MediaMessage(url="https://cdn.example.com/a.png")
        assert personalize_message(media, _contact()) is media

    def test_unknown_message_type(self) -> None:
        with pytest.raises(TypeError):
            personalize_message("plain string", _contact())  # type: ignore[arg-type]
